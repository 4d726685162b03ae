from typing import Callable, Dict, List

import httpx
import pytest

from seed_lottery.balances import BalanceLookup

# BIP84 reference mnemonic
ABANDON_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)


class FakeOracle:
    """Balance source keyed by address; records every address queried."""

    def __init__(self, balances: Dict[str, int] | None = None, default: int = 0) -> None:
        self.balances = balances or {}
        self.default = default
        self.queried: List[str] = []

    async def lookup(self, address: str) -> BalanceLookup:
        self.queried.append(address)
        return BalanceLookup(
            address=address,
            satoshis=self.balances.get(address, self.default),
            provider="fake",
        )

    async def get_balance(self, address: str) -> int:
        return (await self.lookup(address)).satoshis


@pytest.fixture
def mnemonic() -> str:
    return ABANDON_MNEMONIC


@pytest.fixture
def fake_oracle() -> Callable[..., FakeOracle]:
    return FakeOracle


@pytest.fixture
def make_client() -> Callable[[Callable], httpx.AsyncClient]:
    def factory(handler: Callable) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory
