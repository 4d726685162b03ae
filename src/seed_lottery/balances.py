from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import httpx

from .errors import BalanceLookupError
from .project_constants import (
    BLOCKCHAIN_INFO_BALANCE_URL,
    BLOCKSTREAM_ADDRESS_URL,
    DEFAULT_HTTP_TIMEOUT_S,
    MEMPOOL_ADDRESS_URL,
    NO_CACHE_HEADERS,
)

log = logging.getLogger("balances")


def chain_stats_balance(resp: httpx.Response) -> int:
    """Esplora shape: chain_stats.funded_txo_sum - chain_stats.spent_txo_sum."""
    data = resp.json()
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    stats = data.get("chain_stats") or {}
    funded = stats.get("funded_txo_sum", 0) or 0
    spent = stats.get("spent_txo_sum", 0) or 0
    if not isinstance(funded, int) or not isinstance(spent, int):
        raise ValueError(f"non-integer chain_stats: funded={funded!r} spent={spent!r}")
    return funded - spent


def plain_integer_balance(resp: httpx.Response) -> int:
    return int(resp.text.strip())


@dataclass(frozen=True)
class BalanceProvider:
    name: str
    url_template: str
    extract: Callable[[httpx.Response], int]
    accept: str = "application/json"

    def url_for(self, address: str) -> str:
        return self.url_template.format(address=address)


DEFAULT_PROVIDERS: Sequence[BalanceProvider] = (
    BalanceProvider("blockstream", BLOCKSTREAM_ADDRESS_URL, chain_stats_balance),
    BalanceProvider("mempool", MEMPOOL_ADDRESS_URL, chain_stats_balance),
    BalanceProvider(
        "blockchain.info",
        BLOCKCHAIN_INFO_BALANCE_URL,
        plain_integer_balance,
        accept="text/plain",
    ),
)


@dataclass(frozen=True)
class BalanceLookup:
    address: str
    satoshis: int
    # None when every provider failed and the balance is unknown
    provider: Optional[str] = None

    @property
    def known(self) -> bool:
        return self.provider is not None


class BalanceOracle:
    """
    Net confirmed balance of an address, from the first provider that answers.

    No retries within a provider and no caching. If every provider fails the
    balance reads as 0; `lookup()` still reports it as unknown.
    """

    def __init__(
        self,
        providers: Sequence[BalanceProvider] = DEFAULT_PROVIDERS,
        timeout_s: float = DEFAULT_HTTP_TIMEOUT_S,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not providers:
            raise ValueError("BalanceOracle needs at least one provider.")
        self.providers = tuple(providers)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout_s)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "BalanceOracle":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def get_balance(self, address: str) -> int:
        lookup = await self.lookup(address)
        return lookup.satoshis

    async def lookup(self, address: str) -> BalanceLookup:
        for provider in self.providers:
            try:
                sats = await self._query(provider, address)
            except BalanceLookupError as e:
                log.warning("Balance provider failed: %s", e)
                log.debug("Falling through to the next provider for %s", address)
                continue

            if sats < 0:
                log.warning(
                    "%s reported negative balance %d for %s; treating as 0",
                    provider.name,
                    sats,
                    address,
                )
                sats = 0
            log.debug("%s: %s holds %d sats", provider.name, address, sats)
            return BalanceLookup(address=address, satoshis=sats, provider=provider.name)

        log.warning("All balance providers failed for %s; balance unknown", address)
        return BalanceLookup(address=address, satoshis=0, provider=None)

    async def _query(self, provider: BalanceProvider, address: str) -> int:
        headers = {"Accept": provider.accept, **NO_CACHE_HEADERS}
        try:
            resp = await self.client.get(provider.url_for(address), headers=headers)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise BalanceLookupError(provider.name, f"request failed: {e}", e) from e

        try:
            return provider.extract(resp)
        except (ValueError, TypeError, AttributeError) as e:
            raise BalanceLookupError(provider.name, f"unparseable response: {e}", e) from e
