from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Tuple

from .balances import BalanceLookup
from .derive import DerivedAddress, derive_addresses
from .errors import DerivationError
from .project_constants import FALLBACK_ADDRESS_COUNT, PACING_DELAY_S, PREAMBLE_STEPS

log = logging.getLogger("scan")


class BalanceSource(Protocol):
    async def lookup(self, address: str) -> BalanceLookup: ...


@dataclass(frozen=True)
class ScanProgress:
    step: int
    total_steps: int
    message: str

    @property
    def percent(self) -> int:
        if self.total_steps <= 0:
            return 100
        return min(100, (self.step * 100) // self.total_steps)


@dataclass(frozen=True)
class ScanOutcome:
    found: bool
    checked_addresses: Tuple[str, ...]
    winning_address: Optional[DerivedAddress] = None
    winning_balance: Optional[int] = None
    # Checked addresses whose balance no provider could confirm
    unresolved_addresses: Tuple[str, ...] = ()


@dataclass(frozen=True)
class FundedAddress:
    address: DerivedAddress
    balance: int


@dataclass(frozen=True)
class SweepResult:
    funded: Tuple[FundedAddress, ...]
    checked: int
    unresolved_addresses: Tuple[str, ...] = ()


ProgressCallback = Callable[[ScanProgress], None]


def derive_with_retry(mnemonic: str, count: int) -> List[DerivedAddress]:
    """Derive `count` addresses, retrying once at the reduced cap on failure."""
    try:
        return derive_addresses(mnemonic, count)
    except DerivationError as e:
        reduced = min(count, FALLBACK_ADDRESS_COUNT)
        log.warning("Derivation of %d addresses failed (%s); retrying with %d", count, e, reduced)
        return derive_addresses(mnemonic, reduced)


async def _safe_lookup(oracle: BalanceSource, address: str) -> BalanceLookup:
    # A failing oracle must not abort the round: count it as an unknown zero.
    try:
        return await oracle.lookup(address)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        log.warning("Balance lookup raised for %s: %s", address, e)
        return BalanceLookup(address=address, satoshis=0, provider=None)


async def scan(
    mnemonic: str,
    count: int,
    oracle: BalanceSource,
    pacing_delay_s: float = PACING_DELAY_S,
    on_progress: Optional[ProgressCallback] = None,
) -> ScanOutcome:
    """
    Check derived addresses in index order and stop at the first funded one.

    Raises DerivationError only if derivation fails twice; every other
    failure degrades to a zero balance for that address.
    """

    def report(step: int, total: int, message: str) -> None:
        if on_progress is not None:
            on_progress(ScanProgress(step=step, total_steps=total, message=message))

    total = len(PREAMBLE_STEPS) + count
    for i, message in enumerate(PREAMBLE_STEPS):
        report(i, total, message)

    addresses = derive_with_retry(mnemonic, count)
    total = len(PREAMBLE_STEPS) + len(addresses)

    checked: List[str] = []
    unresolved: List[str] = []
    for derived in addresses:
        if checked and pacing_delay_s > 0:
            await asyncio.sleep(pacing_delay_s)

        report(
            len(PREAMBLE_STEPS) + derived.index,
            total,
            f"Checking address #{derived.index + 1}...",
        )
        lookup = await _safe_lookup(oracle, derived.address)
        checked.append(derived.address)
        if not lookup.known:
            unresolved.append(derived.address)

        if lookup.satoshis > 0:
            log.info("Balance found at index %d: %d sats", derived.index, lookup.satoshis)
            report(total, total, f"Balance found at address #{derived.index + 1}!")
            return ScanOutcome(
                found=True,
                checked_addresses=tuple(checked),
                winning_address=derived,
                winning_balance=lookup.satoshis,
                unresolved_addresses=tuple(unresolved),
            )

    report(total, total, "Check complete.")
    if unresolved:
        log.warning("%d of %d balances could not be confirmed", len(unresolved), len(checked))
    return ScanOutcome(
        found=False,
        checked_addresses=tuple(checked),
        unresolved_addresses=tuple(unresolved),
    )


async def sweep(
    mnemonic: str,
    count: int,
    oracle: BalanceSource,
    pacing_delay_s: float = PACING_DELAY_S,
) -> SweepResult:
    """Check every derived address and collect all funded ones."""
    addresses = derive_addresses(mnemonic, count)

    funded: List[FundedAddress] = []
    unresolved: List[str] = []
    for derived in addresses:
        if derived.index and pacing_delay_s > 0:
            await asyncio.sleep(pacing_delay_s)
        lookup = await _safe_lookup(oracle, derived.address)
        if not lookup.known:
            unresolved.append(derived.address)
        if lookup.satoshis > 0:
            funded.append(FundedAddress(address=derived, balance=lookup.satoshis))

    return SweepResult(
        funded=tuple(funded),
        checked=len(addresses),
        unresolved_addresses=tuple(unresolved),
    )
