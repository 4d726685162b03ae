from __future__ import annotations

from typing import Optional


class SeedLotteryError(RuntimeError):
    """Base class for every failure a caller may need to show to a player."""


class DerivationError(SeedLotteryError):
    pass


class ResolutionError(SeedLotteryError):
    pass


class InvalidAddressFormat(ResolutionError):
    def __init__(self, pay_address: str) -> None:
        super().__init__(
            f"Invalid Lightning address {pay_address!r}: expected user@domain."
        )
        self.pay_address = pay_address


class AmountOutOfRange(SeedLotteryError):
    def __init__(self, amount_sats: int, min_sats: float, max_sats: float) -> None:
        super().__init__(
            f"Amount must be between {min_sats:g} and {max_sats:g} sats "
            f"(got {amount_sats})."
        )
        self.amount_sats = amount_sats
        self.min_sats = min_sats
        self.max_sats = max_sats


class InvoiceError(SeedLotteryError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Invoice request failed: {reason}")
        self.reason = reason


class VerificationError(SeedLotteryError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Payment verification failed: {reason}")
        self.reason = reason


class BalanceLookupError(SeedLotteryError):
    """Raised by a single provider; always absorbed by the balance oracle."""

    def __init__(self, provider: str, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.cause = cause
