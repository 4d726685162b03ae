"""
One game round: payment -> scan -> result.

`GameRound` is immutable; each phase returns the next round value instead of
mutating shared state, so concurrent rounds never see each other.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple

import httpx

from .balances import BalanceOracle
from .config import Settings
from .derive import generate_mnemonic
from .errors import DerivationError, SeedLotteryError
from .lnurl import Invoice, LnurlPayClient
from .project_constants import PACING_DELAY_S, VERIFY_POLL_INTERVAL_S
from .scan import BalanceSource, ProgressCallback, ScanOutcome, scan
from .verify import PaymentState, PaymentVerifier

log = logging.getLogger("game")


class RoundPhase(str, Enum):
    AWAITING_PAYMENT = "awaiting_payment"
    SCANNING = "scanning"
    FINISHED = "finished"


@dataclass(frozen=True)
class GameRound:
    round_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    phase: RoundPhase = RoundPhase.AWAITING_PAYMENT
    invoice: Optional[Invoice] = None
    payment_state: PaymentState = PaymentState.PENDING
    mnemonic: Optional[str] = field(default=None, repr=False)
    outcome: Optional[ScanOutcome] = None
    error: Optional[str] = None

    @property
    def won(self) -> bool:
        return self.outcome is not None and self.outcome.found

    def with_invoice(self, invoice: Invoice) -> "GameRound":
        return replace(self, invoice=invoice)

    def paid(self, mnemonic: str) -> "GameRound":
        if self.phase is not RoundPhase.AWAITING_PAYMENT:
            raise SeedLotteryError(f"Round {self.round_id} is already {self.phase.value}.")
        return replace(
            self,
            phase=RoundPhase.SCANNING,
            payment_state=PaymentState.SETTLED,
            mnemonic=mnemonic,
        )

    def finished(self, outcome: ScanOutcome) -> "GameRound":
        if self.phase is not RoundPhase.SCANNING:
            raise SeedLotteryError(f"Round {self.round_id} has no scan in progress.")
        return replace(self, phase=RoundPhase.FINISHED, outcome=outcome)

    def failed(self, message: str, payment_state: Optional[PaymentState] = None) -> "GameRound":
        return replace(
            self,
            phase=RoundPhase.FINISHED,
            error=message,
            payment_state=payment_state or self.payment_state,
        )


InvoiceCallback = Callable[[Invoice], None]
ConfirmPayment = Callable[[Invoice], Awaitable[bool]]


async def settle_payment(
    round_: GameRound,
    invoice: Invoice,
    settings: Settings,
    confirm_payment: Optional[ConfirmPayment] = None,
    poll_interval_s: float = VERIFY_POLL_INTERVAL_S,
    client: Optional[httpx.AsyncClient] = None,
) -> Tuple[PaymentState, Optional[str]]:
    if invoice.verify_url is None:
        if confirm_payment is None:
            log.warning("Round %s: no verify URL and no manual confirmation", round_.round_id)
            return PaymentState.ERROR, "no verify URL to confirm the payment"
        if await confirm_payment(invoice):
            return PaymentState.SETTLED, None
        return PaymentState.ERROR, "player did not confirm the payment"

    verifier = PaymentVerifier(
        invoice.verify_url,
        interval_s=poll_interval_s,
        timeout_s=settings.verify_timeout_s,
        http_timeout_s=settings.http_timeout_s,
        client=client,
    )
    try:
        state = await verifier.wait()
        return state, verifier.error
    finally:
        verifier.cancel()
        await verifier.close()


async def play_round(
    settings: Settings,
    on_invoice: Optional[InvoiceCallback] = None,
    confirm_payment: Optional[ConfirmPayment] = None,
    on_progress: Optional[ProgressCallback] = None,
    oracle: Optional[BalanceSource] = None,
    client: Optional[httpx.AsyncClient] = None,
    poll_interval_s: float = VERIFY_POLL_INTERVAL_S,
    pacing_delay_s: float = PACING_DELAY_S,
) -> GameRound:
    """
    Run a full round and return its terminal value.

    Payment failures propagate as SeedLotteryError subclasses; once the
    player has paid, every failure ends in a FINISHED round with `error` set.
    """
    round_ = GameRound()

    async with LnurlPayClient(timeout_s=settings.http_timeout_s, client=client) as lnurl:
        invoice = await lnurl.fetch_invoice(
            settings.ln_address, settings.amount_sats, settings.comment
        )
    round_ = round_.with_invoice(invoice)
    if on_invoice is not None:
        on_invoice(invoice)

    state, reason = await settle_payment(
        round_, invoice, settings, confirm_payment, poll_interval_s, client
    )
    if state is not PaymentState.SETTLED:
        return round_.failed(
            f"Payment was not confirmed: {reason or state.value}",
            payment_state=state,
        )

    round_ = round_.paid(generate_mnemonic())
    log.info("Round %s paid; scanning %d addresses", round_.round_id, settings.address_count)

    own_oracle = BalanceOracle(timeout_s=settings.http_timeout_s, client=client) if oracle is None else None
    balance_oracle = oracle if oracle is not None else own_oracle
    try:
        outcome = await scan(
            round_.mnemonic,
            settings.address_count,
            balance_oracle,
            pacing_delay_s=pacing_delay_s,
            on_progress=on_progress,
        )
    except DerivationError as e:
        log.error("Round %s: %s", round_.round_id, e)
        return round_.failed(f"Could not derive addresses: {e}")
    finally:
        if own_oracle is not None:
            await own_oracle.close()

    return round_.finished(outcome)
