from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Literal, Optional

import httpx
from pydantic import BaseModel, ValidationError

from .errors import VerificationError
from .lnurl import ParseTier
from .project_constants import DEFAULT_HTTP_TIMEOUT_S, NO_CACHE_HEADERS, VERIFY_POLL_INTERVAL_S

log = logging.getLogger("verify")


class PaymentState(str, Enum):
    PENDING = "pending"
    SETTLED = "settled"
    ERROR = "error"


class VerifyResponse(BaseModel):
    status: Optional[Literal["OK", "ERROR"]] = None
    settled: Optional[bool] = None
    preimage: Optional[str] = None
    pr: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class VerificationStatus:
    settled: bool
    parse_tier: ParseTier = ParseTier.STRICT
    preimage: Optional[str] = None


def parse_verify_payload(payload: Any) -> VerificationStatus:
    """
    Decode a LUD-21 verify response.

    Raises VerificationError for an explicit status=ERROR, ValueError for a
    payload that neither tier can read.
    """
    if isinstance(payload, dict) and payload.get("status") == "ERROR":
        raise VerificationError(str(payload.get("reason") or "unknown error from verify endpoint"))

    try:
        validated = VerifyResponse.model_validate(payload)
    except ValidationError as e:
        if isinstance(payload, dict) and isinstance(payload.get("settled"), bool):
            log.warning("Verify response failed validation, using raw settled: %s", e)
            return VerificationStatus(
                settled=payload["settled"], parse_tier=ParseTier.FALLBACK
            )
        raise ValueError(f"malformed verify response: {e}") from e

    return VerificationStatus(
        settled=bool(validated.settled), preimage=validated.preimage
    )


StateCallback = Callable[[PaymentState, Optional[str]], None]


class PaymentVerifier:
    """
    Polls a LUD-21 verify URL until the invoice settles, errors or times out.

    PENDING -> SETTLED or PENDING -> ERROR, each at most once. Transport
    errors and unreadable responses leave the payment PENDING and polling
    continues. `cancel()` stops the loop; a response still in flight when
    cancel is called is discarded.
    """

    def __init__(
        self,
        verify_url: str,
        interval_s: float = VERIFY_POLL_INTERVAL_S,
        timeout_s: Optional[float] = None,
        http_timeout_s: float = DEFAULT_HTTP_TIMEOUT_S,
        client: Optional[httpx.AsyncClient] = None,
        on_state_change: Optional[StateCallback] = None,
    ) -> None:
        self.verify_url = verify_url
        self.interval_s = interval_s
        self.timeout_s = timeout_s
        self.on_state_change = on_state_change
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=http_timeout_s)

        self.state = PaymentState.PENDING
        self.error: Optional[str] = None
        self.polls = 0
        self._cancelled = False
        self._task: Optional[asyncio.Task] = None

    @property
    def done(self) -> bool:
        return self.state is not PaymentState.PENDING

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def _transition(self, state: PaymentState, reason: Optional[str] = None) -> None:
        if self.done or self._cancelled:
            return
        self.state = state
        self.error = reason
        if state is PaymentState.SETTLED:
            log.info("Payment settled after %d poll(s)", self.polls)
        else:
            log.warning("Payment verification failed: %s", reason)
        if self.on_state_change is not None:
            self.on_state_change(state, reason)

    async def check_once(self) -> VerificationStatus:
        """Single verify request. Raises VerificationError on status=ERROR."""
        headers = {"Accept": "application/json", **NO_CACHE_HEADERS}
        resp = await self.client.get(self.verify_url, headers=headers)
        resp.raise_for_status()
        return parse_verify_payload(resp.json())

    async def _poll(self) -> None:
        self.polls += 1
        try:
            status = await self.check_once()
        except VerificationError as e:
            if not self._cancelled:
                self._transition(PaymentState.ERROR, e.reason)
            return
        except (httpx.HTTPError, ValueError) as e:
            log.warning("Verify poll %d failed, still pending: %s", self.polls, e)
            return

        if self._cancelled:
            return
        if status.settled:
            self._transition(PaymentState.SETTLED)
        else:
            log.debug("Verify poll %d: not settled yet", self.polls)

    async def run(self) -> PaymentState:
        """Poll immediately, then every `interval_s`, until a terminal state."""
        loop = asyncio.get_running_loop()
        deadline = None if self.timeout_s is None else loop.time() + self.timeout_s

        while not self.done and not self._cancelled:
            await self._poll()
            if self.done or self._cancelled:
                break
            if deadline is not None and loop.time() + self.interval_s > deadline:
                self._transition(
                    PaymentState.ERROR,
                    f"payment not settled within {self.timeout_s:g}s",
                )
                break
            await asyncio.sleep(self.interval_s)
        return self.state

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.create_task(self.run())
        return self._task

    def cancel(self) -> None:
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> PaymentState:
        task = self.start()
        try:
            return await task
        except asyncio.CancelledError:
            if self._cancelled:
                return self.state
            raise

    def raise_for_state(self) -> None:
        if self.state is PaymentState.ERROR:
            raise VerificationError(self.error or "unknown error")
