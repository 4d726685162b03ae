"""
LNURL-pay (LUD-16) client: Lightning address -> pay descriptor -> invoice.

Callback responses are decoded in two tiers. The strict tier validates the
full LUD-06 shape; if that fails but the payload still carries a `pr`, the
fallback tier extracts `pr`/`verify` directly, since servers in the wild vary
in how closely they follow the schema.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Literal, Optional, Tuple

import httpx
from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, ValidationError

from .errors import AmountOutOfRange, InvalidAddressFormat, InvoiceError, ResolutionError
from .project_constants import DEFAULT_HTTP_TIMEOUT_S, LNURLP_WELL_KNOWN_URL, NO_CACHE_HEADERS

log = logging.getLogger("lnurl")


class ParseTier(str, Enum):
    STRICT = "strict"
    FALLBACK = "fallback"


class LnurlPayDescriptor(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    callback: AnyHttpUrl
    max_sendable_msat: int = Field(alias="maxSendable")
    min_sendable_msat: int = Field(alias="minSendable")
    metadata: str
    tag: Literal["payRequest"]

    @property
    def min_sendable_sats(self) -> float:
        return self.min_sendable_msat / 1000

    @property
    def max_sendable_sats(self) -> float:
        return self.max_sendable_msat / 1000

    def accepts(self, amount_sats: int) -> bool:
        return self.min_sendable_msat <= amount_sats * 1000 <= self.max_sendable_msat


class CallbackResponse(BaseModel):
    pr: str
    routes: Optional[List[Any]] = None
    verify: Optional[AnyHttpUrl] = None
    status: Optional[Literal["OK", "ERROR"]] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class Invoice:
    payment_request: str
    verify_url: Optional[str] = None
    parse_tier: ParseTier = ParseTier.STRICT


def split_pay_address(pay_address: str) -> Tuple[str, str]:
    parts = pay_address.strip().split("@")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise InvalidAddressFormat(pay_address)
    user, domain = parts
    return user, domain


def _http_url_or_none(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value:
        return None
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL:
        return None
    if url.scheme not in ("http", "https") or not url.host:
        log.warning("Ignoring unusable verify URL %r", value)
        return None
    return value


def parse_invoice_payload(payload: Any) -> Invoice:
    if isinstance(payload, dict) and payload.get("status") == "ERROR":
        raise InvoiceError(str(payload.get("reason") or "unknown error from LNURL server"))

    try:
        validated = CallbackResponse.model_validate(payload)
    except ValidationError as e:
        if isinstance(payload, dict) and "pr" in payload:
            log.warning("Callback response failed validation, using raw pr: %s", e)
            pr = payload.get("pr")
            if not isinstance(pr, str) or not pr:
                raise InvoiceError("callback returned no usable invoice") from e
            return Invoice(
                payment_request=pr,
                verify_url=_http_url_or_none(payload.get("verify")),
                parse_tier=ParseTier.FALLBACK,
            )
        raise InvoiceError(f"malformed callback response: {e}") from e

    if not validated.pr:
        raise InvoiceError("callback returned no usable invoice")

    return Invoice(
        payment_request=validated.pr,
        verify_url=str(validated.verify) if validated.verify else None,
        parse_tier=ParseTier.STRICT,
    )


class LnurlPayClient:
    def __init__(
        self,
        timeout_s: float = DEFAULT_HTTP_TIMEOUT_S,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout_s)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "LnurlPayClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _get_json(self, url: httpx.URL | str) -> Any:
        headers = {"Accept": "application/json", **NO_CACHE_HEADERS}
        resp = await self.client.get(url, headers=headers)
        resp.raise_for_status()
        return resp.json()

    async def resolve(self, pay_address: str) -> LnurlPayDescriptor:
        """Fetch and validate the LUD-16 pay descriptor for user@domain."""
        user, domain = split_pay_address(pay_address)
        url = LNURLP_WELL_KNOWN_URL.format(domain=domain, user=user)
        log.info("Resolving Lightning address via %s", url)

        try:
            data = await self._get_json(url)
        except httpx.HTTPStatusError as e:
            raise ResolutionError(
                f"{url} returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise ResolutionError(f"could not reach {url}: {e}") from e
        except ValueError as e:
            raise ResolutionError(f"{url} did not return JSON: {e}") from e

        try:
            return LnurlPayDescriptor.model_validate(data)
        except ValidationError as e:
            raise ResolutionError(f"unexpected pay descriptor from {domain}: {e}") from e

    async def request_invoice(
        self,
        descriptor: LnurlPayDescriptor,
        amount_sats: int,
        comment: Optional[str] = None,
    ) -> Invoice:
        if not descriptor.accepts(amount_sats):
            raise AmountOutOfRange(
                amount_sats, descriptor.min_sendable_sats, descriptor.max_sendable_sats
            )

        params = {"amount": str(amount_sats * 1000)}
        if comment:
            params["comment"] = comment
        url = httpx.URL(str(descriptor.callback)).copy_merge_params(params)
        log.info("Requesting invoice for %d sats", amount_sats)

        try:
            payload = await self._get_json(url)
        except httpx.HTTPStatusError as e:
            raise InvoiceError(f"callback returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise InvoiceError(f"could not reach callback: {e}") from e
        except ValueError as e:
            raise InvoiceError(f"callback did not return JSON: {e}") from e

        invoice = parse_invoice_payload(payload)
        if invoice.verify_url is None:
            log.info("Invoice has no verify URL; settlement must be confirmed manually")
        return invoice

    async def fetch_invoice(
        self, pay_address: str, amount_sats: int, comment: Optional[str] = None
    ) -> Invoice:
        descriptor = await self.resolve(pay_address)
        return await self.request_invoice(descriptor, amount_sats, comment)
