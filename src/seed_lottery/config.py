from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

from dotenv import load_dotenv

from .project_constants import (
    ADDRESS_COUNT,
    DEFAULT_AMOUNT_SATS,
    DEFAULT_HTTP_TIMEOUT_S,
    DEFAULT_LN_ADDRESS,
    DEFAULT_VERIFY_TIMEOUT_S,
    GAME_NAME,
)


def _env_raw(name: str) -> str:
    return os.getenv(name, "").strip()


def _env_int(name: str, default: int) -> int:
    raw = _env_raw(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}.")


def _env_float(name: str, default: float) -> float:
    raw = _env_raw(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}.")


@dataclass(frozen=True)
class Settings:
    ln_address: str = DEFAULT_LN_ADDRESS
    amount_sats: int = DEFAULT_AMOUNT_SATS
    address_count: int = ADDRESS_COUNT
    http_timeout_s: float = DEFAULT_HTTP_TIMEOUT_S
    # None disables the polling deadline
    verify_timeout_s: Optional[float] = DEFAULT_VERIFY_TIMEOUT_S
    comment: str = GAME_NAME

    @staticmethod
    def from_env(
        ln_address_override: str | None = None,
        amount_override: int | None = None,
        timeout_override: float | None = None,
    ) -> "Settings":
        load_dotenv()

        verify_timeout = _env_float(
            "SEED_LOTTERY_VERIFY_TIMEOUT", DEFAULT_VERIFY_TIMEOUT_S
        )
        settings = Settings(
            ln_address=os.getenv("SEED_LOTTERY_LN_ADDRESS", "").strip()
            or DEFAULT_LN_ADDRESS,
            amount_sats=_env_int("SEED_LOTTERY_AMOUNT_SATS", DEFAULT_AMOUNT_SATS),
            address_count=_env_int("SEED_LOTTERY_ADDRESS_COUNT", ADDRESS_COUNT),
            http_timeout_s=_env_float(
                "SEED_LOTTERY_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT_S
            ),
            verify_timeout_s=verify_timeout if verify_timeout > 0 else None,
            comment=os.getenv("SEED_LOTTERY_COMMENT", GAME_NAME),
        )

        # Command-line values win over the environment.
        if ln_address_override:
            settings = replace(settings, ln_address=ln_address_override)
        if amount_override is not None:
            settings = replace(settings, amount_sats=amount_override)
        if timeout_override is not None:
            settings = replace(settings, http_timeout_s=timeout_override)

        settings.validate()
        return settings

    def validate(self) -> None:
        if self.address_count < 1:
            raise RuntimeError(
                f"SEED_LOTTERY_ADDRESS_COUNT must be at least 1, got {self.address_count}."
            )
        if self.amount_sats <= 0:
            raise RuntimeError(
                f"SEED_LOTTERY_AMOUNT_SATS must be positive, got {self.amount_sats}."
            )
        if self.http_timeout_s <= 0:
            raise RuntimeError(
                f"HTTP timeout must be positive, got {self.http_timeout_s}."
            )
        if "@" not in self.ln_address:
            raise RuntimeError(
                f"SEED_LOTTERY_LN_ADDRESS must look like user@domain, got {self.ln_address!r}."
            )
