from __future__ import annotations

from dataclasses import dataclass
from typing import List

from bip_utils import (
    Bip32KeyError,
    Bip39MnemonicValidator,
    Bip39SeedGenerator,
    Bip44Changes,
    Bip84,
    Bip84Coins,
)
from mnemonic import Mnemonic

from .errors import DerivationError
from .project_constants import (
    BIP84_ACCOUNT,
    BIP84_CHANGE,
    BIP84_COIN_TYPE,
    BIP84_PURPOSE,
    EXPLORER_ADDRESS_URL,
    MNEMONIC_LANGUAGE,
    MNEMONIC_STRENGTH,
)


@dataclass(frozen=True)
class DerivedAddress:
    index: int
    address: str

    @property
    def path(self) -> str:
        return derivation_path(self.index)


def derivation_path(index: int) -> str:
    return (
        f"m/{BIP84_PURPOSE}'/{BIP84_COIN_TYPE}'/{BIP84_ACCOUNT}'/{BIP84_CHANGE}/{index}"
    )


def explorer_url(address: str) -> str:
    return EXPLORER_ADDRESS_URL.format(address=address)


def generate_mnemonic() -> str:
    """Fresh 12-word English mnemonic for one round."""
    return Mnemonic(MNEMONIC_LANGUAGE).generate(strength=MNEMONIC_STRENGTH)


def validate_mnemonic(mnemonic: str) -> bool:
    return Bip39MnemonicValidator().IsValid(_normalize(mnemonic))


def _normalize(mnemonic: str) -> str:
    return " ".join(mnemonic.split())


def derive_addresses(mnemonic: str, count: int) -> List[DerivedAddress]:
    """
    Derive the first `count` BIP84 receive addresses (P2WPKH, mainnet).

    Seed is generated with an empty passphrase. Index i maps to
    m/84'/0'/0'/0/i, so identical input always yields identical output.
    """
    if count < 1:
        raise DerivationError(f"Address count must be at least 1, got {count}.")

    words = _normalize(mnemonic)
    if not Bip39MnemonicValidator().IsValid(words):
        raise DerivationError("Mnemonic failed BIP39 wordlist/checksum validation.")

    seed_bytes = Bip39SeedGenerator(words).Generate()
    ctx = Bip84.FromSeed(seed_bytes, Bip84Coins.BITCOIN)
    chain = ctx.Purpose().Coin().Account(BIP84_ACCOUNT).Change(Bip44Changes.CHAIN_EXT)

    out: List[DerivedAddress] = []
    for i in range(count):
        try:
            node = chain.AddressIndex(i)
            address = node.PublicKey().ToAddress()
        except Bip32KeyError as e:
            raise DerivationError(
                f"Could not derive public key for index {i}: {e}"
            ) from e
        out.append(DerivedAddress(index=i, address=address))
    return out
