import pytest

from seed_lottery.derive import (
    DerivedAddress,
    derivation_path,
    derive_addresses,
    explorer_url,
    generate_mnemonic,
    validate_mnemonic,
)
from seed_lottery.errors import DerivationError


def test_bip84_reference_vector(mnemonic):
    addresses = derive_addresses(mnemonic, 2)

    assert addresses[0] == DerivedAddress(0, "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu")
    assert addresses[1] == DerivedAddress(1, "bc1qnjg0jd8228aq7egyzacy8cys3knf9xvrerkf9g")


def test_indices_are_dense_and_start_at_zero(mnemonic):
    addresses = derive_addresses(mnemonic, 6)

    assert [a.index for a in addresses] == list(range(6))
    assert all(a.address.startswith("bc1q") for a in addresses)


def test_derivation_is_deterministic_and_distinct(mnemonic):
    first = derive_addresses(mnemonic, 5)
    second = derive_addresses(mnemonic, 5)

    assert first == second
    assert len({a.address for a in first}) == 5


def test_prefix_stable_across_counts(mnemonic):
    assert derive_addresses(mnemonic, 10)[:3] == derive_addresses(mnemonic, 3)


def test_extra_whitespace_is_ignored(mnemonic):
    messy = "  " + mnemonic.replace(" ", "   ") + "\n"
    assert derive_addresses(messy, 1) == derive_addresses(mnemonic, 1)


def test_bad_checksum_raises():
    with pytest.raises(DerivationError):
        derive_addresses(" ".join(["abandon"] * 12), 1)


def test_unknown_word_raises():
    with pytest.raises(DerivationError):
        derive_addresses("notaword " * 11 + "about", 1)


def test_count_must_be_positive(mnemonic):
    with pytest.raises(DerivationError):
        derive_addresses(mnemonic, 0)


def test_generated_mnemonic_has_twelve_valid_words():
    words = generate_mnemonic()

    assert len(words.split()) == 12
    assert validate_mnemonic(words)
    assert len(derive_addresses(words, 1)) == 1


def test_generated_mnemonics_differ():
    assert generate_mnemonic() != generate_mnemonic()


def test_paths_and_explorer_links():
    assert derivation_path(7) == "m/84'/0'/0'/0/7"
    assert DerivedAddress(3, "bc1qxyz").path == "m/84'/0'/0'/0/3"
    assert explorer_url("bc1qxyz") == "https://mempool.space/address/bc1qxyz"
