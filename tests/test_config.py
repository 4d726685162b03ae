import pytest

from seed_lottery.config import Settings

ENV_VARS = [
    "SEED_LOTTERY_LN_ADDRESS",
    "SEED_LOTTERY_AMOUNT_SATS",
    "SEED_LOTTERY_ADDRESS_COUNT",
    "SEED_LOTTERY_HTTP_TIMEOUT",
    "SEED_LOTTERY_VERIFY_TIMEOUT",
    "SEED_LOTTERY_COMMENT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings.from_env()

    assert settings.ln_address == "dios@lawallet.ar"
    assert settings.amount_sats == 2025
    assert settings.address_count == 30
    assert settings.http_timeout_s == 10.0
    assert settings.verify_timeout_s == 600.0
    assert settings.comment == "Seed Lottery Game"


def test_environment_values(monkeypatch):
    monkeypatch.setenv("SEED_LOTTERY_LN_ADDRESS", "bob@example.org")
    monkeypatch.setenv("SEED_LOTTERY_AMOUNT_SATS", "21")
    monkeypatch.setenv("SEED_LOTTERY_ADDRESS_COUNT", "5")
    monkeypatch.setenv("SEED_LOTTERY_HTTP_TIMEOUT", "2.5")
    monkeypatch.setenv("SEED_LOTTERY_VERIFY_TIMEOUT", "0")

    settings = Settings.from_env()

    assert settings.ln_address == "bob@example.org"
    assert settings.amount_sats == 21
    assert settings.address_count == 5
    assert settings.http_timeout_s == 2.5
    assert settings.verify_timeout_s is None


def test_cli_overrides_win(monkeypatch):
    monkeypatch.setenv("SEED_LOTTERY_LN_ADDRESS", "bob@example.org")
    monkeypatch.setenv("SEED_LOTTERY_AMOUNT_SATS", "21")

    settings = Settings.from_env(
        ln_address_override="carol@example.net", amount_override=100, timeout_override=3
    )

    assert settings.ln_address == "carol@example.net"
    assert settings.amount_sats == 100
    assert settings.http_timeout_s == 3


def test_integer_settings_are_ints(monkeypatch):
    monkeypatch.setenv("SEED_LOTTERY_AMOUNT_SATS", "21")
    monkeypatch.setenv("SEED_LOTTERY_ADDRESS_COUNT", "7")

    settings = Settings.from_env()

    assert type(settings.amount_sats) is int
    assert type(settings.address_count) is int


@pytest.mark.parametrize(
    "name,value",
    [
        ("SEED_LOTTERY_ADDRESS_COUNT", "0"),
        ("SEED_LOTTERY_ADDRESS_COUNT", "ten"),
        ("SEED_LOTTERY_ADDRESS_COUNT", "2.5"),
        ("SEED_LOTTERY_AMOUNT_SATS", "-5"),
        ("SEED_LOTTERY_HTTP_TIMEOUT", "0"),
        ("SEED_LOTTERY_LN_ADDRESS", "no-at-sign"),
    ],
)
def test_invalid_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(RuntimeError):
        Settings.from_env()
