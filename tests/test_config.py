from __future__ import annotations

import pytest

from tradebrain.config import (
    DEFAULT_CRYPTO_UNIVERSE,
    Settings,
    default_universe,
    parse_bool,
    parse_optional_positive_int,
    parse_symbols,
)
from tradebrain.domain.models import Mode
from tradebrain.errors import ConfigError

ENV_NAMES = [
    "SIMULATION",
    "TRADING_ENABLED",
    "INTERVAL_SECONDS",
    "MAX_CYCLES",
    "SYMBOLS",
    "BATCH_SIZE",
    "ALPACA_API_KEY",
    "APCA_API_KEY_ID",
    "ALPACA_SECRET_KEY",
    "APCA_API_SECRET_KEY",
    "RELAY_URL",
    "OPENAI_API_KEY",
    "RANDOM_SEED",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    monkeypatch.setattr("tradebrain.config.load_dotenv", lambda: False)
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_from_env_defaults(clean_env: pytest.MonkeyPatch) -> None:
    settings = Settings.from_env()

    assert settings.is_simulation is False
    assert settings.trading_enabled is True
    assert settings.interval_seconds == 60
    assert settings.batch_size == 10
    assert settings.symbols == default_universe()
    assert settings.requested_mode() is Mode.SIMULATION


def test_from_env_reads_overrides_and_alias_credentials(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("APCA_API_KEY_ID", "key")
    clean_env.setenv("APCA_API_SECRET_KEY", "secret")
    clean_env.setenv("SYMBOLS", "spy, btc/usd, SPY")
    clean_env.setenv("MAX_CYCLES", "4")
    clean_env.setenv("RANDOM_SEED", "7")
    clean_env.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.has_credentials() is True
    assert settings.requested_mode() is Mode.LIVE
    assert settings.symbols == ["SPY", "BTC/USD"]
    assert settings.max_cycles == 4
    assert settings.random_seed == 7
    assert settings.log_level == "DEBUG"


def test_simulation_flag_wins_over_credentials(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("ALPACA_API_KEY", "key")
    clean_env.setenv("ALPACA_SECRET_KEY", "secret")
    clean_env.setenv("SIMULATION", "yes")

    assert Settings.from_env().requested_mode() is Mode.SIMULATION


def test_invalid_numeric_env_raises_config_error(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("INTERVAL_SECONDS", "soon")

    with pytest.raises(ConfigError):
        Settings.from_env()


def test_non_positive_max_cycles_rejected(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("MAX_CYCLES", "0")

    with pytest.raises(ConfigError):
        Settings.from_env()


def test_with_overrides_validates() -> None:
    settings = Settings()

    assert settings.with_overrides(batch_size=3).batch_size == 3
    with pytest.raises(ConfigError):
        settings.with_overrides(batch_size=0)
    with pytest.raises(ConfigError):
        settings.with_overrides(symbols=[])


def test_parsers() -> None:
    assert parse_bool(None, True) is True
    assert parse_bool("off", True) is False
    assert parse_bool("ON", False) is True
    assert parse_optional_positive_int(" ", field_name="x") is None
    assert parse_symbols("", ["AAA"]) == ["AAA"]
    assert parse_symbols(" , ", ["AAA"]) == ["AAA"]
    assert set(DEFAULT_CRYPTO_UNIVERSE) <= set(default_universe())
