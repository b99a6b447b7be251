"""Environment and CLI runtime configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Self

from dotenv import load_dotenv

from tradebrain.domain.models import Mode
from tradebrain.errors import ConfigError

DEFAULT_STOCK_UNIVERSE = [
    "SPY",
    "QQQ",
    "AAPL",
    "MSFT",
    "NVDA",
    "AMZN",
    "GOOGL",
    "META",
    "TSLA",
    "AMD",
    "NFLX",
    "JPM",
    "V",
    "DIS",
    "INTC",
    "BA",
    "KO",
    "XOM",
]
DEFAULT_CRYPTO_UNIVERSE = ["BTC/USD", "ETH/USD", "SOL/USD", "DOGE/USD"]


def parse_bool(value: str | None, default: bool) -> bool:
    """Parse truthy environment strings."""
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_optional_positive_int(value: str | None, *, field_name: str) -> int | None:
    """Parse optional positive integer values from env strings."""
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    parsed = int(text)
    if parsed <= 0:
        raise ConfigError(f"{field_name} must be positive")
    return parsed


def parse_symbols(value: str | None, default: list[str] | None = None) -> list[str]:
    """Parse comma-separated symbols, keeping first occurrence order."""
    fallback = default if default is not None else default_universe()
    if not value:
        return list(fallback)
    symbols = dedupe_symbols(
        [item.strip().upper() for item in value.split(",") if item.strip()]
    )
    return symbols or list(fallback)


def dedupe_symbols(symbols: list[str]) -> list[str]:
    """Remove duplicate symbols while preserving order."""
    deduped: list[str] = []
    seen: set[str] = set()
    for symbol in symbols:
        if symbol in seen:
            continue
        seen.add(symbol)
        deduped.append(symbol)
    return deduped


def default_universe() -> list[str]:
    return [*DEFAULT_STOCK_UNIVERSE, *DEFAULT_CRYPTO_UNIVERSE]


def _env(*names: str, default: str = "") -> str:
    """Return the first non-empty env var among `names`."""
    for name in names:
        value = os.getenv(name)
        if value is not None and value.strip():
            return value.strip()
    return default


@dataclass(frozen=True)
class Settings:
    """Immutable runtime settings."""

    is_simulation: bool = False
    trading_enabled: bool = True
    interval_seconds: int = 60
    max_cycles: int | None = None
    symbols: list[str] = field(default_factory=default_universe)
    batch_size: int = 10
    alpaca_api_key: str = ""
    alpaca_secret_key: str = ""
    alpaca_base_url: str = "https://paper-api.alpaca.markets"
    alpaca_data_url: str = "https://data.alpaca.markets"
    relay_url: str = ""
    request_timeout_seconds: float = 8.0
    breaker_failure_threshold: int = 3
    breaker_backoff_seconds: float = 60.0
    candidate_change_pct: float = 0.05
    initial_cash: float = 100_000.0
    memory_capacity: int = 20
    outcome_capacity: int = 50
    openai_api_key: str = ""
    decision_model: str = "gpt-4o-mini"
    decision_timeout_seconds: float = 30.0
    coingecko_url: str = "https://api.coingecko.com/api/v3"
    events_dir: str = "runs"
    log_level: str = "INFO"
    log_file: str | None = None
    random_seed: int | None = None

    @classmethod
    def from_env(cls) -> Self:
        """Create settings from environment variables."""
        load_dotenv()
        try:
            seed_text = os.getenv("RANDOM_SEED", "").strip()
            raw = cls(
                is_simulation=parse_bool(os.getenv("SIMULATION"), False),
                trading_enabled=parse_bool(os.getenv("TRADING_ENABLED"), True),
                interval_seconds=int(os.getenv("INTERVAL_SECONDS") or "60"),
                max_cycles=parse_optional_positive_int(
                    os.getenv("MAX_CYCLES"),
                    field_name="max_cycles",
                ),
                symbols=parse_symbols(os.getenv("SYMBOLS")),
                batch_size=int(os.getenv("BATCH_SIZE") or "10"),
                alpaca_api_key=_env("ALPACA_API_KEY", "APCA_API_KEY_ID"),
                alpaca_secret_key=_env("ALPACA_SECRET_KEY", "APCA_API_SECRET_KEY"),
                alpaca_base_url=_env(
                    "ALPACA_BASE_URL", default="https://paper-api.alpaca.markets"
                ),
                alpaca_data_url=_env("ALPACA_DATA_URL", default="https://data.alpaca.markets"),
                relay_url=_env("RELAY_URL"),
                request_timeout_seconds=float(os.getenv("REQUEST_TIMEOUT_SECONDS") or "8"),
                breaker_failure_threshold=int(os.getenv("BREAKER_FAILURE_THRESHOLD") or "3"),
                breaker_backoff_seconds=float(os.getenv("BREAKER_BACKOFF_SECONDS") or "60"),
                candidate_change_pct=float(os.getenv("CANDIDATE_CHANGE_PCT") or "0.05"),
                initial_cash=float(os.getenv("INITIAL_CASH") or "100000"),
                memory_capacity=int(os.getenv("MEMORY_CAPACITY") or "20"),
                outcome_capacity=int(os.getenv("OUTCOME_CAPACITY") or "50"),
                openai_api_key=_env("OPENAI_API_KEY"),
                decision_model=_env("DECISION_MODEL", default="gpt-4o-mini"),
                decision_timeout_seconds=float(os.getenv("DECISION_TIMEOUT_SECONDS") or "30"),
                coingecko_url=_env("COINGECKO_URL", default="https://api.coingecko.com/api/v3"),
                events_dir=_env("EVENTS_DIR", default="runs"),
                log_level=_env("LOG_LEVEL", default="INFO").upper(),
                log_file=_env("LOG_FILE") or None,
                random_seed=int(seed_text) if seed_text else None,
            )
        except ConfigError:
            raise
        except ValueError as exc:
            raise ConfigError(
                f"One or more numeric environment variables are invalid: {exc}"
            ) from exc
        return raw.validate()

    def with_overrides(self, **kwargs: object) -> Self:
        """Return a new settings object with updated values."""
        updated = replace(self, **kwargs)
        return updated.validate()

    def has_credentials(self) -> bool:
        return bool(self.alpaca_api_key and self.alpaca_secret_key)

    def requested_mode(self) -> Mode:
        """LIVE only when simulation is off and broker credentials are present."""
        if not self.is_simulation and self.has_credentials():
            return Mode.LIVE
        return Mode.SIMULATION

    def validate(self) -> Self:
        """Validate settings fields."""
        if self.interval_seconds <= 0:
            raise ConfigError("interval_seconds must be positive")
        if self.max_cycles is not None and self.max_cycles <= 0:
            raise ConfigError("max_cycles must be positive")
        if not self.symbols:
            raise ConfigError("symbols must not be empty")
        if self.batch_size <= 0:
            raise ConfigError("batch_size must be positive")
        if self.request_timeout_seconds <= 0:
            raise ConfigError("request_timeout_seconds must be positive")
        if self.breaker_failure_threshold <= 0:
            raise ConfigError("breaker_failure_threshold must be positive")
        if self.breaker_backoff_seconds < 0:
            raise ConfigError("breaker_backoff_seconds cannot be negative")
        if self.candidate_change_pct < 0:
            raise ConfigError("candidate_change_pct cannot be negative")
        if self.initial_cash < 0:
            raise ConfigError("initial_cash cannot be negative")
        if self.memory_capacity <= 0 or self.outcome_capacity <= 0:
            raise ConfigError("memory capacities must be positive")
        if self.decision_timeout_seconds <= 0:
            raise ConfigError("decision_timeout_seconds must be positive")
        return self
