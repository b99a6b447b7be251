"""Core trading domain models."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from enum import StrEnum


class TradeAction(StrEnum):
    """Actions the decision model may return."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class Trend(StrEnum):
    """Direction of the latest price step."""

    UP = "UP"
    DOWN = "DOWN"
    FLAT = "FLAT"


class Mode(StrEnum):
    """Trading mode owned by the control loop."""

    SIMULATION = "SIMULATION"
    LIVE = "LIVE"


class ConnectionStatus(StrEnum):
    """Operator-facing connectivity indicator."""

    CONNECTED = "CONNECTED"
    ERROR = "ERROR"
    SIMULATION = "SIMULATION"


class OrderStatus(StrEnum):
    """Lifecycle of an executed decision."""

    SENT = "SENT"
    FILLED = "FILLED"
    FAILED = "FAILED"


class LoopState(StrEnum):
    """Control loop lifecycle."""

    INITIALIZING = "INITIALIZING"
    RUNNING = "RUNNING"
    DEGRADED = "DEGRADED"
    STOPPED = "STOPPED"


@dataclass(frozen=True)
class MarketQuote:
    """Single price observation for a symbol."""

    symbol: str
    price: float
    change_percent: float = 0.0
    timestamp: float = field(default_factory=time.time)
    source: str = "simulated"

    def __post_init__(self) -> None:
        if not math.isfinite(self.price) or self.price <= 0:
            raise ValueError(f"{self.symbol}: quote price must be positive, got {self.price}")


@dataclass(frozen=True)
class PortfolioState:
    """Cash and integer holdings; replaced wholesale at the end of a cycle."""

    cash: float
    positions: dict[str, int] = field(default_factory=dict)
    equity: float = 0.0
    initial_balance: float = 0.0
    cost_basis: dict[str, float] = field(default_factory=dict)

    @classmethod
    def starting(cls, cash: float) -> PortfolioState:
        """Return a flat portfolio funded with `cash`."""
        return cls(cash=cash, positions={}, equity=cash, initial_balance=cash)

    def held_symbols(self) -> list[str]:
        """Return symbols with a non-zero position, sorted."""
        return sorted(symbol for symbol, qty in self.positions.items() if qty > 0)

    def quantity(self, symbol: str) -> int:
        return self.positions.get(symbol, 0)

    def market_value(self, prices: dict[str, float]) -> float:
        """Mark holdings to `prices`; symbols without a price count as zero."""
        total = 0.0
        for symbol, qty in self.positions.items():
            price = prices.get(symbol, 0.0)
            if price > 0:
                total += qty * price
        return total


@dataclass(frozen=True)
class TradeDecision:
    """Validated decision produced by the decision engine."""

    symbol: str
    action: TradeAction
    quantity: float
    confidence: float = 0.0
    reasoning: str = ""

    @property
    def is_actionable(self) -> bool:
        return self.action is not TradeAction.HOLD


@dataclass(frozen=True)
class OrderResult:
    """Outcome of one executed (non-HOLD) decision."""

    symbol: str
    action: TradeAction
    quantity: float
    status: OrderStatus
    price: float | None = None
    error: str | None = None
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class MemoryRecord:
    """One entry of a per-symbol memory window."""

    symbol: str
    price: float
    timestamp: float
    trend: Trend
    volatility: float
    change_percent: float


@dataclass(frozen=True)
class TradeOutcome:
    """Realized profit of a closed trade."""

    symbol: str
    profit: float

    @property
    def is_win(self) -> bool:
        return self.profit > 0


@dataclass(frozen=True)
class AccountSnapshot:
    """Authoritative account figures from the execution API."""

    equity: float
    cash: float
    buying_power: float
    currency: str = "USD"
