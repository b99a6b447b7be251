"""Domain models and event types."""

from .events import EventType, TradeEvent
from .models import (
    AccountSnapshot,
    ConnectionStatus,
    LoopState,
    MarketQuote,
    MemoryRecord,
    Mode,
    OrderResult,
    OrderStatus,
    PortfolioState,
    TradeAction,
    TradeDecision,
    TradeOutcome,
    Trend,
)

__all__ = [
    "AccountSnapshot",
    "ConnectionStatus",
    "EventType",
    "LoopState",
    "MarketQuote",
    "MemoryRecord",
    "Mode",
    "OrderResult",
    "OrderStatus",
    "PortfolioState",
    "TradeAction",
    "TradeDecision",
    "TradeEvent",
    "TradeOutcome",
    "Trend",
]
