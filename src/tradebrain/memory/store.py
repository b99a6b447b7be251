"""Bounded per-symbol price memory and trade-outcome log."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable

import pandas as pd

from tradebrain.domain.models import MarketQuote, MemoryRecord, TradeOutcome, Trend

NO_TRADE_HISTORY = "TRADE LEARNING: no closed trades yet."


class MemoryStore:
    """FIFO windows of recent prices per symbol plus recent trade outcomes.

    Each window is a `deque` with a fixed `maxlen`, so appending past
    capacity drops the oldest entry.
    """

    def __init__(
        self,
        capacity: int = 20,
        outcome_capacity: int = 50,
        volatility_window: int = 10,
        path_length: int = 5,
    ) -> None:
        if capacity <= 0 or outcome_capacity <= 0:
            raise ValueError("memory capacities must be positive")
        self.capacity = capacity
        self.outcome_capacity = outcome_capacity
        self.volatility_window = volatility_window
        self.path_length = path_length
        self._history: dict[str, deque[MemoryRecord]] = {}
        self._outcomes: deque[TradeOutcome] = deque(maxlen=outcome_capacity)

    def record(self, quote: MarketQuote) -> MemoryRecord:
        """Append `quote` to its symbol window and return the stored record."""
        history = self._history.setdefault(quote.symbol, deque(maxlen=self.capacity))
        trend = Trend.FLAT
        if history:
            last_price = history[-1].price
            if quote.price > last_price:
                trend = Trend.UP
            elif quote.price < last_price:
                trend = Trend.DOWN
        prices = [item.price for item in history]
        trailing = prices[max(0, len(prices) - self.volatility_window + 1):]
        trailing.append(quote.price)
        record = MemoryRecord(
            symbol=quote.symbol,
            price=quote.price,
            timestamp=quote.timestamp,
            trend=trend,
            volatility=population_std(trailing),
            change_percent=quote.change_percent,
        )
        history.append(record)
        return record

    def record_all(self, quotes: Iterable[MarketQuote]) -> None:
        for quote in quotes:
            self.record(quote)

    def record_outcome(self, outcome: TradeOutcome) -> None:
        self._outcomes.append(outcome)

    def history(self, symbol: str) -> list[MemoryRecord]:
        return list(self._history.get(symbol, ()))

    def outcomes(self) -> list[TradeOutcome]:
        return list(self._outcomes)

    def win_rate(self) -> float | None:
        """Return wins / total over the outcome log, or None when empty."""
        if not self._outcomes:
            return None
        wins = sum(1 for outcome in self._outcomes if outcome.is_win)
        return wins / len(self._outcomes)

    def batch_context(self, symbols: Iterable[str]) -> str:
        """Summarize recent price paths for the given symbols."""
        lines = ["MARKET SNAPSHOTS (MEMORY):"]
        for symbol in symbols:
            history = self._history.get(symbol)
            if not history:
                continue
            latest = history[-1]
            path = list(history)[-self.path_length:]
            path_text = " -> ".join(f"{item.price:g}" for item in path)
            avg_volatility = sum(item.volatility for item in path) / len(path)
            lines.append(
                f"- {symbol}: price {latest.price:g} | path [{path_text}] "
                f"| avg volatility {avg_volatility:.4f} "
                f"| change {latest.change_percent:+.4f}% | trend {latest.trend.value}"
            )
        if len(lines) == 1:
            lines.append("- (no history yet)")
        return "\n".join(lines)

    def learning_context(self, recent: int = 3) -> str:
        """Summarize win rate and the most recent wins and losses."""
        rate = self.win_rate()
        if rate is None:
            return NO_TRADE_HISTORY
        outcomes = list(self._outcomes)
        wins = [item for item in reversed(outcomes) if item.is_win][:recent]
        losses = [item for item in reversed(outcomes) if not item.is_win][:recent]
        win_count = sum(1 for item in outcomes if item.is_win)
        return "\n".join(
            [
                f"TRADE LEARNING: win rate {rate * 100:.1f}% ({win_count}/{len(outcomes)})",
                f"Recent wins: {_format_outcomes(wins)}",
                f"Recent losses: {_format_outcomes(losses)}",
            ]
        )


def population_std(values: list[float]) -> float:
    """Population standard deviation (ddof=0); zero for a single value."""
    if len(values) < 2:
        return 0.0
    return float(pd.Series(values, dtype="float64").std(ddof=0))


def _format_outcomes(outcomes: list[TradeOutcome]) -> str:
    if not outcomes:
        return "none"
    return ", ".join(f"{item.symbol} {item.profit:+,.2f}" for item in outcomes)
