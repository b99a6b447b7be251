"""Per-symbol random-walk price simulator."""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from dataclasses import dataclass

from tradebrain.domain.models import MarketQuote

REFERENCE_PRICES = {
    "BTC": 65000.0,
    "ETH": 3500.0,
    "SPY": 500.0,
    "NVDA": 900.0,
}
PRICE_FLOOR = 1.0


@dataclass
class WalkState:
    """Current simulated price and drift direction (+1 or -1)."""

    price: float
    trend: int


class RandomWalkSimulator:
    """Trend-biased random walk, one independent state per symbol.

    Each step moves the price by ``(U(-0.5, 0.5) + trend * 0.05) * price *
    volatility`` and flips the trend with probability `reversal_probability`.
    Prices never drop below 1.0.
    """

    def __init__(
        self,
        volatility: float = 0.015,
        reversal_probability: float = 0.1,
        trend_bias: float = 0.05,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.volatility = volatility
        self.reversal_probability = reversal_probability
        self.trend_bias = trend_bias
        self.rng = rng or random.Random()
        self._clock = clock
        self._states: dict[str, WalkState] = {}

    def state(self, symbol: str) -> WalkState:
        """Return the walk state for `symbol`, seeding it on first use."""
        existing = self._states.get(symbol)
        if existing is None:
            existing = WalkState(
                price=self._initial_price(symbol),
                trend=1 if self.rng.random() > 0.5 else -1,
            )
            self._states[symbol] = existing
        return existing

    def step(self, symbol: str) -> MarketQuote:
        """Advance the walk one tick and return the new quote."""
        state = self.state(symbol)
        previous = state.price
        drift = self.rng.random() - 0.5 + state.trend * self.trend_bias
        state.price += drift * state.price * self.volatility
        if self.rng.random() < self.reversal_probability:
            state.trend *= -1
        if state.price < PRICE_FLOOR:
            state.price = PRICE_FLOOR
        change_percent = (state.price - previous) / previous * 100.0
        return MarketQuote(
            symbol=symbol,
            price=round(state.price, 2),
            change_percent=round(change_percent, 4),
            timestamp=self._clock(),
            source="simulated",
        )

    def anchor(self, symbol: str, price: float) -> None:
        """Continue the walk from an observed real price."""
        if price <= 0:
            return
        self.state(symbol).price = float(price)

    def _initial_price(self, symbol: str) -> float:
        base = symbol.split("/")[0].upper()
        if base in REFERENCE_PRICES:
            return REFERENCE_PRICES[base]
        return self.rng.random() * 200 + 10
