"""Quote source contract."""

from __future__ import annotations

from typing import Protocol


class QuoteSource(Protocol):
    """Interface for external, non-broker price lookups."""

    def supports(self, symbol: str) -> bool:
        """Return True when this source can price `symbol`."""

    def get_quote(self, symbol: str) -> float | None:
        """Return a positive price, None for "no quote", or raise MarketDataError."""
