"""Execution gateway contract."""

from __future__ import annotations

from typing import Any, Protocol

from tradebrain.domain.models import AccountSnapshot


class ExecutionGateway(Protocol):
    """Interface for the resilient execution API wrapper.

    Every method raises `GatewayError` on transient failures and
    `RelayUnavailableError` on permanent ones; none returns an empty
    value to signal failure.
    """

    def has_credentials(self) -> bool:
        """Return True when broker credentials are configured."""

    def get_account(self) -> AccountSnapshot:
        """Return the authoritative account snapshot."""

    def get_positions(self) -> dict[str, int]:
        """Return long positions keyed by symbol."""

    def submit_order(self, symbol: str, qty: int, side: str) -> dict[str, Any]:
        """Submit a day market order and return the broker payload."""

    def get_latest_quote(self, symbol: str) -> float | None:
        """Return the best quote price, or None when the book is empty."""
