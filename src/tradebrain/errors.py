"""Custom exceptions for clearer error handling across the loop."""

from __future__ import annotations


class TradeBrainError(Exception):
    """Base exception for all app-specific errors."""


class ConfigError(TradeBrainError, ValueError):
    """Raised when environment or CLI configuration is invalid."""


class GatewayError(TradeBrainError):
    """Transient execution API failure (timeouts, upstream 4xx/5xx, bad bodies)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CircuitOpenError(GatewayError):
    """Raised without network I/O while the circuit breaker is open."""


class RelayUnavailableError(TradeBrainError):
    """Permanent failure: the execution relay is absent or unreachable."""


class MarketDataError(TradeBrainError):
    """Raised when a quote source cannot produce a price."""
