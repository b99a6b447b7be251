"""Execution API gateway and its circuit breaker."""

from .alpaca_gateway import AlpacaGateway
from .base import ExecutionGateway
from .circuit_breaker import CircuitBreaker, CircuitBreakerState

__all__ = ["AlpacaGateway", "CircuitBreaker", "CircuitBreakerState", "ExecutionGateway"]
