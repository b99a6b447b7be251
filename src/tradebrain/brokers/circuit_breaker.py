"""Failure-counting gate for the execution API."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass
class CircuitBreakerState:
    """Breaker counters, owned by one gateway instance."""

    consecutive_failures: int = 0
    open_until: float = 0.0


class CircuitBreaker:
    """CLOSED until `threshold` consecutive failures, then OPEN for `backoff_seconds`.

    The breaker re-closes purely on wall-clock: once `now >= open_until` the
    next call is let through. A success resets the failure counter.
    Counters are updated under a lock because batch quote lookups report
    outcomes from worker threads.
    """

    def __init__(
        self,
        threshold: int = 3,
        backoff_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if threshold <= 0:
            raise ValueError("threshold must be positive")
        self.threshold = threshold
        self.backoff_seconds = backoff_seconds
        self.state = CircuitBreakerState()
        self._clock = clock
        self._lock = threading.Lock()
        self._logger = logging.getLogger("tradebrain.brokers.circuit_breaker")

    def is_open(self) -> bool:
        return self._clock() < self.state.open_until

    def seconds_until_close(self) -> float:
        return max(0.0, self.state.open_until - self._clock())

    def record_success(self) -> None:
        with self._lock:
            self.state.consecutive_failures = 0

    def record_failure(self, reason: str = "") -> None:
        with self._lock:
            self.state.consecutive_failures += 1
            failures = self.state.consecutive_failures
            if failures >= self.threshold:
                self.state.open_until = self._clock() + self.backoff_seconds
        if failures == self.threshold:
            self._logger.error(
                "Execution API unstable after %s failures; pausing requests for %.0fs",
                failures,
                self.backoff_seconds,
            )
        elif failures < self.threshold:
            self._logger.warning(
                "Execution API warning (%s/%s): %s", failures, self.threshold, reason
            )
