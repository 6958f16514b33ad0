"""Per-provider circuit breakers.

A breaker opens after a run of consecutive failures and keeps its provider
out of the available set until ``reset_timeout`` seconds have passed. The
next call after that is a trial (half-open): success closes the breaker,
failure opens it again.
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class BreakerStats:
    """Snapshot of a breaker for the health endpoint."""

    provider: str
    state: BreakerState
    consecutive_failures: int
    total_failures: int
    total_successes: int
    opened_at: Optional[float]
    last_failure_at: Optional[float]

    def to_dict(self) -> dict:
        return {
            "provider": self.provider,
            "state": self.state.value,
            "consecutiveFailures": self.consecutive_failures,
            "totalFailures": self.total_failures,
            "totalSuccesses": self.total_successes,
            "openedAt": self.opened_at,
            "lastFailureAt": self.last_failure_at,
        }


class CircuitBreaker:
    """Thread-safe consecutive-failure circuit breaker."""

    def __init__(
        self,
        provider: str,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._consecutive_failures = 0
        self._total_failures = 0
        self._total_successes = 0
        self._opened_at: Optional[float] = None
        self._last_failure_at: Optional[float] = None

    def _current_state(self) -> BreakerState:
        if self._opened_at is None:
            return BreakerState.CLOSED
        if self._clock() - self._opened_at >= self.reset_timeout:
            return BreakerState.HALF_OPEN
        return BreakerState.OPEN

    @property
    def state(self) -> BreakerState:
        with self._lock:
            return self._current_state()

    def allow_request(self) -> bool:
        """True unless the breaker is open."""
        return self.state != BreakerState.OPEN

    def record_success(self) -> None:
        with self._lock:
            self._consecutive_failures = 0
            self._total_successes += 1
            self._opened_at = None

    def record_failure(self) -> None:
        with self._lock:
            now = self._clock()
            self._consecutive_failures += 1
            self._total_failures += 1
            self._last_failure_at = now
            state = self._current_state()
            if state == BreakerState.HALF_OPEN or (
                self._consecutive_failures >= self.failure_threshold
            ):
                self._opened_at = now

    def reset(self) -> None:
        with self._lock:
            self._consecutive_failures = 0
            self._opened_at = None

    def stats(self) -> BreakerStats:
        with self._lock:
            return BreakerStats(
                provider=self.provider,
                state=self._current_state(),
                consecutive_failures=self._consecutive_failures,
                total_failures=self._total_failures,
                total_successes=self._total_successes,
                opened_at=self._opened_at,
                last_failure_at=self._last_failure_at,
            )
