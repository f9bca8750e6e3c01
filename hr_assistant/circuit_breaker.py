"""
Circuit breaker for record-store calls.
Stops hammering the record store while it is down and lets a single probe
through once the cool-down has passed.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from hr_assistant.errors import CircuitBreakerOpenError

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Blocking requests
    HALF_OPEN = "half_open"  # Probing recovery


class CircuitBreaker:
    """
    Async circuit breaker.

    Transitions:
    - CLOSED -> OPEN: after failure_threshold consecutive failures
    - OPEN -> HALF_OPEN: after timeout seconds
    - HALF_OPEN -> CLOSED: probe succeeds
    - HALF_OPEN -> OPEN: probe fails
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: float = 60,
        name: str = "CircuitBreaker",
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            failure_threshold: Consecutive failures before the circuit opens
            timeout: Seconds to wait before probing recovery
            name: Name for logging
            clock: Monotonic time source, replaceable in tests
        """
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.name = name
        self._clock = clock

        self.failure_count = 0
        self.state = CircuitState.CLOSED
        self.last_failure_time: float | None = None

        logger.info(
            f"CircuitBreaker '{name}' initialized: "
            f"threshold={failure_threshold}, timeout={timeout}s"
        )

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Await ``func(*args, **kwargs)`` under circuit breaker protection.

        Raises:
            CircuitBreakerOpenError: If the circuit is OPEN
            Exception: Whatever ``func`` raised (after being counted)
        """
        if self.state == CircuitState.OPEN:
            if self._should_attempt_reset():
                logger.info(f"CircuitBreaker '{self.name}': OPEN -> HALF_OPEN")
                self.state = CircuitState.HALF_OPEN
            else:
                raise CircuitBreakerOpenError(
                    f"CircuitBreaker '{self.name}' is OPEN. Record store unavailable."
                )

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            self._record_failure()
            logger.error(
                f"CircuitBreaker '{self.name}' failure "
                f"({self.failure_count}/{self.failure_threshold}): {e}"
            )
            raise

        if self.state == CircuitState.HALF_OPEN:
            logger.info(f"CircuitBreaker '{self.name}': HALF_OPEN -> CLOSED")
        self._reset()
        return result

    def _record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = self._clock()

        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            logger.warning(f"CircuitBreaker '{self.name}': {self.state.name} -> OPEN")
            self.state = CircuitState.OPEN

    def _should_attempt_reset(self) -> bool:
        if self.last_failure_time is None:
            return True
        return self._clock() - self.last_failure_time >= self.timeout

    def _reset(self) -> None:
        self.failure_count = 0
        self.state = CircuitState.CLOSED
        self.last_failure_time = None

    def get_state(self) -> dict:
        """Get current circuit breaker state for monitoring."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "last_failure_time": self.last_failure_time,
        }
