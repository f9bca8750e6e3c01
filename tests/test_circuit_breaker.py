"""
Tests for circuit breaker pattern.
Target: 95% coverage
"""

import asyncio

import pytest

from hr_assistant.circuit_breaker import CircuitBreaker, CircuitState
from hr_assistant.errors import CircuitBreakerOpenError, RecordStoreError


class ManualClock:
    """Monotonic seconds that only move when told to."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


async def successful_func():
    return "success"


async def failing_func():
    raise Exception("Test failure")


def call(cb, func):
    return asyncio.run(cb.call(func))


def open_circuit(cb):
    for _ in range(cb.failure_threshold):
        with pytest.raises(Exception):
            call(cb, failing_func)


class TestCircuitBreaker:
    """Test circuit breaker functionality."""

    def test_initial_state_closed(self):
        """Circuit breaker should start in CLOSED state."""
        cb = CircuitBreaker(failure_threshold=3, timeout=5)
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    def test_successful_call_in_closed_state(self):
        """Successful calls should work normally in CLOSED state."""
        cb = CircuitBreaker(failure_threshold=3)
        assert call(cb, successful_func) == "success"
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    def test_arguments_are_forwarded(self):
        """Positional and keyword arguments reach the wrapped coroutine."""
        cb = CircuitBreaker()

        async def add(a, b=0):
            return a + b

        assert asyncio.run(cb.call(add, 2, b=3)) == 5

    def test_single_failure_stays_closed(self):
        """Single failure should not open circuit."""
        cb = CircuitBreaker(failure_threshold=3)
        with pytest.raises(Exception, match="Test failure"):
            call(cb, failing_func)

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 1

    def test_threshold_failures_opens_circuit(self):
        """Reaching threshold should open circuit."""
        cb = CircuitBreaker(failure_threshold=3)
        open_circuit(cb)

        assert cb.state == CircuitState.OPEN
        assert cb.failure_count == 3

    def test_open_circuit_blocks_calls(self):
        """Open circuit should block all calls without running them."""
        cb = CircuitBreaker(failure_threshold=2, clock=ManualClock())
        open_circuit(cb)
        executed = []

        async def tracked():
            executed.append(True)

        with pytest.raises(CircuitBreakerOpenError):
            call(cb, tracked)
        assert executed == []

    def test_open_error_is_a_record_store_error(self):
        """Callers handling RecordStoreError also handle an open circuit."""
        assert issubclass(CircuitBreakerOpenError, RecordStoreError)

    def test_success_resets_failure_count(self):
        """A success in CLOSED state resets the failure count."""
        cb = CircuitBreaker(failure_threshold=3)
        for _ in range(2):
            with pytest.raises(Exception):
                call(cb, failing_func)

        call(cb, successful_func)
        assert cb.failure_count == 0
        assert cb.state == CircuitState.CLOSED


class TestRecovery:
    """Test OPEN -> HALF_OPEN -> CLOSED/OPEN transitions."""

    def test_probe_after_timeout_closes_circuit(self):
        """After the timeout a successful probe closes the circuit."""
        clock = ManualClock()
        cb = CircuitBreaker(failure_threshold=2, timeout=10, clock=clock)
        open_circuit(cb)

        clock.now = 10.0
        assert call(cb, successful_func) == "success"
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    def test_still_blocked_before_timeout(self):
        clock = ManualClock()
        cb = CircuitBreaker(failure_threshold=2, timeout=10, clock=clock)
        open_circuit(cb)

        clock.now = 9.9
        with pytest.raises(CircuitBreakerOpenError):
            call(cb, successful_func)

    def test_failed_probe_reopens_circuit(self):
        """A failing probe goes straight back to OPEN."""
        clock = ManualClock()
        cb = CircuitBreaker(failure_threshold=2, timeout=10, clock=clock)
        open_circuit(cb)

        clock.now = 15.0
        with pytest.raises(Exception, match="Test failure"):
            call(cb, failing_func)
        assert cb.state == CircuitState.OPEN
        assert cb.last_failure_time == 15.0

        with pytest.raises(CircuitBreakerOpenError):
            call(cb, successful_func)


class TestGetState:
    def test_state_snapshot(self):
        """get_state reports what monitoring needs."""
        clock = ManualClock(42.0)
        cb = CircuitBreaker(failure_threshold=4, timeout=5, name="Records", clock=clock)
        with pytest.raises(Exception):
            call(cb, failing_func)

        assert cb.get_state() == {
            "name": "Records",
            "state": "closed",
            "failure_count": 1,
            "failure_threshold": 4,
            "last_failure_time": 42.0,
        }
