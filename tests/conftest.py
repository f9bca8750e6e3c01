"""
Pytest configuration and fixtures.
Shared test utilities and mock data.
"""

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from hr_assistant.conversation import ConversationStateMachine, TurnEvent
from hr_assistant.record_store import InMemoryRecordStore
from hr_assistant.session_store import SessionStore

# A Wednesday. Thursday 2025-12-11 is "tomorrow"; 2025-12-25 is Christmas.
REFERENCE_DATE = date(2025, 12, 10)
JOHN_EMAIL = "john.doe@winfomi.com"


class StubFallback:
    """Records general-query calls instead of hitting a language model."""

    def __init__(self, reply: str = "Here is some general help."):
        self.reply = reply
        self.calls = []
        self.resets = []

    async def answer(self, message, session_id, history):
        self.calls.append({"message": message, "session_id": session_id, "history": list(history)})
        return self.reply

    async def reset_session(self, session_id):
        self.resets.append(session_id)


class FakeClock:
    """Manually advanced clock for TTL and circuit breaker tests."""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def reference_date():
    """Return the fixed "today" used across parser and conversation tests."""
    return REFERENCE_DATE


@pytest.fixture
def utc_clock():
    """Return a fake UTC clock starting at the reference date."""
    return FakeClock(datetime(2025, 12, 10, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def record_store():
    """Return a freshly seeded in-memory record store."""
    return InMemoryRecordStore()


@pytest.fixture
def session_store():
    """Return an in-memory session store with default limits."""
    return SessionStore(max_history=10, session_ttl_seconds=1800, max_sessions=100, max_email_attempts=3)


@pytest.fixture
def fallback():
    """Return a stub general-query agent."""
    return StubFallback()


@pytest.fixture
def make_machine(session_store, record_store, fallback):
    """Build a state machine pinned to the reference date; keyword overrides replace collaborators."""

    def factory(**overrides):
        kwargs = {
            "session_store": session_store,
            "record_store": record_store,
            "fallback": fallback,
            "today": lambda: REFERENCE_DATE,
        }
        kwargs.update(overrides)
        return ConversationStateMachine(**kwargs)

    return factory


@pytest.fixture
def machine(make_machine):
    """Return a state machine wired to the default fixtures."""
    return make_machine()


@pytest.fixture
def send(machine):
    """Send one chat message through ``machine`` and return the Transition."""

    def _send(message, session_id="s1", target=None, **fields):
        runner = target or machine
        event = TurnEvent(session_id=session_id, message=message, **fields)
        return asyncio.run(runner.handle_turn(event))

    return _send


@pytest.fixture
def verified_send(send):
    """Like ``send``, but the session is already verified as John Doe."""
    send(JOHN_EMAIL)
    return send


@pytest.fixture
def test_client():
    """Create FastAPI test client."""
    from hr_assistant.main import app

    return TestClient(app)
