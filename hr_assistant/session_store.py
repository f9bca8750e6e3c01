"""
Per-session conversational state.

``SessionStore`` is the only owner of ``SessionContext`` objects. Every read
and write goes through its accessors, and every write replaces the whole
context object (contexts are frozen dataclasses), so a turn never observes a
half-applied update.

Storage is pluggable: ``SessionBackend`` is a small get/set/delete protocol.
``InMemorySessionBackend`` keeps an insertion-ordered map where the most
recently written session sits last, which lets the sweep evict the oldest
sessions first when the store is over capacity.
"""

import logging
from collections import OrderedDict
from collections.abc import Callable, Iterator
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from hr_assistant.config import settings
from hr_assistant.errors import PendingConfirmationConflict
from hr_assistant.models import (
    HistoryEntry,
    LastRequest,
    LeaveDetails,
    PendingConfirmation,
    RequestDetails,
    SessionContext,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionBackend(Protocol):
    """Storage for session contexts, keyed by session id."""

    def get(self, session_id: str) -> SessionContext | None: ...

    def set(self, context: SessionContext) -> None: ...

    def delete(self, session_id: str) -> None: ...

    def items(self) -> Iterator[tuple[str, SessionContext]]: ...

    def __len__(self) -> int: ...


class InMemorySessionBackend:
    """Process-local backend. Writes move the session to the end of the map."""

    def __init__(self):
        self._sessions: OrderedDict[str, SessionContext] = OrderedDict()

    def get(self, session_id: str) -> SessionContext | None:
        return self._sessions.get(session_id)

    def set(self, context: SessionContext) -> None:
        self._sessions[context.session_id] = context
        self._sessions.move_to_end(context.session_id)

    def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def items(self) -> Iterator[tuple[str, SessionContext]]:
        return iter(list(self._sessions.items()))

    def __len__(self) -> int:
        return len(self._sessions)


class SessionStore:
    """
    Accessor layer over a ``SessionBackend``.

    Enforces:
    - history capped at ``max_history`` entries, oldest evicted
    - email attempts capped at ``max_email_attempts``; reaching the cap locks
      the session for good
    - at most one pending confirmation; replacing it requires ``replace=True``
    - lazy expiry of idle sessions plus a hard cap on the number of sessions
    """

    def __init__(
        self,
        backend: SessionBackend | None = None,
        max_history: int | None = None,
        session_ttl_seconds: int | None = None,
        max_sessions: int | None = None,
        max_email_attempts: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.backend = backend if backend is not None else InMemorySessionBackend()
        self.max_history = settings.max_history if max_history is None else max_history
        ttl = settings.session_ttl_seconds if session_ttl_seconds is None else session_ttl_seconds
        self.session_ttl = timedelta(seconds=ttl)
        self.max_sessions = settings.max_sessions if max_sessions is None else max_sessions
        self.max_email_attempts = (
            settings.max_email_attempts if max_email_attempts is None else max_email_attempts
        )
        self._clock = clock

    # Core access

    def get_context(self, session_id: str) -> SessionContext:
        """Return the session's context, creating an empty one on first sight."""
        context = self.backend.get(session_id)
        if context is None:
            context = SessionContext(session_id=session_id, created_at=self._clock())
            self.backend.set(context)
            logger.info(f"Created session context: {session_id}")
        return context

    def update_context(self, session_id: str, **updates: Any) -> SessionContext:
        """Merge ``updates`` into the session's context and store the result."""
        context = replace(self.get_context(session_id), **updates)
        self.backend.set(context)
        return context

    def clear_context(self, session_id: str) -> None:
        self.backend.delete(session_id)
        logger.info(f"Session context cleared: {session_id}")

    def has_session(self, session_id: str) -> bool:
        return self.backend.get(session_id) is not None

    # History

    def add_to_history(self, session_id: str, role: str, message: str, intent: str = "unknown") -> None:
        context = self.get_context(session_id)
        entry = HistoryEntry(role=role, message=message, intent=intent, timestamp=self._clock())
        history = context.conversation_history + (entry,)
        history = history[-self.max_history :] if self.max_history > 0 else ()
        self.update_context(session_id, conversation_history=history)

    def get_history(self, session_id: str, count: int = 5) -> list[HistoryEntry]:
        history = self.get_context(session_id).conversation_history
        return list(history[-count:]) if count > 0 else []

    # Identity and verification

    def get_user_email(self, session_id: str) -> str | None:
        return self.get_context(session_id).user_email

    def has_user_email(self, session_id: str) -> bool:
        return self.get_user_email(session_id) is not None

    def is_verified(self, session_id: str) -> bool:
        return self.get_context(session_id).is_verified

    def set_awaiting_email(self, session_id: str, awaiting: bool = True) -> None:
        self.update_context(session_id, awaiting_email=awaiting)

    def increment_email_attempts(self, session_id: str) -> int:
        """Count a failed verification attempt; returns the new total."""
        attempts = self.get_context(session_id).email_attempts + 1
        locked = attempts >= self.max_email_attempts
        self.update_context(
            session_id,
            email_attempts=attempts,
            awaiting_email=not locked,
            email_verification_locked=locked,
        )
        if locked:
            logger.warning(f"Email verification locked for session {session_id}")
        return attempts

    def remaining_email_attempts(self, session_id: str) -> int:
        return max(self.max_email_attempts - self.get_context(session_id).email_attempts, 0)

    def is_email_verification_locked(self, session_id: str) -> bool:
        return self.get_context(session_id).email_verification_locked

    def set_employee_profile(self, session_id: str, employee_id: str, name: str, email: str) -> None:
        self.update_context(
            session_id,
            employee_id=employee_id,
            employee_name=name,
            user_email=email.lower(),
            awaiting_email=False,
            email_attempts=0,
        )
        logger.info(f"Employee {employee_id} bound to session {session_id}")

    def clear_employee_profile(self, session_id: str) -> None:
        """Forget the verified identity. A locked session stays locked."""
        self.update_context(
            session_id,
            employee_id=None,
            employee_name=None,
            user_email=None,
            awaiting_email=False,
            email_attempts=0,
            pending_confirmation=None,
            awaiting_leave_details=None,
        )

    def get_employee_name(self, session_id: str) -> str | None:
        return self.get_context(session_id).employee_name

    # Pending confirmation

    def set_pending_confirmation(
        self, session_id: str, details: RequestDetails, replace: bool = False
    ) -> PendingConfirmation:
        context = self.get_context(session_id)
        if context.pending_confirmation is not None and not replace:
            raise PendingConfirmationConflict(
                f"Session {session_id} already has a pending {context.pending_confirmation.kind} request"
            )
        pending = PendingConfirmation(details=details)
        self.update_context(session_id, pending_confirmation=pending, awaiting_leave_details=None)
        return pending

    def get_pending_confirmation(self, session_id: str) -> PendingConfirmation | None:
        return self.get_context(session_id).pending_confirmation

    def clear_pending_confirmation(self, session_id: str) -> None:
        self.update_context(session_id, pending_confirmation=None)

    def is_awaiting_confirmation(self, session_id: str) -> bool:
        return self.get_pending_confirmation(session_id) is not None

    # Last committed request

    def save_last_request(self, session_id: str, details: RequestDetails, record_id: str) -> None:
        last = LastRequest(details=details, record_id=record_id, created_at=self._clock())
        self.update_context(session_id, last_request=last)

    def get_last_request(self, session_id: str) -> LastRequest | None:
        return self.get_context(session_id).last_request

    def clear_last_request(self, session_id: str) -> None:
        self.update_context(session_id, last_request=None)

    # Overlap conflict cache

    def save_leave_conflict(self, session_id: str, conflict: dict[str, Any]) -> None:
        self.update_context(session_id, leave_conflict=dict(conflict))

    def get_leave_conflict(self, session_id: str) -> dict[str, Any] | None:
        return self.get_context(session_id).leave_conflict

    def clear_leave_conflict(self, session_id: str) -> None:
        self.update_context(session_id, leave_conflict=None)

    # Partial leave details waiting for a date

    def set_awaiting_leave_details(self, session_id: str, details: LeaveDetails) -> None:
        self.update_context(session_id, awaiting_leave_details=details)

    def get_awaiting_leave_details(self, session_id: str) -> LeaveDetails | None:
        return self.get_context(session_id).awaiting_leave_details

    def clear_awaiting_leave_details(self, session_id: str) -> None:
        self.update_context(session_id, awaiting_leave_details=None)

    # Expiry

    def sweep(self, now: datetime | None = None) -> list[str]:
        """
        Drop idle sessions and enforce the session cap.

        Called at the start of every turn, so memory use is self-healing
        without a background timer. Returns the ids of the removed sessions so
        callers can release anything else they keep per session.
        """
        now = now or self._clock()
        expired = [
            sid for sid, context in self.backend.items() if now - context.last_activity > self.session_ttl
        ]
        for sid in expired:
            self.backend.delete(sid)

        evicted = []
        while len(self.backend) > self.max_sessions:
            oldest_sid, _ = next(self.backend.items())
            self.backend.delete(oldest_sid)
            evicted.append(oldest_sid)

        if expired or evicted:
            logger.info(
                f"Session sweep removed {len(expired)} expired and {len(evicted)} over-capacity sessions"
            )
        return expired + evicted

    def get_session_stats(self) -> dict[str, int]:
        contexts = [context for _, context in self.backend.items()]
        return {
            "total_sessions": len(contexts),
            "verified_sessions": sum(1 for c in contexts if c.is_verified),
            "locked_sessions": sum(1 for c in contexts if c.email_verification_locked),
            "pending_confirmations": sum(1 for c in contexts if c.pending_confirmation is not None),
        }
