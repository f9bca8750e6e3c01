"""
Data model shared by the parsers, the session store and the state machine.

Request details are tagged variants: ``LeaveDetails`` (kind "leave") and
``WfhDetails`` (kind "wfh"). A pending confirmation wraps exactly one of them
and the state machine branches on ``kind``.

Everything that lives inside a session is frozen; the session store produces
new objects with ``dataclasses.replace`` instead of mutating them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal


class LeaveType(str, Enum):
    """Leave categories understood by the record store."""

    ANNUAL = "ANNUAL"
    SICK = "SICK"
    CASUAL = "CASUAL"
    MATERNITY = "MATERNITY"
    PATERNITY = "PATERNITY"


@dataclass
class ParsedDateResult:
    start_date: str | None = None
    end_date: str | None = None
    is_range: bool = False
    errors: list[str] = field(default_factory=list)


@dataclass
class DurationResult:
    duration_days: float | None = None
    is_half_day: bool = False
    has_explicit_duration: bool = False


@dataclass(frozen=True)
class LeaveDetails:
    start_date: str | None = None
    end_date: str | None = None
    leave_type: LeaveType | None = None
    reason: str | None = None
    employee_name: str | None = None
    duration_days: float | None = None
    is_half_day: bool = False
    errors: tuple[str, ...] = ()
    kind: Literal["leave"] = "leave"

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.start_date:
            missing.append("start_date")
        if not self.leave_type:
            missing.append("leave_type")
        return missing

    def is_complete(self) -> bool:
        return len(self.missing_fields()) == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "startDate": self.start_date,
            "endDate": self.end_date,
            "leaveType": self.leave_type.value if self.leave_type else None,
            "reason": self.reason,
            "employeeName": self.employee_name,
            "durationDays": self.duration_days,
            "isHalfDay": self.is_half_day,
        }


@dataclass(frozen=True)
class WfhDetails:
    date: str | None = None
    reason: str | None = None
    employee_name: str | None = None
    errors: tuple[str, ...] = ()
    kind: Literal["wfh"] = "wfh"

    def missing_fields(self) -> list[str]:
        return [] if self.date else ["date"]

    def is_complete(self) -> bool:
        return self.date is not None

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "reason": self.reason, "employeeName": self.employee_name}


RequestDetails = LeaveDetails | WfhDetails


@dataclass(frozen=True)
class PendingConfirmation:
    """A validated request waiting for an explicit yes/no."""

    details: RequestDetails

    @property
    def kind(self) -> str:
        return self.details.kind

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "details": self.details.to_dict()}


@dataclass(frozen=True)
class LastRequest:
    """The most recently committed request, kept for post-commit guidance."""

    details: RequestDetails
    record_id: str
    created_at: datetime

    @property
    def kind(self) -> str:
        return self.details.kind


@dataclass(frozen=True)
class HistoryEntry:
    role: str
    message: str
    intent: str
    timestamp: datetime


@dataclass(frozen=True)
class SessionContext:
    session_id: str
    created_at: datetime
    employee_id: str | None = None
    employee_name: str | None = None
    user_email: str | None = None
    awaiting_email: bool = False
    email_attempts: int = 0
    email_verification_locked: bool = False
    pending_confirmation: PendingConfirmation | None = None
    last_request: LastRequest | None = None
    leave_conflict: dict[str, Any] | None = None
    awaiting_leave_details: LeaveDetails | None = None
    conversation_history: tuple[HistoryEntry, ...] = ()

    @property
    def is_verified(self) -> bool:
        return self.employee_id is not None

    @property
    def last_activity(self) -> datetime:
        if self.conversation_history:
            return self.conversation_history[-1].timestamp
        return self.created_at