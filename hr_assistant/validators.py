"""
Business rules gating a leave or WFH request.

Each check is a pure function over already-extracted details and data the
caller fetched (holiday calendar, existing records, balance). A check returns
``None`` when the request passes and a ``RuleViolation`` otherwise. Which
checks run, and in what order, is the caller's decision.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from hr_assistant.date_parser import expand_days, format_human_readable, to_date

HOLIDAY = "holiday"
PAST_DATE = "past_date"
OVERLAP = "overlap"
BALANCE = "balance"


@dataclass(frozen=True)
class RuleViolation:
    rule: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)


def check_holiday_conflict(
    start_date: str, end_date: str | None, holidays: Iterable[Mapping[str, Any]]
) -> RuleViolation | None:
    """Reject when any day of ``[start_date, end_date]`` is a company holiday."""
    by_date = {str(h["date"]): h for h in holidays}
    for day in expand_days(start_date, end_date or start_date):
        holiday = by_date.get(day.isoformat())
        if holiday:
            return RuleViolation(
                rule=HOLIDAY,
                message=(
                    f"{format_human_readable(day)} is a company holiday ({holiday['name']}). "
                    "You don't need to apply for it. Please choose different dates."
                ),
                data={"date": day.isoformat(), "holiday": holiday["name"]},
            )
    return None


def check_past_date(start_date: str, today: date, allow_past: bool = False) -> RuleViolation | None:
    """Reject a start date strictly before ``today`` unless backdating is allowed."""
    start = to_date(start_date)
    if allow_past or start is None or start >= today:
        return None
    return RuleViolation(
        rule=PAST_DATE,
        message=(
            f"{format_human_readable(start)} is in the past. "
            "Requests can only be made for today or a future date."
        ),
        data={"date": start.isoformat()},
    )


def _intersects(record: Mapping[str, Any], start: date, end: date) -> bool:
    record_start = to_date(record.get("start_date"))
    record_end = to_date(record.get("end_date")) or record_start
    if record_start is None:
        return False
    return record_start <= end and record_end >= start


def check_overlap(
    records: Iterable[Mapping[str, Any]], start_date: str, end_date: str | None
) -> RuleViolation | None:
    """
    Reject when an existing, non-rejected leave intersects the requested range.

    Only the first conflicting record is reported.
    """
    start = to_date(start_date)
    end = to_date(end_date) or start
    if start is None:
        return None

    for record in records:
        if str(record.get("status", "")).lower() == "rejected":
            continue
        if not _intersects(record, start, end):
            continue
        reason = record.get("reason") or "no reason given"
        return RuleViolation(
            rule=OVERLAP,
            message=(
                f"You already have a {record.get('leave_type', 'leave')} request "
                f"({record.get('id')}) from {record.get('start_date')} to {record.get('end_date')} "
                f"with status {record.get('status')} ({reason}). "
                "Please pick dates that don't overlap it."
            ),
            data={"existing": dict(record)},
        )
    return None


def check_balance(balance: Mapping[str, Any], requested_days: float) -> RuleViolation | None:
    """Reject when ``remaining`` is below the requested day count."""
    remaining = balance.get("remaining")
    if remaining is None or remaining >= requested_days:
        return None
    return RuleViolation(
        rule=BALANCE,
        message=(
            f"Insufficient leave balance. You requested {requested_days:g} day(s) but only "
            f"{remaining:g} remain (total {balance.get('total', 0):g}, used {balance.get('used', 0):g})."
        ),
        data={key: balance.get(key) for key in ("total", "used", "remaining")},
    )
