"""
Structured entity extraction from a single chat message.

Combines the date and duration parsers with keyword tables to build
``LeaveDetails``/``WfhDetails``, and recognises emails, confirmations and
edit requests. Nothing here consults session state; defaults that depend on
who is asking are applied by the state machine.
"""

import re
from datetime import date

from hr_assistant.date_parser import calculate_inclusive_days, parse_dates, project_end_date
from hr_assistant.duration_parser import parse_duration
from hr_assistant.models import LeaveDetails, LeaveType, ParsedDateResult, WfhDetails

# Ordered rule table: first match wins. Explicit type names come before topic
# keywords so "casual leave for fever" stays CASUAL.
LEAVE_TYPE_RULES: list[tuple[re.Pattern, LeaveType]] = [
    (re.compile(r"\bannual\b"), LeaveType.ANNUAL),
    (re.compile(r"\bsick\b"), LeaveType.SICK),
    (re.compile(r"\bcasual\b"), LeaveType.CASUAL),
    (re.compile(r"\bmaternity\b"), LeaveType.MATERNITY),
    (re.compile(r"\bpaternity\b"), LeaveType.PATERNITY),
    (re.compile(r"\b(?:vacation|holiday|travel(?:ling|ing)?|trip)\b"), LeaveType.ANNUAL),
    (re.compile(r"\b(?:medical|fever|flu|ill|unwell|doctor)\b"), LeaveType.SICK),
    (re.compile(r"\b(?:pregnancy|pregnant)\b"), LeaveType.MATERNITY),
    (re.compile(r"\b(?:baby|newborn|fatherhood)\b"), LeaveType.PATERNITY),
    (re.compile(r"\b(?:wedding|marriage|family event|personal)\b"), LeaveType.CASUAL),
]

REASON_TOPICS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\b(?:sick|fever|flu|medical|doctor|clinic|hospital|unwell)\b"), "Medical reasons"),
    (re.compile(r"\b(?:wedding|marriage|ceremony|family)\b"), "Family event"),
    (re.compile(r"\b(?:travel|vacation|holiday|trip)\b"), "Travel"),
]

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")

_BECAUSE = re.compile(r"\bbecause(?:\s+of)?\s+(.+?)(?:[.?!]|$)")
_FOR_START = re.compile(r"\bfor\s+")
_FOR_TAIL = re.compile(
    r"(.+?)(?=\s+(?:on|from|starting|beginning|tomorrow|today|next|this|coming|till|until)\b|[.?!]|$)"
)
# A "for ..." capture that is really a duration or a date, not a reason.
_NOT_A_REASON = re.compile(
    r"^(?:\d|a\s+half|half|an?\s+day|one|two|three|four|five|six|seven|eight|nine|ten\b|"
    r"today|tomorrow|yesterday|day after|next|this|coming|the\s+(?:\d|day|next))"
)
_BOILERPLATE = re.compile(
    r"\b(?:apply(?:ing)?|request(?:ing)?|need|want|for|because of|because|leave|on|from|the|"
    r"please|i|a|an|wfh|work from home|working from home|remote)\b"
)
_HALF_DAY_WORDS = re.compile(r"\b(?:an?\s+)?half(?:[- ]?a)?[- ]?days?\b")
_DURATION_WORDS = re.compile(r"\b\d+(?:\.\d+)?\s*days?\b")
_DATE_WORDS = re.compile(r"\b(?:day after tomorrow|tomorrow|today|yesterday)\b")
_WORK_FROM_HOME = re.compile(r"\bwork(?:ing)?\s+from\s+home\b")

_EDIT = re.compile(r"\b(?:edit|modify|change|update|reschedule|amend)\b")
_EMAIL_CHANGE = re.compile(r"\b(?:change|update|edit|switch|wrong)\b.*\b(?:e-?mail|mail id|email id)\b")
_YES = re.compile(
    r"^(?:yes|y|yeah|yep|yup|sure|ok|okay|confirm(?:ed)?|proceed|go ahead|submit(?: it)?|looks good)\b"
)
_NO = re.compile(r"^(?:no|n|nope|nah|cancel|don'?t|do not|stop|abort|discard)\b")
_MAX_CONFIRMATION_WORDS = 4


def extract_leave_type(text: str) -> LeaveType | None:
    lowered = text.lower()
    for pattern, leave_type in LEAVE_TYPE_RULES:
        if pattern.search(lowered):
            return leave_type
    return None


def explicit_leave_type(text: str) -> LeaveType | None:
    """Leave type only when named outright ("sick leave"), ignoring topic keywords."""
    lowered = text.lower()
    for pattern, leave_type in LEAVE_TYPE_RULES[: len(LeaveType)]:
        if pattern.search(lowered):
            return leave_type
    return None


def clean_reason(candidate: str | None) -> str | None:
    """Strip boilerplate from a captured reason; None when too little is left."""
    if not candidate:
        return None
    cleaned = candidate.lower()
    for pattern in (_HALF_DAY_WORDS, _DURATION_WORDS, _DATE_WORDS, _BOILERPLATE):
        cleaned = pattern.sub(" ", cleaned)
    cleaned = " ".join(cleaned.replace(",", " ").split()).strip(" .-")
    return cleaned if len(cleaned) >= 3 else None


def extract_reason(text: str) -> str | None:
    """
    Find the reason behind a request.

    ``because X`` wins over ``for X``; when neither yields anything usable a
    topic keyword maps to a canned reason.
    """
    lowered = " ".join(_WORK_FROM_HOME.sub("wfh", text.lower()).split())

    m = _BECAUSE.search(lowered)
    if m:
        reason = clean_reason(m.group(1))
        if reason:
            return reason

    for start in _FOR_START.finditer(lowered):
        m = _FOR_TAIL.match(lowered, start.end())
        if not m:
            continue
        captured = m.group(1).strip()
        if _NOT_A_REASON.match(captured):
            continue
        reason = clean_reason(captured)
        if reason:
            return reason

    for pattern, reason in REASON_TOPICS:
        if pattern.search(lowered):
            return reason
    return None


def extract_leave_details(text: str, reference_date: date | None = None) -> LeaveDetails:
    """
    Build leave details from one message.

    The end date is projected from an explicit duration, or from any
    duration when no end date was parsed. A half day collapses to a single
    date counted as 0.5. Otherwise the duration is the inclusive day count.
    """
    parsed = parse_dates(text, reference_date)
    duration = parse_duration(text)

    start = parsed.start_date
    end = parsed.end_date or start
    if start and duration.duration_days and (duration.has_explicit_duration or not parsed.end_date):
        end = start if duration.is_half_day else project_end_date(start, duration.duration_days)

    if start and end:
        days = calculate_inclusive_days(start, end, duration.is_half_day)
    else:
        days = duration.duration_days

    errors = tuple(parsed.errors) if _mentions_date(parsed) else ()
    return LeaveDetails(
        start_date=start,
        end_date=end,
        leave_type=extract_leave_type(text),
        reason=extract_reason(text),
        duration_days=days,
        is_half_day=duration.is_half_day,
        errors=errors,
    )


def extract_wfh_details(text: str, reference_date: date | None = None) -> WfhDetails:
    """Build WFH details: a single day plus an optional reason."""
    normalized = _WORK_FROM_HOME.sub("wfh", text.lower())
    parsed = parse_dates(normalized, reference_date)
    errors = tuple(parsed.errors) if _mentions_date(parsed) else ()
    return WfhDetails(
        date=parsed.start_date if not parsed.errors else None,
        reason=extract_reason(text),
        errors=errors,
    )


def _mentions_date(parsed: ParsedDateResult) -> bool:
    """True when the parser found something date-like but could not resolve it."""
    return any(not error.startswith(("Unable to understand", "No text")) for error in parsed.errors)


def extract_email(text: str | None) -> str | None:
    if not text:
        return None
    m = EMAIL_PATTERN.search(text)
    return m.group(0).lower() if m else None


def is_valid_company_email(email: str | None, domain: str) -> bool:
    """``local@<domain>`` exactly, case-insensitive."""
    if not email:
        return False
    pattern = rf"[^\s@]+@{re.escape(domain.lower())}"
    return re.fullmatch(pattern, email.strip().lower()) is not None


def is_edit_request(text: str | None) -> bool:
    return bool(text) and bool(_EDIT.search(text.lower()))


def is_email_change_request(text: str | None) -> bool:
    return bool(text) and bool(_EMAIL_CHANGE.search(text.lower()))


def _carries_request(rest: str) -> bool:
    if not rest.strip():
        return False
    return explicit_leave_type(rest) is not None or parse_dates(rest).start_date is not None


def extract_confirmation(text: str | None) -> str | None:
    """
    Classify a short reply as "yes", "no" or neither.

    Only messages of a few words count, so "no idea what the policy is"
    is not a rejection. A reply that goes on to name a date or a leave type
    ("ok casual leave tomorrow") is a new request, not a confirmation.
    """
    if not text:
        return None
    normalized = re.sub(r"[^\w\s']", " ", text.lower())
    words = normalized.split()
    if not words or len(words) > _MAX_CONFIRMATION_WORDS:
        return None
    normalized = " ".join(words)
    for pattern, answer in ((_NO, "no"), (_YES, "yes")):
        m = pattern.match(normalized)
        if m:
            return None if _carries_request(normalized[m.end() :]) else answer
    return None


def is_confirmation(text: str | None) -> bool:
    return extract_confirmation(text) == "yes"


def is_rejection(text: str | None) -> bool:
    return extract_confirmation(text) == "no"
