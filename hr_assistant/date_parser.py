"""
Natural-language date parsing.

Turns chat phrases such as "tomorrow", "next friday", "15th to 17th december",
"20.12.2025" or "from 28th to 2nd next month" into ISO ``YYYY-MM-DD`` strings.

Resolution order
----------------
1. Ranges: ``from A to/till/until/- B`` or a bare ``A to B`` built from date
   tokens. Each side is parsed on its own.
2. Single dates: relative words, then weekday expressions, then absolute
   forms (ISO, D.M.YYYY, D.M, "15th December", "December 15th", bare day).

Every candidate is checked against the calendar, so "31 February" and
"32nd December" come back as errors instead of silently rolling over.
All arithmetic is done on ``datetime.date``; there is no timezone in play.
"""

import logging
import math
import re
from datetime import date, datetime, timedelta
from typing import NamedTuple

from dateutil import parser
from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from hr_assistant.models import ParsedDateResult

logger = logging.getLogger(__name__)

UNPARSEABLE_DATE = "Unable to understand the requested date."
INVERTED_RANGE = "End date cannot be earlier than start date."

MONTHS = {
    "january": 1,
    "jan": 1,
    "february": 2,
    "feb": 2,
    "march": 3,
    "mar": 3,
    "april": 4,
    "apr": 4,
    "may": 5,
    "june": 6,
    "jun": 6,
    "july": 7,
    "jul": 7,
    "august": 8,
    "aug": 8,
    "september": 9,
    "sept": 9,
    "sep": 9,
    "october": 10,
    "oct": 10,
    "november": 11,
    "nov": 11,
    "december": 12,
    "dec": 12,
}

WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}

# Checked in order; "day after tomorrow" must win over "tomorrow".
RELATIVE_DAYS = (
    ("day after tomorrow", 2),
    ("tomorrow", 1),
    ("yesterday", -1),
    ("today", 0),
)

_MONTH_NAMES = "|".join(sorted(MONTHS, key=len, reverse=True))
_WEEKDAY_NAMES = "|".join(WEEKDAYS)
_ORD = r"(?:st|nd|rd|th)?"
_UNITS = r"(?:days?|hours?|hrs?|weeks?|months?|years?|mins?|minutes?|am|pm)\b"

_RELATIVE_PATTERNS = [(re.compile(rf"\b{phrase}\b"), offset) for phrase, offset in RELATIVE_DAYS]
_QUALIFIED_WEEKDAY = re.compile(rf"\b(next|this|coming)\s+({_WEEKDAY_NAMES})\b")
_BARE_WEEKDAY = re.compile(rf"\b({_WEEKDAY_NAMES})\b")
_ISO = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
_NUMERIC_FULL = re.compile(r"(?<![\d./-])(\d{1,2})[./-](\d{1,2})[./-](\d{4})\b")
_NUMERIC_SHORT = re.compile(rf"(?<![\d./-])(\d{{1,2}})[./-](\d{{1,2}})\b(?![./-]\d)(?!\s*{_UNITS})")
_DAY_MONTH = re.compile(
    rf"(?<![\d./-])\b(\d{{1,2}}){_ORD}\s+(?:of\s+)?({_MONTH_NAMES})\b,?(?:\s+(\d{{4}})\b)?"
)
_MONTH_DAY = re.compile(rf"\b({_MONTH_NAMES})\.?\s+(\d{{1,2}}){_ORD}\b,?(?:\s+(\d{{4}})\b)?")
_BARE_DAY = re.compile(rf"(?<![\d./:-])\b(\d{{1,2}}){_ORD}\b(?![./:-]\d)(?!\s*{_UNITS})(?!\s*%)")

# Range boundaries
_MONTH_OFFSET = re.compile(
    rf"\b(\d{{1,2}}){_ORD}\s+(?:of\s+)?(this|next)\s+month\b"
    rf"|\b(this|next)\s+month(?:'s)?\s+(\d{{1,2}}){_ORD}\b"
)
_DAY_WORD = re.compile(rf"(\d{{1,2}}){_ORD}\s+([a-z]{{3,}})(?:\s+\d{{4}})?")
_LONE_DAY = re.compile(rf"(\d{{1,2}}){_ORD}")
_CLAUSE_TAIL = re.compile(r"\s+(?:for|because|as|since|due|with|and|but)\b")
_NOT_MONTH_WORDS = frozenset({"morning", "afternoon", "evening", "half", "next", "this"})
_DATE_HINT = re.compile(
    rf"\d|\b(?:today|tomorrow|yesterday|{_WEEKDAY_NAMES}|{_MONTH_NAMES})\b"
)

_FROM_RANGES = (
    re.compile(r"\bfrom\s+(.+?)\s+(?:to|till|until|through)\s+(.+)"),
    re.compile(r"\bfrom\s+(.+?)\s+[-–]\s+(.+)"),
    re.compile(rf"\bfrom\s+(\d{{1,2}}{_ORD})\s*[-–]\s*(.+)"),
)

_DATE_TOKEN = (
    r"(?:\d{4}-\d{2}-\d{2}"
    r"|\d{1,2}[./-]\d{1,2}(?:[./-]\d{4})?"
    rf"|\d{{1,2}}{_ORD}(?:\s+(?:of\s+)?(?:{_MONTH_NAMES})\b(?:\s+\d{{4}})?)?"
    rf"|(?:{_MONTH_NAMES})\s+\d{{1,2}}{_ORD}(?:\s+\d{{4}})?)"
)
_SIMPLE_RANGE = re.compile(
    rf"(?<![\w./-])({_DATE_TOKEN})\s*(?:\b(?:to|till|until)\b|[-–])\s*"
    rf"({_DATE_TOKEN}(?:\s+(?:this|next)\s+month)?)\b(?![./-]\d)(?!\s*{_UNITS})"
)

# Forms whose match pins down a month, so a bare-day start can borrow it.
_EXPLICIT_MONTH_FORMS = frozenset({"iso", "numeric", "numeric_short", "day_month", "month_day"})


class _Match(NamedTuple):
    value: date | None
    error: str | None
    form: str


def _build_date(year: int, month: int, day: int, segment: str) -> tuple[date | None, str | None]:
    """Construct a calendar date, rejecting anything that would roll over."""
    if not 1 <= month <= 12 or not 1 <= year <= 9999:
        return None, f'Invalid date in "{segment}".'
    try:
        return date(year, month, day), None
    except ValueError:
        return None, f'Invalid day for the specified month in "{segment}".'


def _from_match(m: re.Match, year: int, month: int, day: int, form: str) -> _Match:
    value, error = _build_date(year, month, day, m.group(0).strip())
    return _Match(value, error, form)


def _resolve_weekday(qualifier: str, target: int, reference: date) -> date:
    """
    Resolve a weekday relative to ``reference``.

    - "this": today when today matches, else the next occurrence
    - "coming": nearest occurrence strictly after today
    - "next": that weekday in the following calendar week (weeks start Monday)
    """
    delta = (target - reference.weekday()) % 7
    if qualifier == "this":
        return reference + timedelta(days=delta)
    if qualifier == "coming":
        return reference + timedelta(days=delta or 7)
    next_monday = reference + timedelta(days=7 - reference.weekday())
    return next_monday + timedelta(days=target)


def _parse_single(text: str, reference: date) -> _Match | None:
    for pattern, offset in _RELATIVE_PATTERNS:
        if pattern.search(text):
            return _Match(reference + timedelta(days=offset), None, "relative")

    m = _QUALIFIED_WEEKDAY.search(text)
    if m:
        return _Match(_resolve_weekday(m.group(1), WEEKDAYS[m.group(2)], reference), None, "weekday")

    m = _ISO.search(text)
    if m:
        return _from_match(m, int(m.group(1)), int(m.group(2)), int(m.group(3)), "iso")

    m = _NUMERIC_FULL.search(text)
    if m:
        return _from_match(m, int(m.group(3)), int(m.group(2)), int(m.group(1)), "numeric")

    m = _NUMERIC_SHORT.search(text)
    if m:
        return _from_match(m, reference.year, int(m.group(2)), int(m.group(1)), "numeric_short")

    m = _DAY_MONTH.search(text)
    if m:
        year = int(m.group(3)) if m.group(3) else reference.year
        return _from_match(m, year, MONTHS[m.group(2)], int(m.group(1)), "day_month")

    m = _MONTH_DAY.search(text)
    if m:
        year = int(m.group(3)) if m.group(3) else reference.year
        return _from_match(m, year, MONTHS[m.group(1)], int(m.group(2)), "month_day")

    m = _BARE_DAY.search(text)
    if m:
        return _from_match(m, reference.year, reference.month, int(m.group(1)), "bare_day")

    m = _BARE_WEEKDAY.search(text)
    if m:
        return _Match(_resolve_weekday("coming", WEEKDAYS[m.group(1)], reference), None, "bare_weekday")

    return None


def _inherit_month(day: int, anchor: date, segment: str) -> _Match:
    """Place a bare day in the anchor's month, or the month before if it would follow the anchor."""
    base = anchor if day <= anchor.day else anchor - relativedelta(months=1)
    value, error = _build_date(base.year, base.month, day, segment)
    return _Match(value, error, "bare_day")


def _parse_boundary(segment: str, reference: date, anchor: date | None = None) -> _Match:
    seg = _CLAUSE_TAIL.split(segment.strip(), maxsplit=1)[0].strip(" ,.")
    if not seg:
        return _Match(None, None, "")

    m = _MONTH_OFFSET.search(seg)
    if m:
        day = int(m.group(1) or m.group(4))
        offset = 1 if (m.group(2) or m.group(3)) == "next" else 0
        first = reference.replace(day=1) + relativedelta(months=offset)
        value, error = _build_date(first.year, first.month, day, seg)
        return _Match(value, error, "month_offset")

    m = _DAY_WORD.fullmatch(seg)
    if m and m.group(2) not in MONTHS and m.group(2) not in _NOT_MONTH_WORDS:
        return _Match(None, f'Unknown month in "{seg}".', "")

    if anchor is not None:
        m = _LONE_DAY.fullmatch(seg)
        if m:
            return _inherit_month(int(m.group(1)), anchor, seg)

    match = _parse_single(seg, reference)
    if match is None:
        return _Match(None, f'Could not understand "{seg}".', "")
    return match


def _split_range(text: str) -> tuple[str, str] | None:
    for pattern in _FROM_RANGES:
        m = pattern.search(text)
        if m and _DATE_HINT.search(m.group(1)) and _DATE_HINT.search(m.group(2)):
            return m.group(1), m.group(2)

    m = _SIMPLE_RANGE.search(text)
    if m:
        return m.group(1), m.group(2)
    return None


def _parse_range(text: str, reference: date) -> ParsedDateResult | None:
    sides = _split_range(text)
    if sides is None:
        return None
    left, right = sides

    end = _parse_boundary(right, reference)
    anchor = end.value if end.form in _EXPLICIT_MONTH_FORMS else None
    start = _parse_boundary(left, reference, anchor=anchor)

    # "monday to wednesday" said on a Tuesday: the end belongs to the start's week.
    if end.form == "bare_weekday" and start.value and end.value and end.value < start.value:
        weeks = math.ceil((start.value - end.value).days / 7)
        end = end._replace(value=end.value + timedelta(weeks=weeks))

    errors = []
    for side, label in ((start, "start"), (end, "end")):
        if side.value is None:
            if side.error:
                errors.append(side.error)
            errors.append(f"Unable to parse {label} date.")

    if start.value and end.value and end.value < start.value:
        errors.append(INVERTED_RANGE)

    logger.debug(f"Range parse: left={left!r} right={right!r} errors={errors}")
    return ParsedDateResult(
        start_date=start.value.isoformat() if start.value else None,
        end_date=end.value.isoformat() if end.value else None,
        is_range=True,
        errors=errors,
    )


def parse_dates(text: str | None, reference_date: date | None = None) -> ParsedDateResult:
    """
    Parse a single date or a date range out of free text.

    Args:
        text: The user's message
        reference_date: The day "today" refers to. Defaults to the current date.

    Returns:
        ParsedDateResult with ISO dates. ``errors`` is non-empty whenever a
        date could not be resolved or the range is inverted.
    """
    if not text or not text.strip():
        return ParsedDateResult(errors=["No text provided"])

    reference = reference_date or date.today()
    if isinstance(reference, datetime):
        reference = reference.date()
    normalized = " ".join(text.lower().split())

    ranged = _parse_range(normalized, reference)
    if ranged is not None:
        return ranged

    match = _parse_single(normalized, reference)
    if match is None:
        return ParsedDateResult(errors=[UNPARSEABLE_DATE])
    if match.error:
        return ParsedDateResult(errors=[match.error])

    iso = match.value.isoformat()
    return ParsedDateResult(start_date=iso, end_date=iso)


def parse_date(text: str | None, reference_date: date | None = None) -> str | None:
    """Return the first date in ``text`` as ISO, or None."""
    result = parse_dates(text, reference_date)
    return result.start_date if not result.errors else None


def parse_date_range(
    text: str | None, reference_date: date | None = None
) -> tuple[str | None, str | None]:
    """Return ``(start, end)`` ISO dates, both None when the text holds no valid date."""
    result = parse_dates(text, reference_date)
    if result.errors:
        return None, None
    return result.start_date, result.end_date


def to_date(value: date | str | None) -> date | None:
    """Coerce an ISO string (or date) into a ``date``; None when invalid."""
    if isinstance(value, date):
        return value
    if not value or not _ISO.fullmatch(value.strip()):
        return None
    try:
        return isoparse(value.strip()).date()
    except ValueError:
        return None


def calculate_inclusive_days(
    start: date | str | None, end: date | str | None, is_half_day: bool = False
) -> float:
    """
    Count calendar days from ``start`` to ``end`` including both ends.

    Half days count 0.5. Invalid input counts 0 and so does an inverted range.
    """
    start_d = to_date(start)
    end_d = to_date(end)
    if start_d is None or end_d is None:
        return 0
    if is_half_day:
        return 0.5
    return max((end_d - start_d).days + 1, 0)


def project_end_date(start: date | str, duration_days: float | None) -> str | None:
    """End date of a request lasting ``duration_days`` from ``start``."""
    start_d = to_date(start)
    if start_d is None:
        return None
    if not duration_days or duration_days <= 1:
        return start_d.isoformat()
    return (start_d + timedelta(days=math.ceil(duration_days) - 1)).isoformat()


def expand_days(start: date | str, end: date | str) -> list[date]:
    """Every calendar day in ``[start, end]``; empty for invalid or inverted input."""
    start_d = to_date(start)
    end_d = to_date(end)
    if start_d is None or end_d is None or end_d < start_d:
        return []
    return [start_d + timedelta(days=i) for i in range((end_d - start_d).days + 1)]


def is_past_date(value: date | str | None, reference_date: date | None = None) -> bool:
    """True when ``value`` falls strictly before ``reference_date`` (today by default)."""
    value_d = to_date(value)
    if value_d is None:
        return False
    return value_d < (reference_date or date.today())


def format_human_readable(value: date | str | None) -> str:
    """Render a date as "December 15, 2025"; unparseable input is returned unchanged."""
    if isinstance(value, date):
        parsed = value
    else:
        if not value:
            return ""
        try:
            parsed = parser.parse(value).date()
        except (ValueError, OverflowError):
            return value
    return f"{parsed:%B} {parsed.day}, {parsed.year}"
