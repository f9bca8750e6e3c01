"""
Duration detection, independent of any concrete date.

"3 days", "two days", "half day", "half-day", "a halfday" and friends.
Half-day phrasing always wins over a numeric count.
"""

import math
import re

from hr_assistant.models import DurationResult

NUMBER_WORDS = {
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
}

_DURATION = re.compile(
    rf"\b(\d+(?:\.\d+)?|{'|'.join(NUMBER_WORDS)})\s*(?:-\s*)?(?:full\s+|working\s+|business\s+)?days?\b"
)
_HALF_DAY = re.compile(r"\b(?:an?\s+)?half(?:[- ]?a)?[- ]?days?\b")
_HALF_DAY_HINT = re.compile(r"\b(?:morning|afternoon)\b")


def _to_number(token: str) -> float | None:
    if token in NUMBER_WORDS:
        return float(NUMBER_WORDS[token])
    try:
        value = float(token)
    except ValueError:
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def parse_duration(text: str | None) -> DurationResult:
    """
    Detect an explicit day count or half-day phrasing.

    "morning"/"afternoon" only imply a half day when no count was given
    ("sick leave tomorrow morning" is half a day, "2 days from monday
    morning" is two days).
    """
    if not text:
        return DurationResult()

    lowered = text.lower()

    duration = None
    m = _DURATION.search(lowered)
    if m:
        duration = _to_number(m.group(1))

    is_half_day = bool(_HALF_DAY.search(lowered)) or (
        duration is None and bool(_HALF_DAY_HINT.search(lowered))
    )
    if is_half_day:
        return DurationResult(duration_days=0.5, is_half_day=True, has_explicit_duration=True)

    return DurationResult(duration_days=duration, has_explicit_duration=duration is not None)
