"""
Table-driven intent detection.

Each rule pairs an intent with a predicate over the lowercased message. The
first rule whose predicate holds wins; nothing matching means
``general_query``. Keeping the rules as data makes each one testable on its
own and lets new intents slot in at an explicit priority.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass

APPLY_LEAVE = "apply_leave"
APPLY_WFH = "apply_wfh"
HOLIDAY_LIST = "holiday_list"
LEAVE_POLICY = "leave_policy"
WFH_POLICY = "wfh_policy"
LIST_REQUESTS = "list_requests"
LEAVE_BALANCE = "leave_balance"
GENERAL_QUERY = "general_query"

WFH_KEYWORDS = re.compile(r"\b(?:wfh|work(?:ing)? from home|remote work|work remotely)\b")
LEAVE_KEYWORDS = re.compile(r"\b(?:leaves?|vacation|time off|pto|absent|absence|days? off)\b")
HOLIDAY_KEYWORDS = re.compile(r"\bholidays?\b")
POLICY_KEYWORDS = re.compile(
    r"\b(?:policy|policies|rules?|guidelines?|allowed|eligib\w*|entitle\w*)\b"
    r"|\bhow (?:many|much|does|do)\b|\bwhat (?:is|are)\b|\bexplain\b"
)
BALANCE_KEYWORDS = re.compile(
    r"\b(?:balance|remaining|left|available|quota)\b|\bhow many (?:leaves?|days?)\b.*\b(?:have|got)\b"
)
LIST_KEYWORDS = re.compile(r"\b(?:list|show|view|display|see|calendar|upcoming)\b")
REQUEST_NOUNS = re.compile(
    r"\b(?:requests|applications|submissions|my leaves|leave history|request status)\b"
)
APPLY_INDICATORS = re.compile(
    r"\b(?:apply|applying|request|book|take|taking|need|want|planning|going to|will be)\b"
    r"|\b(?:sick|casual|annual|maternity|paternity)\s+leave\b"
)
DATE_INDICATORS = re.compile(
    r"\b(?:today|tomorrow|yesterday|monday|tuesday|wednesday|thursday|friday|saturday|sunday"
    r"|january|february|march|april|june|july|august|september|october|november|december"
    r"|jan|feb|mar|apr|jun|jul|aug|sept?|oct|nov|dec)\b"
    r"|\b(?:next|this|coming)\s+(?:week|month)\b"
    r"|\b\d{1,2}(?:st|nd|rd|th)\b|\b\d{1,2}[./-]\d{1,2}\b|\b\d{4}-\d{2}-\d{2}\b|\bhalf[- ]?day\b"
)


@dataclass(frozen=True)
class IntentRule:
    intent: str
    matches: Callable[[str], bool]


def _is_list_requests(text: str) -> bool:
    return bool(REQUEST_NOUNS.search(text)) and bool(
        LIST_KEYWORDS.search(text) or re.search(r"\b(?:my|status|pending)\b", text)
    )


def _is_wfh_policy(text: str) -> bool:
    return bool(WFH_KEYWORDS.search(text)) and bool(POLICY_KEYWORDS.search(text))


def _is_apply_wfh(text: str) -> bool:
    return bool(WFH_KEYWORDS.search(text))


def _is_holiday_list(text: str) -> bool:
    return bool(HOLIDAY_KEYWORDS.search(text)) and bool(
        LIST_KEYWORDS.search(text) or re.search(r"\b(?:which|what|when|any)\b", text)
    )


def _is_leave_balance(text: str) -> bool:
    return bool(LEAVE_KEYWORDS.search(text)) and bool(BALANCE_KEYWORDS.search(text))


def _is_leave_policy(text: str) -> bool:
    return bool(LEAVE_KEYWORDS.search(text) or HOLIDAY_KEYWORDS.search(text)) and bool(
        POLICY_KEYWORDS.search(text)
    ) and not DATE_INDICATORS.search(text)


def _is_apply_leave(text: str) -> bool:
    return bool(LEAVE_KEYWORDS.search(text) or HOLIDAY_KEYWORDS.search(text)) and bool(
        APPLY_INDICATORS.search(text) or DATE_INDICATORS.search(text)
    )


INTENT_RULES: list[IntentRule] = [
    IntentRule(LIST_REQUESTS, _is_list_requests),
    IntentRule(WFH_POLICY, _is_wfh_policy),
    IntentRule(APPLY_WFH, _is_apply_wfh),
    IntentRule(HOLIDAY_LIST, _is_holiday_list),
    IntentRule(LEAVE_BALANCE, _is_leave_balance),
    IntentRule(LEAVE_POLICY, _is_leave_policy),
    IntentRule(APPLY_LEAVE, _is_apply_leave),
]


def detect_intent(message: str | None) -> str:
    """Return the first matching intent for ``message``, else ``general_query``."""
    if not message:
        return GENERAL_QUERY
    text = " ".join(message.lower().split())
    for rule in INTENT_RULES:
        if rule.matches(text):
            return rule.intent
    return GENERAL_QUERY


def mentions_leave(message: str) -> bool:
    return bool(LEAVE_KEYWORDS.search(message.lower()))


def mentions_wfh(message: str) -> bool:
    return bool(WFH_KEYWORDS.search(message.lower()))
