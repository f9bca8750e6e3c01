"""
Tests for intent detection.
Target: 95% coverage
"""

import pytest

from hr_assistant.intent_detector import (
    APPLY_LEAVE,
    APPLY_WFH,
    GENERAL_QUERY,
    HOLIDAY_LIST,
    INTENT_RULES,
    LEAVE_BALANCE,
    LEAVE_POLICY,
    LIST_REQUESTS,
    WFH_POLICY,
    detect_intent,
    mentions_leave,
    mentions_wfh,
)


class TestDetectIntent:
    """Test the ordered rule table."""

    @pytest.mark.parametrize(
        "message,expected",
        [
            ("I want to apply for leave tomorrow", APPLY_LEAVE),
            ("I need sick leave", APPLY_LEAVE),
            ("leave on 20th December", APPLY_LEAVE),
            ("I will be absent on Friday", APPLY_LEAVE),
            ("wfh tomorrow", APPLY_WFH),
            ("work from home next monday", APPLY_WFH),
            ("what is the wfh policy", WFH_POLICY),
            ("show me the holiday list", HOLIDAY_LIST),
            ("which holidays are there in December", HOLIDAY_LIST),
            ("how many leaves do I have left", LEAVE_BALANCE),
            ("what is the sick leave policy", LEAVE_POLICY),
            ("show my requests", LIST_REQUESTS),
            ("what's the status of my leave applications", LIST_REQUESTS),
            ("hello", GENERAL_QUERY),
            ("tell me a joke", GENERAL_QUERY),
        ],
    )
    def test_detects_intent(self, message, expected):
        """Each message resolves to the first matching rule."""
        assert detect_intent(message) == expected

    def test_case_and_whitespace_are_ignored(self):
        """Detection runs on normalized text."""
        assert detect_intent("  WFH   Tomorrow ") == APPLY_WFH

    def test_empty_message_is_general_query(self):
        """No text means no intent."""
        assert detect_intent("") == GENERAL_QUERY
        assert detect_intent(None) == GENERAL_QUERY

    def test_list_requests_has_top_priority(self):
        """Listing requests beats the WFH rules."""
        assert INTENT_RULES[0].intent == LIST_REQUESTS
        assert detect_intent("show my wfh requests") == LIST_REQUESTS

    def test_dated_policy_question_is_an_application(self):
        """A date turns a "what is" leave question into an application."""
        assert detect_intent("what is my leave on 20th December") == APPLY_LEAVE


class TestMentions:
    """Test the keyword helpers."""

    def test_mentions_leave(self):
        assert mentions_leave("Planning a Vacation") is True
        assert mentions_leave("hello there") is False

    def test_mentions_wfh(self):
        assert mentions_wfh("Working from home") is True
        assert mentions_wfh("leave tomorrow") is False
