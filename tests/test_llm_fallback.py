"""
Tests for the general-query fallback agent.
The ADK runner is never executed; _run_agent_async is patched per test.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from hr_assistant.errors import FallbackAgentError
from hr_assistant.llm_fallback import EMPTY_REPLY, TIMEOUT_REPLY, GeneralQueryAgent
from hr_assistant.models import HistoryEntry
from hr_assistant.tools import AGENT_TOOLS

NOW = datetime(2025, 12, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def agent():
    return GeneralQueryAgent()


class TestGeneralQueryAgent:
    """Test the agent wrapper around the ADK runner."""

    def test_agent_has_lookup_tools(self, agent):
        assert agent.agent.name == "hr_general_assistant"
        assert len(agent.agent.tools) == len(AGENT_TOOLS)

    def test_prompt_includes_history(self, agent):
        history = [
            HistoryEntry(role="user", message="what holidays are there", intent="holiday_list", timestamp=NOW),
            HistoryEntry(role="assistant", message="Christmas", intent="holiday_list", timestamp=NOW),
        ]
        prompt = agent._compose_prompt("and next year?", history)

        assert prompt.startswith("Recent conversation:\nuser: what holidays are there\nassistant: Christmas")
        assert prompt.endswith("Employee question: and next year?")

    def test_prompt_without_history(self, agent):
        assert agent._compose_prompt("hello", []) == "hello"

    def test_answer_returns_model_text(self, agent):
        with patch.object(agent, "_run_agent_async", AsyncMock(return_value="Christmas is a holiday.")):
            assert asyncio.run(agent.answer("holidays?", "s1", [])) == "Christmas is a holiday."

    def test_empty_response(self, agent):
        with patch.object(agent, "_run_agent_async", AsyncMock(return_value="")):
            assert asyncio.run(agent.answer("hmm", "s1", [])) == EMPTY_REPLY

    def test_timeout_is_a_friendly_reply(self, agent):
        with patch.object(agent, "_run_agent_async", AsyncMock(side_effect=asyncio.TimeoutError())):
            assert asyncio.run(agent.answer("hmm", "s1", [])) == TIMEOUT_REPLY

    def test_model_failure_raises(self, agent):
        """Unexpected model errors surface as a collaborator failure."""
        with patch.object(agent, "_run_agent_async", AsyncMock(side_effect=RuntimeError("bad gateway"))):
            with pytest.raises(FallbackAgentError):
                asyncio.run(agent.answer("hmm", "s1", []))

    def test_reset_session(self, agent):
        agent.created_sessions.add("s1")
        with patch.object(agent.runner, "session_service") as service:
            service.delete_session = AsyncMock()
            asyncio.run(agent.reset_session("s1"))

        service.delete_session.assert_awaited_once_with(
            app_name="hr_leave_assistant", user_id="employee", session_id="s1"
        )
        assert "s1" not in agent.created_sessions

    def test_reset_unknown_session_is_a_noop(self, agent):
        asyncio.run(agent.reset_session("never-seen"))
        assert agent.created_sessions == set()
