"""
General-query fallback using Google ADK.

Only messages that no structured intent recognises end up here. The agent
can call the deterministic lookup tools for holidays and policies; it never
creates, edits or validates requests.
"""

import asyncio
import logging

from google.adk import Agent
from google.adk.models.lite_llm import LiteLlm
from google.adk.runners import InMemoryRunner
from google.genai import types
from litellm.exceptions import APIConnectionError, RateLimitError, Timeout

from hr_assistant.config import settings
from hr_assistant.errors import FallbackAgentError
from hr_assistant.models import HistoryEntry
from hr_assistant.observability import trace_span
from hr_assistant.tools import AGENT_TOOLS

logger = logging.getLogger(__name__)

AGENT_INSTRUCTION = """You are the Winfomi HR assistant answering general questions from employees.

Leave and work-from-home applications are handled by a separate workflow. If the
employee wants to apply, tell them to describe the request in one message, for
example "Casual leave tomorrow for a family event" or "WFH on Friday".

**Tool Usage**:
- Use get_holiday_calendar() for any question about holidays or working days
- Use get_leave_policy() for allowances, notice periods and leave rules
- Use get_wfh_policy() for work-from-home rules

Never state a policy value or holiday date without calling a tool first.

**Tone**: Friendly, professional and brief.

**When You Don't Know**: For topics outside leave, holidays and WFH (salary,
benefits, payroll), politely redirect the employee to HR.
"""

RATE_LIMIT_REPLY = "I'm receiving a lot of questions right now. Please try again in a minute."
TIMEOUT_REPLY = "That took longer than expected. Please try asking again."
EMPTY_REPLY = "I apologize, but I couldn't generate a response."


class GeneralQueryAgent:
    """
    Thin wrapper around an ADK agent backed by a LiteLLM model.

    Recent conversation turns are folded into the prompt so follow-up
    questions keep their context.
    """

    def __init__(self):
        logger.info("Initializing GeneralQueryAgent")

        self.model = LiteLlm(
            model=settings.litellm_model,
            api_key=settings.openai_api_key,
        )

        self.agent = Agent(
            name="hr_general_assistant",
            model=self.model,
            description="Answers general HR questions about holidays, leave and WFH policies",
            instruction=AGENT_INSTRUCTION,
            tools=AGENT_TOOLS,
        )

        self.app_name = "hr_leave_assistant"
        self.runner = InMemoryRunner(agent=self.agent, app_name=self.app_name)

        # Sessions already registered with the runner's session service
        self.created_sessions: set[str] = set()

        logger.info("GeneralQueryAgent initialized successfully")

    async def _ensure_session_created(self, session_id: str, user_id: str) -> None:
        if session_id not in self.created_sessions:
            await self.runner.session_service.create_session(
                app_name=self.app_name, user_id=user_id, session_id=session_id
            )
            self.created_sessions.add(session_id)
            logger.info(f"Created agent session: {session_id} for user: {user_id}")

    def _compose_prompt(self, message: str, history: list[HistoryEntry]) -> str:
        if not history:
            return message
        lines = [f"{entry.role}: {entry.message}" for entry in history]
        return "Recent conversation:\n" + "\n".join(lines) + f"\n\nEmployee question: {message}"

    async def _run_agent_async(self, prompt: str, session_id: str, user_id: str = "employee") -> str:
        """
        Run the agent using the ADK Runner pattern.

        Returns:
            Text of the final response event, or an empty string
        """
        await self._ensure_session_created(session_id, user_id)

        content = types.Content(role="user", parts=[types.Part(text=prompt)])
        final_response_text = None

        async for event in self.runner.run_async(user_id=user_id, session_id=session_id, new_message=content):
            if event.is_final_response():
                if event.content and event.content.parts:
                    final_response_text = event.content.parts[0].text
                break

        return final_response_text or ""

    async def answer(self, message: str, session_id: str, history: list[HistoryEntry]) -> str:
        """
        Answer a free-text question.

        Rate limits and timeouts come back as friendly replies; any other
        model failure raises ``FallbackAgentError``.
        """
        prompt = self._compose_prompt(message, history)
        try:
            with trace_span("agent_run", session=session_id):
                response_text = await asyncio.wait_for(
                    self._run_agent_async(prompt, session_id), timeout=settings.llm_timeout_seconds
                )
        except RateLimitError as e:
            logger.warning(f"LLM rate limited for session {session_id}: {e}")
            return RATE_LIMIT_REPLY
        except (Timeout, asyncio.TimeoutError) as e:
            logger.warning(f"LLM timed out for session {session_id}: {e}")
            return TIMEOUT_REPLY
        except APIConnectionError as e:
            logger.error(f"LLM connection failed: {e}", exc_info=True)
            raise FallbackAgentError("Language model unreachable") from e
        except Exception as e:
            logger.error(f"Error in agent run: {e}", exc_info=True)
            raise FallbackAgentError("Language model failed to answer") from e

        if not response_text:
            return EMPTY_REPLY
        logger.info(f"Agent response generated for session {session_id}")
        return response_text

    async def reset_session(self, session_id: str, user_id: str = "employee") -> None:
        """Drop the runner session so the next question starts fresh."""
        if session_id in self.created_sessions:
            await self.runner.session_service.delete_session(
                app_name=self.app_name, user_id=user_id, session_id=session_id
            )
            self.created_sessions.discard(session_id)
            logger.info(f"Agent session reset: {session_id}")


# Global agent instance
general_query_agent = None


def get_general_query_agent() -> GeneralQueryAgent:
    """Get or create global agent instance."""
    global general_query_agent
    if general_query_agent is None:
        general_query_agent = GeneralQueryAgent()
    return general_query_agent
