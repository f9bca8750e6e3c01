"""
Deterministic lookup tools.

The state machine calls these directly for holiday and policy questions, and
the general-query agent receives the same functions as ADK tools, so both
paths answer from company data rather than from the model's memory.

Each tool has:
1. A clear function name
2. A docstring (the agent reads it to decide when to call the tool)
3. Type hints with Annotated descriptions
4. A JSON-serializable return value
"""

import logging
from typing import Annotated, Any

from data.company_data import (
    COMPANY_NAME,
    HOLIDAY_NOTES,
    LEAVE_POLICY,
    LEAVE_RULES,
    WFH_POLICY,
    get_holidays,
)
from hr_assistant.date_parser import format_human_readable
from hr_assistant.observability import trace_span

logger = logging.getLogger(__name__)


def get_holiday_calendar(
    year: Annotated[int | None, "Calendar year, e.g. 2025. Omit for every year on file."] = None,
    month: Annotated[int | None, "Month number 1-12. Omit for the whole year."] = None,
) -> Annotated[dict[str, Any], "Company holidays with human-readable dates"]:
    """
    Return the company holiday calendar.

    Use this whenever the user asks which days are holidays, whether a date
    is a holiday, or how many holidays fall in a period.

    Returns:
        Dictionary with:
        - holidays: list of {date, name, type, display_date, optional}
        - notes: working days, weekends and optional-holiday rules
    """
    with trace_span("get_holiday_calendar", year=year or "all", month=month or "all"):
        logger.info(f"Getting holiday calendar: year={year}, month={month}")

        if month is not None and not 1 <= month <= 12:
            return {"error": f"Invalid month: {month}. Must be between 1 and 12.", "success": False}

        holidays = [
            {
                "date": h["date"],
                "name": h["name"],
                "type": h.get("type", "public"),
                "optional": h.get("optional", False),
                "display_date": format_human_readable(h["date"]),
            }
            for h in get_holidays(year, month)
        ]

        return {
            "company": COMPANY_NAME,
            "year": year,
            "month": month,
            "holidays": holidays,
            "notes": dict(HOLIDAY_NOTES),
            "success": True,
        }


def get_leave_policy(
    leave_type: Annotated[
        str | None,
        "Optional leave type (ANNUAL, SICK, CASUAL, MATERNITY, PATERNITY). If omitted returns all.",
    ] = None,
) -> Annotated[dict[str, Any], "Authoritative leave policy information"]:
    """
    Return official leave policy rules.

    This is the single source of truth for allowances, notice periods and
    documentation requirements. Never state policy values without calling it.
    """
    with trace_span("get_leave_policy", leave_type=leave_type or "all"):
        logger.info(f"Getting leave policy: leave_type={leave_type}")

        if leave_type:
            key = leave_type.strip().upper().replace(" LEAVE", "")
            policy = LEAVE_POLICY.get(key)
            if policy is None:
                return {
                    "error": f"Leave type '{leave_type}' not found. "
                    f"Valid types: {', '.join(LEAVE_POLICY)}.",
                    "success": False,
                }
            policies = {key: dict(policy)}
        else:
            policies = {name: dict(policy) for name, policy in LEAVE_POLICY.items()}

        return {
            "company": COMPANY_NAME,
            "leave_type": leave_type or "all",
            "policy": policies,
            "rules": list(LEAVE_RULES),
            "success": True,
        }


def get_wfh_policy() -> Annotated[dict[str, Any], "Authoritative work-from-home policy"]:
    """
    Return the work-from-home policy: eligibility, process, requirements and
    the days on which WFH is not allowed.
    """
    with trace_span("get_wfh_policy"):
        logger.info("Getting WFH policy")
        return {
            "company": COMPANY_NAME,
            "policy": {section: list(items) for section, items in WFH_POLICY.items()},
            "success": True,
        }


# Exported to the general-query agent
AGENT_TOOLS = [get_holiday_calendar, get_leave_policy, get_wfh_policy]
