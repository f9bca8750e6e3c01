"""
User-facing reply text.

The state machine decides what happened; this module decides how to say it.
Every function returns a plain string (markdown-friendly, no HTML).
"""

from typing import Any

from hr_assistant.date_parser import format_human_readable
from hr_assistant.models import LastRequest, LeaveDetails, WfhDetails
from hr_assistant.validators import RuleViolation

DEFAULT_REASON = "Personal"

_CONFIRM_BUTTONS = "Tap a button below when you're ready, or reply \"Yes\" to submit, \"No\" to cancel or \"Edit\" to change it."


def _days(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value:g} day" if value == 1 else f"{value:g} days"


def date_span(start: str | None, end: str | None) -> str:
    if not start:
        return "-"
    if end and end != start:
        return f"{format_human_readable(start)} to {format_human_readable(end)}"
    return format_human_readable(start)


def _leave_type(details: LeaveDetails) -> str:
    return details.leave_type.value if details.leave_type else "-"


# Verification


def email_prompt(company: str, domain: str) -> str:
    return (
        f"Please enter your {company} email (example@{domain}). "
        "I'll use it to find your employee record."
    )


def invalid_email(domain: str, remaining: int) -> str:
    return (
        f"That doesn't look like a valid @{domain} email address. "
        f"Please try again. Attempts remaining: {remaining}."
    )


def email_not_registered(company: str, remaining: int) -> str:
    return (
        f"This email is not registered as a {company} employee. "
        f"Please provide a different {company} email or contact HR. Attempts remaining: {remaining}."
    )


def verification_locked(company: str) -> str:
    return (
        f"I'm unable to continue because we couldn't verify your {company} email. "
        "Please contact HR for assistance."
    )


def verification_error() -> str:
    return "I ran into an issue verifying your account right now. Please try again in a moment or contact HR."


def email_verified(name: str) -> str:
    first_name = name.split()[0] if name and name.split() else "there"
    return f"Hi {first_name}, your account is verified. How can I help you today?"


def email_change_prompt(company: str, domain: str) -> str:
    return f"No problem, I've cleared your current email. {email_prompt(company, domain)}"


# Confirmation


def confirm_leave(details: LeaveDetails, updated: bool = False) -> str:
    title = "Please confirm your UPDATED leave request:" if updated else "Please confirm your leave request:"
    half_day = " (half day)" if details.is_half_day else ""
    return (
        f"**{title}**\n\n"
        f"- **Type**: {_leave_type(details)}\n"
        f"- **Date**: {date_span(details.start_date, details.end_date)}{half_day}\n"
        f"- **Duration**: {_days(details.duration_days)}\n"
        f"- **Reason**: {details.reason or DEFAULT_REASON}\n\n"
        f"{_CONFIRM_BUTTONS}"
    )


def confirm_wfh(details: WfhDetails, updated: bool = False) -> str:
    title = "Please confirm your UPDATED WFH request:" if updated else "Please confirm your WFH request:"
    return (
        f"**{title}**\n\n"
        f"- **Date**: {date_span(details.date, details.date)}\n"
        f"- **Reason**: {details.reason or DEFAULT_REASON}\n\n"
        f"{_CONFIRM_BUTTONS}"
    )


def leave_created(details: LeaveDetails, record_id: str) -> str:
    return (
        "Leave request created successfully!\n\n"
        f"- Request ID: {record_id}\n"
        f"- Type: {_leave_type(details)}\n"
        f"- Date: {date_span(details.start_date, details.end_date)}\n"
        f"- Duration: {_days(details.duration_days)}\n"
        f"- Reason: {details.reason or DEFAULT_REASON}\n"
        "- Status: Pending Approval\n\n"
        "Your manager has been notified and will review your request shortly."
    )


def wfh_created(details: WfhDetails, record_id: str) -> str:
    return (
        "WFH request created successfully!\n\n"
        f"- Request ID: {record_id}\n"
        f"- Date: {date_span(details.date, details.date)}\n"
        f"- Reason: {details.reason or DEFAULT_REASON}\n"
        "- Status: Approved\n\n"
        "Your manager has been notified."
    )


def already_created(last: LastRequest) -> str:
    if isinstance(last.details, LeaveDetails):
        summary = f"{_leave_type(last.details)} leave on {date_span(last.details.start_date, last.details.end_date)}"
    else:
        summary = f"WFH on {date_span(last.details.date, last.details.date)}"
    return (
        f"All set! Your last request ({summary}) was already created with ID {last.record_id}. "
        "There's nothing awaiting confirmation."
    )


def nothing_pending() -> str:
    return "All set! There's nothing awaiting confirmation."


def nothing_cancelled() -> str:
    return "Nothing was cancelled because there wasn't a pending request."


def request_cancelled() -> str:
    return (
        "Request cancelled. No record was created.\n\n"
        "Would you like to:\n"
        "- Submit a different request?\n"
        "- Check your leave balance?\n"
        "- View the leave policy?"
    )


def confirmation_unclear() -> str:
    return (
        "I didn't understand your response.\n\n"
        "Please reply with:\n"
        '- "Yes" or "Confirm" to submit the request\n'
        '- "No" or "Cancel" to cancel the request\n'
        '- "Edit" to make changes'
    )


# Editing


def no_pending_to_edit() -> str:
    return "There isn't any pending request to edit right now. Start a new request whenever you're ready."


def edit_after_creation(last: LastRequest) -> str:
    kind = "leave" if last.kind == "leave" else "WFH"
    return (
        f"Your {kind} request has already been submitted (ID: {last.record_id}).\n\n"
        "To modify a submitted request, please contact your manager directly, "
        f"or create a new {kind} request."
    )


def edit_leave_fallback(details: LeaveDetails) -> str:
    return (
        "Got it! Let's update your leave request.\n\n"
        "**Current Details:**\n"
        f"- Type: {_leave_type(details)}\n"
        f"- Date: {date_span(details.start_date, details.end_date)}\n"
        f"- Reason: {details.reason or DEFAULT_REASON}\n\n"
        "Please provide the complete NEW information. For example:\n"
        '"Casual leave on 20.12.2025 for family event"'
    )


def edit_wfh_fallback(details: WfhDetails) -> str:
    return (
        "Got it! Let's update your WFH request.\n\n"
        "**Current Details:**\n"
        f"- Date: {date_span(details.date, details.date)}\n"
        f"- Reason: {details.reason or DEFAULT_REASON}\n\n"
        "Please provide the complete NEW information. For example:\n"
        '"WFH on 20.12.2025 for doctor appointment"'
    )


# Applying


def missing_leave_date(details: LeaveDetails) -> str:
    known = f" for {_leave_type(details)} leave" if details.leave_type else ""
    return (
        f"When would you like to take the leave{known}? "
        'You can say things like "tomorrow", "next Friday", "15th December" or "from 15th to 17th December".'
    )


def missing_wfh_date() -> str:
    return 'Which day would you like to work from home? For example "tomorrow" or "WFH on 20.12.2025".'


def validation_error(errors: tuple[str, ...] | list[str], editing: bool = False) -> str:
    primary = errors[0] if errors else "I couldn't understand the dates."
    follow_up = (
        "Please provide corrected dates to continue editing your request."
        if editing
        else "Please rephrase the dates, for example \"15th December\" or \"from 15.12.2025 to 17.12.2025\"."
    )
    return f"{primary}\n\n{follow_up}"


def rule_violation(violation: RuleViolation) -> str:
    return f"Cannot create this request.\n\n{violation.message}"


# Information


def holiday_list(calendar: dict[str, Any]) -> str:
    holidays = calendar.get("holidays", [])
    if not holidays:
        return "There are no company holidays on file for that period."
    lines = [f"**{calendar.get('company', 'Company')} holidays:**", ""]
    for holiday in holidays:
        optional = " (optional)" if holiday.get("optional") else ""
        lines.append(f"- {holiday['display_date']}: {holiday['name']}{optional}")
    notes = calendar.get("notes", {})
    if notes.get("optionalHolidays"):
        lines += ["", notes["optionalHolidays"]]
    return "\n".join(lines)


def leave_policy(policy: dict[str, Any]) -> str:
    lines = [f"**{policy.get('company', 'Company')} leave policy:**", ""]
    for leave_type, details in policy.get("policy", {}).items():
        lines.append(
            f"- **{leave_type}**: {details['annual_allowance']} days per year. {details.get('description', '')}".rstrip()
        )
    rules = policy.get("rules", [])
    if rules:
        lines += ["", "**General rules:**"] + [f"- {rule}" for rule in rules]
    return "\n".join(lines)


def wfh_policy(policy: dict[str, Any]) -> str:
    lines = [f"**{policy.get('company', 'Company')} work-from-home policy:**"]
    for section, items in policy.get("policy", {}).items():
        lines += ["", f"**{section.replace('_', ' ').capitalize()}:**"] + [f"- {item}" for item in items]
    return "\n".join(lines)


def requests_list(records: list[dict[str, Any]]) -> str:
    if not records:
        return "You don't have any leave or WFH requests yet."
    lines = ["**Your requests:**", ""]
    for record in records:
        if record.get("request_type") == "wfh":
            label = "WFH"
        else:
            label = f"{record.get('leave_type', 'LEAVE')} leave"
        lines.append(
            f"- {record.get('id')}: {label}, {date_span(record.get('start_date'), record.get('end_date'))} "
            f"({record.get('status')})"
        )
    return "\n".join(lines)


def balance_summary(balances: dict[str, dict[str, Any]]) -> str:
    lines = ["**Your leave balance:**", ""]
    for leave_type, balance in balances.items():
        lines.append(
            f"- {leave_type}: {balance['remaining']:g} of {balance['total']:g} days remaining "
            f"(used {balance['used']:g})"
        )
    return "\n".join(lines)


# Failures


def collaborator_error(action: str = "process your request") -> str:
    return f"I couldn't {action} right now. Please try again or contact support."


def generic_error() -> str:
    return (
        "I apologize, but I encountered an error processing your request. "
        "Please try again or contact HR support if the issue persists."
    )
