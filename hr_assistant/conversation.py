"""
Conversation state machine.

Each chat turn is routed by the session's phase:

    LOCKED                -> fixed "contact HR" reply
    UNVERIFIED            -> ask for / verify the company email
    AWAITING_EMAIL        -> verify the email, counting failed attempts
    IDLE                  -> detect intent and dispatch (apply, list, policy, ...)
    PENDING_CONFIRMATION  -> edit, confirm (commit) or cancel the pending request

The phase is derived from the session context, never stored. Handlers return
a ``TurnResult``; ``handle_turn`` wraps it with the phase the session ends up
in. Business rules run before a request is placed into pending confirmation
and again right before it is committed, because the record store may have
changed in between.

``handle_turn`` never raises: collaborator failures become a "try again"
reply and anything unexpected becomes a generic error reply.
"""

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Any, Protocol

from data.company_data import COMPANY_NAME, get_holidays
from hr_assistant import replies
from hr_assistant.config import Settings, settings as default_settings
from hr_assistant.date_parser import INVERTED_RANGE, MONTHS, calculate_inclusive_days, to_date
from hr_assistant.entity_extractor import (
    explicit_leave_type,
    extract_confirmation,
    extract_email,
    extract_leave_details,
    extract_wfh_details,
    is_edit_request,
    is_email_change_request,
    is_valid_company_email,
)
from hr_assistant.errors import CollaboratorError, RecordStoreError
from hr_assistant.intent_detector import (
    APPLY_LEAVE,
    APPLY_WFH,
    GENERAL_QUERY,
    HOLIDAY_LIST,
    LEAVE_BALANCE,
    LEAVE_POLICY,
    LIST_REQUESTS,
    WFH_POLICY,
    detect_intent,
    mentions_leave,
    mentions_wfh,
)
from hr_assistant.llm_fallback import get_general_query_agent
from hr_assistant.models import (
    HistoryEntry,
    LeaveDetails,
    LeaveType,
    RequestDetails,
    SessionContext,
    WfhDetails,
)
from hr_assistant.observability import trace_span
from hr_assistant.record_store import RecordStore, build_record_store
from hr_assistant.session_store import SessionStore
from hr_assistant.tools import get_holiday_calendar, get_leave_policy, get_wfh_policy
from hr_assistant.validators import (
    BALANCE,
    HOLIDAY,
    OVERLAP,
    PAST_DATE,
    RuleViolation,
    check_balance,
    check_holiday_conflict,
    check_overlap,
    check_past_date,
)

logger = logging.getLogger(__name__)

EDIT_OVERRIDES = frozenset({"edit_leave", "edit_wfh"})
CONFIRMATION_ACTIONS = frozenset({"yes", "no"})
FALLBACK_HISTORY = 3

LEAVE_VIOLATION_INTENTS = {
    HOLIDAY: "leave_on_holiday",
    PAST_DATE: "past_date",
    OVERLAP: "leave_overlap",
    BALANCE: "leave_balance_insufficient",
}
WFH_VIOLATION_INTENTS = {**LEAVE_VIOLATION_INTENTS, HOLIDAY: "wfh_on_holiday"}

_YEAR = re.compile(r"\b(20\d{2})\b")
_IN_MAY = re.compile(r"\b(?:in|of|for|during)\s+may\b")


class Phase(str, Enum):
    LOCKED = "locked"
    UNVERIFIED = "unverified"
    AWAITING_EMAIL = "awaiting_email"
    IDLE = "idle"
    PENDING_CONFIRMATION = "pending_confirmation"


@dataclass(frozen=True)
class TurnEvent:
    """One inbound chat message plus the optional structured UI fields."""

    session_id: str
    message: str
    employee_email: str | None = None
    confirmation_action: str | None = None
    intent_override: str | None = None
    edit_details: dict[str, Any] | None = None


@dataclass(frozen=True)
class TurnResult:
    reply: str
    intent: str
    show_buttons: bool = False
    pending_request: dict[str, Any] | None = None
    record_id: str | None = None


@dataclass(frozen=True)
class Transition:
    phase: Phase
    result: TurnResult


class FallbackAgent(Protocol):
    async def answer(self, message: str, session_id: str, history: list[HistoryEntry]) -> str: ...

    async def reset_session(self, session_id: str) -> None: ...


def derive_phase(context: SessionContext) -> Phase:
    if context.email_verification_locked:
        return Phase.LOCKED
    if not context.is_verified:
        return Phase.AWAITING_EMAIL if context.awaiting_email else Phase.UNVERIFIED
    if context.pending_confirmation is not None:
        return Phase.PENDING_CONFIRMATION
    return Phase.IDLE


def holiday_period(message: str, today: date) -> tuple[int, int | None]:
    """Year and optional month a holiday question is about."""
    lowered = message.lower()
    year_match = _YEAR.search(lowered)
    year = int(year_match.group(1)) if year_match else today.year
    for word in re.findall(r"[a-z]+", lowered):
        if word in MONTHS and (word != "may" or _IN_MAY.search(lowered)):
            return year, MONTHS[word]
    return year, None


Handler = Callable[[TurnEvent, SessionContext], Awaitable[TurnResult]]


class ConversationStateMachine:
    """
    Drives one chat session from email verification to committed requests.

    Collaborators are injected: the session store, the record store, an
    optional general-query fallback, the holiday calendar and a ``today``
    clock, so tests can pin every one of them.
    """

    def __init__(
        self,
        session_store: SessionStore,
        record_store: RecordStore,
        fallback: FallbackAgent | None = None,
        holidays_provider: Callable[[], list[dict]] = get_holidays,
        today: Callable[[], date] = date.today,
        settings: Settings | None = None,
    ):
        self.sessions = session_store
        self.records = record_store
        self.fallback = fallback
        self._holidays = holidays_provider
        self._today = today
        self.settings = settings or default_settings

        self._phase_handlers: dict[Phase, Handler] = {
            Phase.LOCKED: self._handle_locked,
            Phase.UNVERIFIED: self._handle_verification,
            Phase.AWAITING_EMAIL: self._handle_verification,
            Phase.IDLE: self._handle_idle,
            Phase.PENDING_CONFIRMATION: self._handle_pending,
        }
        self._intent_handlers: dict[str, Handler] = {
            APPLY_LEAVE: self._apply_leave,
            APPLY_WFH: self._apply_wfh,
            HOLIDAY_LIST: self._holiday_list,
            LEAVE_POLICY: self._leave_policy,
            WFH_POLICY: self._wfh_policy,
            LIST_REQUESTS: self._list_requests,
            LEAVE_BALANCE: self._leave_balance,
            GENERAL_QUERY: self._general_query,
        }

    async def handle_turn(self, event: TurnEvent) -> Transition:
        """Process one message and return the resulting phase and reply."""
        sid = event.session_id
        with trace_span("chat_turn", session=sid):
            for removed in self.sessions.sweep():
                await self._drop_fallback_session(removed)
            context = self.sessions.get_context(sid)
            phase = derive_phase(context)
            logger.info(f"Session {sid} turn in phase {phase.value}")

            try:
                result = await self._phase_handlers[phase](event, context)
            except CollaboratorError as e:
                logger.error(f"Collaborator failure in session {sid}: {e}", exc_info=True)
                result = TurnResult(reply=replies.collaborator_error(), intent="error")
            except Exception as e:
                logger.error(f"Unexpected error in session {sid}: {e}", exc_info=True)
                result = TurnResult(reply=replies.generic_error(), intent="error")

            self.sessions.add_to_history(sid, "user", event.message, result.intent)
            self.sessions.add_to_history(sid, "assistant", result.reply, result.intent)
            return Transition(phase=derive_phase(self.sessions.get_context(sid)), result=result)

    async def reset_session(self, session_id: str) -> None:
        """Forget everything about a session, including the fallback agent's memory of it."""
        self.sessions.clear_context(session_id)
        await self._drop_fallback_session(session_id)

    async def _drop_fallback_session(self, session_id: str) -> None:
        if self.fallback is not None:
            await self.fallback.reset_session(session_id)

    # Record store access

    async def _store_call(self, operation: str, *args: Any) -> dict[str, Any]:
        """Call the record store; a ``success: False`` answer is a collaborator failure."""
        with trace_span(f"record_store.{operation}"):
            result = await getattr(self.records, operation)(*args)
        if not result.get("success"):
            raise RecordStoreError(f"{operation} failed: {result.get('error', 'unknown error')}")
        return result

    # Locked and verification phases

    async def _handle_locked(self, event: TurnEvent, context: SessionContext) -> TurnResult:
        return TurnResult(reply=replies.verification_locked(COMPANY_NAME), intent="email_verification_locked")

    def _request_email(self, sid: str, change: bool = False) -> TurnResult:
        self.sessions.set_awaiting_email(sid)
        domain = self.settings.company_email_domain
        reply = (
            replies.email_change_prompt(COMPANY_NAME, domain)
            if change
            else replies.email_prompt(COMPANY_NAME, domain)
        )
        return TurnResult(reply=reply, intent="request_email")

    def _failed_attempt(self, sid: str, reply_for_remaining: Callable[[int], str]) -> TurnResult:
        self.sessions.increment_email_attempts(sid)
        if self.sessions.is_email_verification_locked(sid):
            return TurnResult(reply=replies.verification_locked(COMPANY_NAME), intent="email_verification_failed")
        remaining = self.sessions.remaining_email_attempts(sid)
        return TurnResult(reply=reply_for_remaining(remaining), intent="request_email")

    async def _handle_verification(self, event: TurnEvent, context: SessionContext) -> TurnResult:
        sid = event.session_id
        domain = self.settings.company_email_domain

        if is_email_change_request(event.message):
            self.sessions.clear_employee_profile(sid)
            return self._request_email(sid, change=True)

        candidate = extract_email(event.message) or extract_email(event.employee_email)
        if candidate is None and not context.awaiting_email:
            return self._request_email(sid)
        if candidate is None or not is_valid_company_email(candidate, domain):
            logger.info(f"Session {sid}: rejected email candidate {candidate!r}")
            return self._failed_attempt(sid, lambda remaining: replies.invalid_email(domain, remaining))

        try:
            with trace_span("record_store.lookup_user_by_email", email=candidate):
                lookup = await self.records.lookup_user_by_email(candidate)
        except CollaboratorError as e:
            logger.error(f"Email lookup failed for session {sid}: {e}", exc_info=True)
            self.sessions.set_awaiting_email(sid)
            return TurnResult(reply=replies.verification_error(), intent="email_verification_error")

        if not lookup.get("success") or not lookup.get("user"):
            return self._failed_attempt(
                sid, lambda remaining: replies.email_not_registered(COMPANY_NAME, remaining)
            )

        user = lookup["user"]
        self.sessions.set_employee_profile(sid, user["id"], user["name"], user["email"])
        return TurnResult(reply=replies.email_verified(user["name"]), intent="email_verified")

    # Idle phase

    async def _handle_idle(self, event: TurnEvent, context: SessionContext) -> TurnResult:
        sid = event.session_id
        message = event.message

        if is_email_change_request(message):
            self.sessions.clear_employee_profile(sid)
            return self._request_email(sid, change=True)

        confirmation = self._confirmation(event)
        if confirmation == "yes":
            last = context.last_request
            reply = replies.already_created(last) if last else replies.nothing_pending()
            return TurnResult(reply=reply, intent="no_pending_confirmation")
        if confirmation == "no":
            return TurnResult(reply=replies.nothing_cancelled(), intent="no_pending_confirmation")

        edit_override = event.intent_override in EDIT_OVERRIDES
        if edit_override and context.last_request is None:
            return TurnResult(reply=replies.no_pending_to_edit(), intent="no_pending_confirmation")
        if (edit_override or is_edit_request(message)) and context.last_request is not None:
            return TurnResult(reply=replies.edit_after_creation(context.last_request), intent="edit_after_creation")

        intent = detect_intent(message)
        logger.info(f"Session {sid}: detected intent {intent}")

        awaiting = context.awaiting_leave_details
        if awaiting is not None:
            if intent in (APPLY_LEAVE, GENERAL_QUERY):
                details = extract_leave_details(message, self._today())
                if details.start_date or details.errors:
                    merged = replace(
                        details,
                        leave_type=details.leave_type or awaiting.leave_type,
                        reason=details.reason or awaiting.reason,
                    )
                    return await self._apply_leave(event, context, merged)
            else:
                self.sessions.clear_awaiting_leave_details(sid)

        return await self._intent_handlers[intent](event, context)

    def _confirmation(self, event: TurnEvent) -> str | None:
        action = (event.confirmation_action or "").strip().lower()
        if action in CONFIRMATION_ACTIONS:
            return action
        return extract_confirmation(event.message)

    # Applying

    def _leave_defaults(self, details: LeaveDetails, context: SessionContext) -> LeaveDetails:
        return replace(
            details,
            leave_type=details.leave_type or LeaveType.CASUAL,
            reason=details.reason or replies.DEFAULT_REASON,
            employee_name=context.employee_name or details.employee_name,
        )

    def _wfh_defaults(self, details: WfhDetails, context: SessionContext) -> WfhDetails:
        return replace(
            details,
            reason=details.reason or replies.DEFAULT_REASON,
            employee_name=context.employee_name or details.employee_name,
        )

    async def _validate_leave(
        self, context: SessionContext, details: LeaveDetails, include_balance: bool
    ) -> RuleViolation | None:
        """Holiday, past date, overlap and (optionally) balance, in that order."""
        start, end = details.start_date, details.end_date or details.start_date

        violation = check_holiday_conflict(start, end, self._holidays())
        if violation:
            return violation

        violation = check_past_date(start, self._today(), allow_past=self.settings.allow_backdated_leave)
        if violation:
            return violation

        overlap = await self._store_call("check_leave_overlap", context.user_email, start, end)
        violation = check_overlap(overlap.get("overlapping_leaves", []), start, end)
        if violation:
            self.sessions.save_leave_conflict(
                context.session_id,
                {"existing": violation.data["existing"], "requested": details.to_dict()},
            )
            return violation

        if include_balance and details.leave_type:
            days = details.duration_days or calculate_inclusive_days(start, end, details.is_half_day)
            balance = await self._store_call(
                "check_leave_balance", context.user_email, details.leave_type.value, days
            )
            return check_balance(balance, days)
        return None

    async def _validate_wfh(self, context: SessionContext, details: WfhDetails) -> RuleViolation | None:
        """Past date, holiday (when configured) and leave overlap, in that order."""
        violation = check_past_date(details.date, self._today(), allow_past=self.settings.allow_backdated_leave)
        if violation:
            return violation

        if self.settings.wfh_block_holidays:
            violation = check_holiday_conflict(details.date, details.date, self._holidays())
            if violation:
                return violation

        overlap = await self._store_call("check_leave_overlap", context.user_email, details.date, details.date)
        return check_overlap(overlap.get("overlapping_leaves", []), details.date, details.date)

    def _violation_result(self, violation: RuleViolation, kind: str) -> TurnResult:
        intents = LEAVE_VIOLATION_INTENTS if kind == "leave" else WFH_VIOLATION_INTENTS
        logger.info(f"Request blocked by {violation.rule} rule")
        return TurnResult(reply=replies.rule_violation(violation), intent=intents[violation.rule])

    def _pending_result(self, details: RequestDetails, pending: dict[str, Any], updated: bool) -> TurnResult:
        if isinstance(details, LeaveDetails):
            return TurnResult(
                reply=replies.confirm_leave(details, updated=updated),
                intent="confirm_leave",
                show_buttons=True,
                pending_request=pending,
            )
        return TurnResult(
            reply=replies.confirm_wfh(details, updated=updated),
            intent="confirm_wfh",
            show_buttons=True,
            pending_request=pending,
        )

    async def _apply_leave(
        self, event: TurnEvent, context: SessionContext, details: LeaveDetails | None = None
    ) -> TurnResult:
        sid = event.session_id
        if details is None:
            details = extract_leave_details(event.message, self._today())

        if details.errors:
            return TurnResult(reply=replies.validation_error(details.errors), intent="validation_error")
        if not details.start_date:
            self.sessions.set_awaiting_leave_details(sid, details)
            return TurnResult(reply=replies.missing_leave_date(details), intent="missing_leave_date")

        details = self._leave_defaults(details, context)
        violation = await self._validate_leave(context, details, include_balance=True)
        if violation:
            return self._violation_result(violation, "leave")

        pending = self.sessions.set_pending_confirmation(sid, details)
        logger.info(f"Session {sid}: leave request awaiting confirmation")
        return self._pending_result(details, pending.to_dict(), updated=False)

    async def _apply_wfh(self, event: TurnEvent, context: SessionContext) -> TurnResult:
        sid = event.session_id
        details = extract_wfh_details(event.message, self._today())

        if details.errors:
            return TurnResult(reply=replies.validation_error(details.errors), intent="validation_error")
        if not details.date:
            return TurnResult(reply=replies.missing_wfh_date(), intent="missing_wfh_date")

        details = self._wfh_defaults(details, context)
        violation = await self._validate_wfh(context, details)
        if violation:
            return self._violation_result(violation, "wfh")

        pending = self.sessions.set_pending_confirmation(sid, details)
        logger.info(f"Session {sid}: WFH request awaiting confirmation")
        return self._pending_result(details, pending.to_dict(), updated=False)

    # Information intents

    async def _holiday_list(self, event: TurnEvent, context: SessionContext) -> TurnResult:
        year, month = holiday_period(event.message, self._today())
        calendar = get_holiday_calendar(year=year, month=month)
        return TurnResult(reply=replies.holiday_list(calendar), intent=HOLIDAY_LIST)

    async def _leave_policy(self, event: TurnEvent, context: SessionContext) -> TurnResult:
        leave_type = explicit_leave_type(event.message)
        policy = get_leave_policy(leave_type.value if leave_type else None)
        return TurnResult(reply=replies.leave_policy(policy), intent=LEAVE_POLICY)

    async def _wfh_policy(self, event: TurnEvent, context: SessionContext) -> TurnResult:
        return TurnResult(reply=replies.wfh_policy(get_wfh_policy()), intent=WFH_POLICY)

    async def _list_requests(self, event: TurnEvent, context: SessionContext) -> TurnResult:
        result = await self._store_call("list_requests", context.user_email)
        return TurnResult(reply=replies.requests_list(result.get("records", [])), intent=LIST_REQUESTS)

    async def _leave_balance(self, event: TurnEvent, context: SessionContext) -> TurnResult:
        requested = explicit_leave_type(event.message)
        leave_types = [requested] if requested else list(LeaveType)
        balances = {}
        for leave_type in leave_types:
            balances[leave_type.value] = await self._store_call(
                "check_leave_balance", context.user_email, leave_type.value, 0
            )
        return TurnResult(reply=replies.balance_summary(balances), intent=LEAVE_BALANCE)

    async def _general_query(self, event: TurnEvent, context: SessionContext) -> TurnResult:
        message = event.message
        today = self._today()

        if mentions_leave(message) and extract_leave_details(message, today).start_date:
            return await self._apply_leave(event, context)
        if mentions_wfh(message) and extract_wfh_details(message, today).date:
            return await self._apply_wfh(event, context)

        if self.fallback is None:
            return TurnResult(
                reply="I can help you apply for leave or WFH, check holidays, policies, your balance and your requests.",
                intent=GENERAL_QUERY,
            )

        history = self.sessions.get_history(event.session_id, FALLBACK_HISTORY)
        with trace_span("llm_fallback", session=event.session_id):
            reply = await self.fallback.answer(message, event.session_id, history)
        return TurnResult(reply=reply, intent=GENERAL_QUERY)

    # Pending confirmation phase

    async def _handle_pending(self, event: TurnEvent, context: SessionContext) -> TurnResult:
        sid = event.session_id
        pending = context.pending_confirmation
        button = (event.confirmation_action or "").strip().lower() in CONFIRMATION_ACTIONS

        if is_email_change_request(event.message):
            self.sessions.clear_employee_profile(sid)
            return self._request_email(sid, change=True)

        if not button and (event.intent_override in EDIT_OVERRIDES or is_edit_request(event.message)):
            if pending.kind == "leave":
                return await self._edit_leave(event, context, pending.details)
            if pending.kind == "wfh":
                return await self._edit_wfh(event, context, pending.details)
            raise ValueError(f"Unknown pending request kind: {pending.kind}")

        confirmation = self._confirmation(event)
        if confirmation == "yes":
            return await self._commit(event, context)
        if confirmation == "no":
            self.sessions.clear_pending_confirmation(sid)
            logger.info(f"Session {sid}: pending {pending.kind} request cancelled")
            return TurnResult(reply=replies.request_cancelled(), intent="confirmation_no")
        return TurnResult(reply=replies.confirmation_unclear(), intent="confirmation_unclear")

    def _leave_from_form(self, form: dict[str, Any], current: LeaveDetails) -> LeaveDetails:
        start = form.get("startDate") or current.start_date
        end = form.get("endDate") or (start if form.get("startDate") else current.end_date) or start
        leave_type = current.leave_type
        if form.get("leaveType"):
            try:
                leave_type = LeaveType(str(form["leaveType"]).upper())
            except ValueError:
                return replace(current, errors=(f"Unknown leave type \"{form['leaveType']}\".",))
        is_half_day = bool(form.get("isHalfDay", current.is_half_day)) and start == end

        errors: tuple[str, ...] = ()
        start_d, end_d = to_date(start), to_date(end)
        if start_d is None:
            errors = (f'Invalid date in "{start}".',)
        elif end_d is None:
            errors = (f'Invalid date in "{end}".',)
        elif end_d < start_d:
            errors = (INVERTED_RANGE,)

        return replace(
            current,
            start_date=start,
            end_date=end,
            leave_type=leave_type,
            reason=form.get("reason") or current.reason,
            is_half_day=is_half_day,
            duration_days=calculate_inclusive_days(start, end, is_half_day) if not errors else current.duration_days,
            errors=errors,
        )

    def _leave_from_message(self, message: str, current: LeaveDetails) -> LeaveDetails | None:
        """Overlay whatever the message mentions onto ``current``; None when it mentions nothing."""
        extracted = extract_leave_details(message, self._today())
        if extracted.errors:
            return replace(current, errors=extracted.errors)
        if not (extracted.start_date or extracted.leave_type or extracted.reason):
            return None
        updated = replace(
            current,
            leave_type=extracted.leave_type or current.leave_type,
            reason=extracted.reason or current.reason,
        )
        if extracted.start_date:
            updated = replace(
                updated,
                start_date=extracted.start_date,
                end_date=extracted.end_date,
                duration_days=extracted.duration_days,
                is_half_day=extracted.is_half_day,
            )
        return updated

    async def _edit_leave(self, event: TurnEvent, context: SessionContext, current: LeaveDetails) -> TurnResult:
        sid = event.session_id
        if isinstance(event.edit_details, dict) and event.edit_details:
            updated = self._leave_from_form(event.edit_details, current)
        else:
            updated = self._leave_from_message(event.message, current)

        if updated is None:
            return TurnResult(reply=replies.edit_leave_fallback(current), intent="edit_request")
        if updated.errors:
            return TurnResult(
                reply=replies.validation_error(updated.errors, editing=True), intent="validation_error"
            )

        updated = self._leave_defaults(updated, context)
        violation = await self._validate_leave(context, updated, include_balance=True)
        if violation:
            return self._violation_result(violation, "leave")

        pending = self.sessions.set_pending_confirmation(sid, updated, replace=True)
        logger.info(f"Session {sid}: pending leave request updated")
        return self._pending_result(updated, pending.to_dict(), updated=True)

    async def _edit_wfh(self, event: TurnEvent, context: SessionContext, current: WfhDetails) -> TurnResult:
        sid = event.session_id
        if isinstance(event.edit_details, dict) and event.edit_details:
            form = event.edit_details
            new_date = form.get("date") or current.date
            errors = () if to_date(new_date) else (f'Invalid date in "{new_date}".',)
            updated = replace(current, date=new_date, reason=form.get("reason") or current.reason, errors=errors)
        else:
            extracted = extract_wfh_details(event.message, self._today())
            if extracted.errors:
                updated = replace(current, errors=extracted.errors)
            elif extracted.date or extracted.reason:
                updated = replace(
                    current,
                    date=extracted.date or current.date,
                    reason=extracted.reason or current.reason,
                )
            else:
                return TurnResult(reply=replies.edit_wfh_fallback(current), intent="edit_request")

        if updated.errors:
            return TurnResult(
                reply=replies.validation_error(updated.errors, editing=True), intent="validation_error"
            )

        updated = self._wfh_defaults(updated, context)
        violation = await self._validate_wfh(context, updated)
        if violation:
            return self._violation_result(violation, "wfh")

        pending = self.sessions.set_pending_confirmation(sid, updated, replace=True)
        logger.info(f"Session {sid}: pending WFH request updated")
        return self._pending_result(updated, pending.to_dict(), updated=True)

    async def _commit(self, event: TurnEvent, context: SessionContext) -> TurnResult:
        """Re-validate and create the record. Pending is cleared first so a retry cannot double-commit."""
        sid = event.session_id
        details = context.pending_confirmation.details
        self.sessions.clear_pending_confirmation(sid)

        if isinstance(details, LeaveDetails):
            violation = await self._validate_leave(context, details, include_balance=False)
            if violation:
                return self._violation_result(violation, "leave")
            payload = {
                "employee_name": details.employee_name,
                "employee_email": context.user_email,
                "leave_type": details.leave_type.value if details.leave_type else LeaveType.CASUAL.value,
                "start_date": details.start_date,
                "end_date": details.end_date or details.start_date,
                "reason": details.reason or replies.DEFAULT_REASON,
                "duration_days": details.duration_days,
                "is_half_day": details.is_half_day,
            }
            created = await self._store_call("create_leave_record", payload)
            self.sessions.save_last_request(sid, details, created["id"])
            self.sessions.clear_leave_conflict(sid)
            logger.info(f"Session {sid}: leave record {created['id']} created")
            return TurnResult(
                reply=replies.leave_created(details, created["id"]),
                intent="leave_created",
                record_id=created["id"],
            )

        if isinstance(details, WfhDetails):
            violation = await self._validate_wfh(context, details)
            if violation:
                return self._violation_result(violation, "wfh")
            payload = {
                "employee_name": details.employee_name,
                "employee_email": context.user_email,
                "date": details.date,
                "reason": details.reason or replies.DEFAULT_REASON,
            }
            created = await self._store_call("create_wfh_record", payload)
            self.sessions.save_last_request(sid, details, created["id"])
            logger.info(f"Session {sid}: WFH record {created['id']} created")
            return TurnResult(
                reply=replies.wfh_created(details, created["id"]),
                intent="wfh_created",
                record_id=created["id"],
            )

        raise ValueError(f"Unknown pending request kind: {details.kind}")


# Global state machine instance
state_machine = None


def get_state_machine() -> ConversationStateMachine:
    """Get or create the global state machine."""
    global state_machine
    if state_machine is None:
        state_machine = ConversationStateMachine(
            session_store=SessionStore(),
            record_store=build_record_store(),
            fallback=get_general_query_agent(),
        )
    return state_machine
