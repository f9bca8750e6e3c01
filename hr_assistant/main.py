"""
FastAPI application serving the HR leave assistant.
Provides the chat endpoint, manager record endpoints and monitoring.
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Literal

import uvicorn
from fastapi import FastAPI, Header, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from hr_assistant.config import settings
from hr_assistant.conversation import TurnEvent, get_state_machine
from hr_assistant.errors import CollaboratorError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default-session"


# Pydantic models for API
class ChatRequest(BaseModel):
    """Request model for chat endpoint."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "message": "Casual leave tomorrow for a family event",
                "sessionId": "session_123",
                "employeeEmail": "john.doe@winfomi.com",
            }
        },
    )

    message: str = Field(..., min_length=1, description="User's message")
    session_id: str | None = Field(None, alias="sessionId", description="Session identifier")
    employee_email: str | None = Field(None, alias="employeeEmail", description="Email supplied by the UI")
    confirmation_action: str | None = Field(
        None, alias="confirmationAction", description='Button click: "yes" or "no"'
    )
    intent_override: str | None = Field(
        None, alias="intentOverride", description='"edit_leave" or "edit_wfh" from the edit button'
    )
    edit_details: dict[str, Any] | None = Field(None, alias="editDetails", description="Edit form fields")


class ChatResponse(BaseModel):
    """Response model for chat endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    reply: str = Field(..., description="Assistant's reply")
    intent: str = Field(..., description="What the turn did, e.g. confirm_leave")
    timestamp: str
    show_buttons: bool | None = Field(None, alias="showButtons")
    pending_request: dict[str, Any] | None = Field(None, alias="pendingRequest")
    record_id: str | None = Field(None, alias="recordId")


class StatusUpdate(BaseModel):
    """Manager decision on a request."""

    status: Literal["Approved", "Rejected", "Cancelled", "Pending Approval"]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    environment: str
    record_store_circuit_breaker: dict | None


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("Starting HR Leave Assistant API")
    logger.info(f"Environment: {settings.environment}")

    try:
        get_state_machine()
        logger.info("State machine initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize state machine: {e}")

    yield

    logger.info("Shutting down HR Leave Assistant API")
    try:
        get_state_machine().records.close()
    except Exception as e:
        logger.error(f"Error closing record store: {e}")


app = FastAPI(
    title="HR Leave Assistant API",
    description="Chat assistant for leave and work-from-home requests",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# API Endpoints


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {"message": "HR Leave Assistant API", "version": "1.0.0", "docs": "/docs"}


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """
    Health check endpoint.
    Returns service status and the record store's circuit breaker state.
    """
    machine = get_state_machine()
    return HealthResponse(
        status="healthy",
        environment=settings.environment,
        record_store_circuit_breaker=machine.records.get_circuit_breaker_state(),
    )


@app.post(
    "/chat",
    response_model=ChatResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    tags=["Chat"],
)
async def chat(request: ChatRequest, x_session_id: str | None = Header(None, alias="X-Session-Id")):
    """
    Chat with the HR assistant.

    The session id comes from the ``X-Session-Id`` header, then the body,
    then falls back to ``default-session``.

    Example conversation:

    Request 1:
    ```json
    {"message": "john.doe@winfomi.com", "sessionId": "s1"}
    ```

    Response 1:
    ```json
    {"reply": "Hi John, your account is verified. How can I help you today?", "intent": "email_verified"}
    ```

    Request 2 (same session):
    ```json
    {"message": "Casual leave tomorrow for a family event", "sessionId": "s1"}
    ```

    Response 2:
    ```json
    {"reply": "Please confirm your leave request: ...", "intent": "confirm_leave", "showButtons": true}
    ```
    """
    session_id = x_session_id or request.session_id or DEFAULT_SESSION_ID
    try:
        logger.info(f"Chat request: session={session_id}")

        event = TurnEvent(
            session_id=session_id,
            message=request.message,
            employee_email=request.employee_email,
            confirmation_action=request.confirmation_action,
            intent_override=(request.intent_override or "").lower() or None,
            edit_details=request.edit_details,
        )
        transition = await get_state_machine().handle_turn(event)
        result = transition.result

        return ChatResponse(
            reply=result.reply,
            intent=result.intent,
            timestamp=_now_iso(),
            show_buttons=result.show_buttons or None,
            pending_request=result.pending_request,
            record_id=result.record_id,
        )

    except Exception as e:
        logger.error(f"Error in /chat endpoint: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred processing your request. Please try again.",
        ) from e


@app.post("/reset-conversation/{session_id}", tags=["Chat"])
async def reset_conversation(session_id: str):
    """
    Reset a session: identity, pending request and history.
    Useful for starting a fresh conversation.
    """
    try:
        await get_state_machine().reset_session(session_id)

        return {"message": f"Conversation reset for session {session_id}", "session_id": session_id}

    except Exception as e:
        logger.error(f"Error resetting conversation: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error resetting conversation"
        ) from e


@app.get("/requests/{record_id}", tags=["Requests"])
async def get_request(record_id: str):
    """Look up a leave or WFH record by id."""
    try:
        result = await get_state_machine().records.get_record(record_id)
    except CollaboratorError as e:
        logger.error(f"Error fetching record {record_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Record store unavailable"
        ) from e

    if not result.get("success"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Record {record_id} not found")
    return result["record"]


@app.patch("/requests/{record_id}/status", tags=["Requests"])
async def update_request_status(record_id: str, update: StatusUpdate):
    """
    Approve, reject or cancel a request.
    Used by the manager approval flow.
    """
    try:
        result = await get_state_machine().records.update_record_status(record_id, update.status)
    except CollaboratorError as e:
        logger.error(f"Error updating record {record_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Record store unavailable"
        ) from e

    if not result.get("success"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Record {record_id} not found")
    logger.info(f"Record {record_id} marked {update.status}")
    return result["record"]


@app.get("/ready")
def ready():
    return {"status": "ready"}


@app.get("/metrics", tags=["Monitoring"])
async def metrics():
    """
    Monitoring endpoint.

    Returns:
    - Session statistics
    - Record store circuit breaker state
    - Environment
    """
    machine = get_state_machine()

    return {
        "sessions": machine.sessions.get_session_stats(),
        "circuit_breaker": machine.records.get_circuit_breaker_state(),
        "environment": settings.environment,
    }


if __name__ == "__main__":
    uvicorn.run(
        "hr_assistant.main:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", 8080)),
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
