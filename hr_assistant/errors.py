"""
Exception hierarchy for the assistant.

Parse and business-rule problems are returned as values (error lists and
RuleViolation objects) and never raised. Exceptions are reserved for failures
of the collaborators the assistant depends on and for misuse of the session
store.
"""


class AssistantError(Exception):
    """Base class for assistant errors."""


class CollaboratorError(AssistantError):
    """An external collaborator (record store, language model) failed."""


class RecordStoreError(CollaboratorError):
    """The record store rejected a call or could not be reached."""


class CircuitBreakerOpenError(RecordStoreError):
    """Raised when the circuit breaker blocks execution."""


class FallbackAgentError(CollaboratorError):
    """The general-query language model failed to answer."""


class PendingConfirmationConflict(AssistantError):
    """A pending confirmation already exists and replacement was not requested."""
