"""
Custom exception hierarchy for the assessment system.

All application exceptions inherit from DeepMirrorError.
"""

from typing import Optional


class DeepMirrorError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(DeepMirrorError):
    """Invalid or missing configuration."""

    pass


# =============================================================================
# AI Service Errors
# =============================================================================


class AIServiceError(DeepMirrorError):
    """Base for failures of the external AI collaborator."""

    pass


class AINetworkError(AIServiceError):
    """AI service could not be reached (transport failure)."""

    pass


class AITimeoutError(AIServiceError):
    """AI request exceeded its wall-clock budget and was cancelled."""

    pass


class AIAPIError(AIServiceError):
    """AI service returned a non-success status or rejected the request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(AIServiceError):
    """AI service answered successfully but the payload is structurally invalid."""

    pass


class AIRequestCancelledError(AIServiceError):
    """AI request was cancelled before completing (e.g. by a restart)."""

    pass


# =============================================================================
# Session Errors
# =============================================================================


class SessionError(DeepMirrorError):
    """Session-related error."""

    pass


class SessionBusyError(SessionError):
    """An AI request is already in flight for this session."""

    pass


class InvalidActionError(SessionError):
    """Action is not allowed in the session's current phase."""

    pass


class NoPendingRequestError(SessionError):
    """Retry requested but there is nothing to retry."""

    pass


class ValidationError(DeepMirrorError):
    """Caller-side precondition violated (programming-contract violation)."""

    pass
