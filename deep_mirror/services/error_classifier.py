"""
Failure classification for presentation.

classify_error maps any exception raised by an AI request to a failure kind,
a display kind (network, timeout, api, unknown) and a user-facing message.
It never changes control flow: the controller records the result next to the
failed request and surfaces it unchanged.

Typed exceptions are inspected first. Untyped failures fall back to
substring inspection of the message.
"""

import asyncio
from enum import Enum

import httpx
import structlog
from pydantic import BaseModel

from deep_mirror.core.exceptions import (
    AIAPIError,
    AINetworkError,
    AITimeoutError,
    MalformedResponseError,
    ValidationError,
)

log = structlog.get_logger(__name__)


class ErrorKind(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    API = "api"
    MALFORMED_RESPONSE = "malformed_response"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class DisplayKind(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    API = "api"
    UNKNOWN = "unknown"


DISPLAY_KINDS = {
    ErrorKind.NETWORK: DisplayKind.NETWORK,
    ErrorKind.TIMEOUT: DisplayKind.TIMEOUT,
    ErrorKind.API: DisplayKind.API,
    ErrorKind.MALFORMED_RESPONSE: DisplayKind.API,
    ErrorKind.VALIDATION: DisplayKind.UNKNOWN,
    ErrorKind.UNKNOWN: DisplayKind.UNKNOWN,
}

USER_MESSAGES = {
    ErrorKind.NETWORK: "Could not reach the server. Please check your network connection.",
    ErrorKind.TIMEOUT: "The request timed out. The server took too long to respond.",
    ErrorKind.API: "The AI service returned an error. Please try again in a moment.",
    ErrorKind.MALFORMED_RESPONSE: "The AI service returned an unexpected response. Please try again.",
    ErrorKind.VALIDATION: "The request could not be processed.",
    ErrorKind.UNKNOWN: "Something went wrong. Please try again.",
}

# Checked in order against the lower-cased message
MESSAGE_HINTS = (
    (ErrorKind.NETWORK, ("network", "fetch", "connect")),
    (ErrorKind.TIMEOUT, ("timeout", "timed out")),
    (ErrorKind.API, ("api", "server", "status")),
)


class ClassifiedError(BaseModel):
    """A failure as shown to the user."""

    kind: ErrorKind
    display_kind: DisplayKind
    message: str
    retryable: bool = True


def _kind_by_category(exc: BaseException):
    # Timeouts first: httpx.TimeoutException is also a TransportError
    if isinstance(exc, (AITimeoutError, httpx.TimeoutException, asyncio.TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(exc, (AINetworkError, httpx.TransportError, ConnectionError)):
        return ErrorKind.NETWORK
    if isinstance(exc, (AIAPIError, httpx.HTTPStatusError)):
        return ErrorKind.API
    if isinstance(exc, MalformedResponseError):
        return ErrorKind.MALFORMED_RESPONSE
    if isinstance(exc, ValidationError):
        return ErrorKind.VALIDATION
    return None


def _kind_by_message(message: str) -> ErrorKind:
    lowered = message.lower()
    for kind, hints in MESSAGE_HINTS:
        if any(hint in lowered for hint in hints):
            return kind
    return ErrorKind.UNKNOWN


def classify_error(exc: BaseException) -> ClassifiedError:
    """
    Classify a failure.

    Args:
        exc: The exception raised by an AI request

    Returns:
        ClassifiedError; validation failures are not retryable
    """
    kind = _kind_by_category(exc)
    if kind is None:
        kind = _kind_by_message(str(exc))

    classified = ClassifiedError(
        kind=kind,
        display_kind=DISPLAY_KINDS[kind],
        message=USER_MESSAGES[kind],
        retryable=kind != ErrorKind.VALIDATION,
    )

    log.debug(
        "error_classified",
        error_type=type(exc).__name__,
        kind=kind.value,
        display_kind=classified.display_kind.value,
    )
    return classified
