"""Tests for failure classification."""

import asyncio

import httpx
import pytest

from deep_mirror.core.exceptions import (
    AIAPIError,
    AINetworkError,
    AITimeoutError,
    MalformedResponseError,
    ValidationError,
)
from deep_mirror.services.error_classifier import (
    USER_MESSAGES,
    DisplayKind,
    ErrorKind,
    classify_error,
)


@pytest.mark.parametrize(
    "exc, kind, display",
    [
        (AITimeoutError("AI request timed out after 60 seconds"), ErrorKind.TIMEOUT, DisplayKind.TIMEOUT),
        (AINetworkError("connection refused"), ErrorKind.NETWORK, DisplayKind.NETWORK),
        (AIAPIError("status 500", status_code=500), ErrorKind.API, DisplayKind.API),
        (MalformedResponseError("no JSON"), ErrorKind.MALFORMED_RESPONSE, DisplayKind.API),
        (ValidationError("bad index"), ErrorKind.VALIDATION, DisplayKind.UNKNOWN),
        (asyncio.TimeoutError(), ErrorKind.TIMEOUT, DisplayKind.TIMEOUT),
        (ConnectionError("reset"), ErrorKind.NETWORK, DisplayKind.NETWORK),
    ],
)
def test_typed_errors(exc, kind, display):
    classified = classify_error(exc)
    assert classified.kind == kind
    assert classified.display_kind == display
    assert classified.message == USER_MESSAGES[kind]


def test_httpx_timeout_is_not_network():
    """httpx timeouts are transport errors too; timeout wins."""
    exc = httpx.ReadTimeout("read timed out")
    assert classify_error(exc).kind == ErrorKind.TIMEOUT


@pytest.mark.parametrize(
    "message, kind",
    [
        ("Failed to fetch", ErrorKind.NETWORK),
        ("Network unreachable", ErrorKind.NETWORK),
        ("operation timed out", ErrorKind.TIMEOUT),
        ("Timeout while waiting", ErrorKind.TIMEOUT),
        ("Internal server error", ErrorKind.API),
        ("bad status code", ErrorKind.API),
        ("something odd", ErrorKind.UNKNOWN),
    ],
)
def test_untyped_errors_use_message(message, kind):
    assert classify_error(RuntimeError(message)).kind == kind


def test_only_validation_is_not_retryable():
    assert classify_error(ValidationError("x")).retryable is False
    assert classify_error(AINetworkError("x")).retryable is True
    assert classify_error(RuntimeError("x")).retryable is True
