"""
Global exception handlers for FastAPI.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

import structlog

from deep_mirror.core.exceptions import (
    AIAPIError,
    AINetworkError,
    AIServiceError,
    AITimeoutError,
    ConfigurationError,
    DeepMirrorError,
    InvalidActionError,
    MalformedResponseError,
    NoPendingRequestError,
    SessionBusyError,
    ValidationError,
)
from deep_mirror.services.error_classifier import classify_error

log = structlog.get_logger(__name__)


def status_code_for(exc: DeepMirrorError) -> int:
    """Map an application exception to its HTTP status code."""
    if isinstance(exc, AITimeoutError):
        return status.HTTP_504_GATEWAY_TIMEOUT
    if isinstance(exc, AINetworkError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exc, (AIAPIError, MalformedResponseError, AIServiceError)):
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(exc, (SessionBusyError, InvalidActionError, NoPendingRequestError)):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, ValidationError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def setup_exception_handlers(app: FastAPI):
    """Register custom exception handlers with the FastAPI application.

    Sets up handlers for all DeepMirrorError subclasses with appropriate
    HTTP status codes, plus handlers for configuration errors and generic exceptions.
    """

    @app.exception_handler(AIServiceError)
    async def ai_service_error_handler(
        request: Request,
        exc: AIServiceError,
    ) -> JSONResponse:
        """Handle AI request failures.

        The body carries the classified failure so the client can show the
        right message and offer POST /session/retry.
        """
        classified = classify_error(exc)
        status_code = status_code_for(exc)

        log.warning(
            "ai_request_error",
            path=request.url.path,
            error_type=type(exc).__name__,
            kind=classified.kind.value,
            status_code=status_code,
        )

        return JSONResponse(
            status_code=status_code,
            content={
                "error": {
                    "type": type(exc).__name__,
                    "kind": classified.kind.value,
                    "display_kind": classified.display_kind.value,
                    "message": classified.message,
                    "retryable": classified.retryable,
                }
            },
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request,
        exc: ConfigurationError,
    ) -> JSONResponse:
        """Handle configuration errors with HTTP 500 status."""
        log.error(
            "configuration_error",
            path=request.url.path,
            message=exc.message,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "type": "ConfigurationError",
                    "message": "Server configuration error",
                }
            },
        )

    @app.exception_handler(DeepMirrorError)
    async def deep_mirror_error_handler(
        request: Request,
        exc: DeepMirrorError,
    ) -> JSONResponse:
        """Handle session errors (409) and contract violations (500)."""
        status_code = status_code_for(exc)

        log_ctx = log.bind(
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )
        if isinstance(exc, ValidationError):
            log_ctx.error("contract_violation", message=exc.message)
        else:
            log_ctx.warning("request_error", message=exc.message, status_code=status_code)

        return JSONResponse(
            status_code=status_code,
            content={
                "error": {
                    "type": type(exc).__name__,
                    "message": exc.message,
                }
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle all unhandled exceptions with HTTP 500 status."""
        log_ctx = log.bind(
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )

        log_ctx.error(
            "unhandled_exception",
            message=str(exc),
            exc_info=exc,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "type": "InternalServerError",
                    "message": "An unexpected error occurred",
                }
            },
        )
