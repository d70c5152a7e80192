"""
FastAPI application entry point.

Run with: uvicorn deep_mirror.main:app --reload
"""

from contextlib import asynccontextmanager
import uuid

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from deep_mirror import __version__
from deep_mirror.core.config import settings
from deep_mirror.core.logging import configure_logging, get_logger, bind_context, clear_context
from deep_mirror.api.dependencies import create_session_controller
from deep_mirror.api.exception_handlers import setup_exception_handlers
from deep_mirror.api.routes import health, session
from deep_mirror.llm.client import SUPPORTED_PROVIDERS

# Configure logging before anything else
configure_logging()
log = get_logger(__name__)


# =============================================================================
# Correlation ID Middleware
# =============================================================================


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique correlation ID to each request.

    - Generates a UUID4 request_id for each incoming request
    - Binds it to structlog context for all logs in that request
    - Adds X-Request-ID header to responses
    """

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        bind_context(request_id=request_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()


def validate_api_keys() -> None:
    """
    Validate that the configured LLM provider has an API key.

    Raises:
        RuntimeError: If the provider is unknown or its API key is missing
    """
    provider = settings.llm_provider
    if provider not in SUPPORTED_PROVIDERS:
        raise RuntimeError(
            f"Unknown LLM provider '{provider}'. "
            f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
        )

    if not settings.anthropic_api_key:
        raise RuntimeError(
            "API Key Validation Failed:\n"
            f"  - ANTHROPIC_API_KEY is required for {provider}. Set it in .env file."
        )

    log.info("api_keys_validated", provider=provider, model=settings.llm_model)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds the session controller and restores the persisted session.
    """
    log.info(
        "application_starting",
        debug=settings.debug,
        database_path=str(settings.database_path),
    )

    # Fail fast if the LLM provider is misconfigured
    validate_api_keys()

    controller = create_session_controller(settings)
    await controller.load()
    app.state.session_controller = controller

    log.info("application_started", phase=controller.state.phase.value)

    yield

    log.info("application_shutting_down", phase=controller.state.phase.value)


# Create FastAPI application
app = FastAPI(
    title="Deep Mirror",
    description="Staged, AI-generated psychological self-assessment",
    version=__version__,
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS middleware for development
if settings.debug:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(CorrelationIDMiddleware)

setup_exception_handlers(app)

app.include_router(health.router, tags=["system"])
app.include_router(session.router)


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {"name": "Deep Mirror", "version": __version__, "status": "running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "deep_mirror.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
