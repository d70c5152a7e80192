"""Dependency injection for API routes."""

from typing import Annotated, Optional

from fastapi import Depends, Request

from deep_mirror.core.config import Settings, settings as default_settings
from deep_mirror.core.exceptions import ConfigurationError
from deep_mirror.llm.client import get_llm_client
from deep_mirror.persistence.backends import SqliteStorageBackend
from deep_mirror.persistence.store import PersistedStore
from deep_mirror.domain.models.session import SessionState
from deep_mirror.services.feedback_service import FeedbackClient
from deep_mirror.services.question_service import QuestionClient
from deep_mirror.services.report_service import ReportClient
from deep_mirror.services.session_controller import SessionController


def create_session_controller(settings: Optional[Settings] = None) -> SessionController:
    """Wire the controller from settings: SQLite store plus one shared LLM client.

    Called once at application startup; the caller still has to await load().
    """
    settings = settings or default_settings

    store = PersistedStore(
        SqliteStorageBackend(settings.database_path),
        key=settings.storage_key,
        version=settings.storage_version,
        defaults=SessionState().model_dump(mode="json"),
    )
    llm_client = get_llm_client(
        provider=settings.llm_provider,
        model=settings.llm_model,
        timeout=settings.ai_request_timeout,
    )
    timeout = settings.ai_request_timeout

    return SessionController(
        store=store,
        question_client=QuestionClient(llm_client, timeout=timeout),
        feedback_client=FeedbackClient(llm_client, timeout=timeout),
        report_client=ReportClient(llm_client, timeout=timeout),
    )


def get_session_controller(request: Request) -> SessionController:
    """FastAPI dependency for the process-wide SessionController.

    The controller is created in the application lifespan and kept on
    app.state. Tests replace this dependency with dependency_overrides.
    """
    controller = getattr(request.app.state, "session_controller", None)
    if controller is None:
        raise ConfigurationError("Session controller is not initialized")
    return controller


# Type aliases for dependency injection
SessionControllerDep = Annotated[SessionController, Depends(get_session_controller)]
