"""
Shared test fixtures.

Builders and fake AI clients live in tests/support.py.
"""

import tempfile
from pathlib import Path

import pytest

from deep_mirror.domain.models.profile import UserProfile
from deep_mirror.domain.models.session import SNAPSHOT_VERSION, SessionState
from deep_mirror.persistence.backends import InMemoryStorageBackend
from deep_mirror.persistence.store import PersistedStore
from deep_mirror.services.session_controller import SessionController
from tests.support import (
    STORAGE_KEY,
    FakeAIClient,
    feedback_for,
    make_profile,
    question_for,
    report_for,
)


@pytest.fixture
def profile() -> UserProfile:
    return make_profile()


@pytest.fixture
def question_client() -> FakeAIClient:
    return FakeAIClient(question_for)


@pytest.fixture
def feedback_client() -> FakeAIClient:
    return FakeAIClient(feedback_for)


@pytest.fixture
def report_client() -> FakeAIClient:
    return FakeAIClient(report_for)


@pytest.fixture
def memory_store() -> PersistedStore:
    """Store over a dict backend."""
    return PersistedStore(
        InMemoryStorageBackend(),
        key=STORAGE_KEY,
        version=SNAPSHOT_VERSION,
        defaults=SessionState().model_dump(mode="json"),
    )


@pytest.fixture
def controller(memory_store, question_client, feedback_client, report_client) -> SessionController:
    """Controller wired to the memory store and fake clients."""
    return SessionController(
        store=memory_store,
        question_client=question_client,
        feedback_client=feedback_client,
        report_client=report_client,
    )


@pytest.fixture
def test_db_path():
    """Temporary SQLite file path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"
