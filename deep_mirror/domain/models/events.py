"""Events and effects of the session state machine.

User actions and network completions are events. The reducer answers each
event with a new SessionState and a list of effects for the driver to run:
AI requests (see requests.py) or clearing the persisted snapshot.
"""

from dataclasses import dataclass, field
from typing import List, Union

from deep_mirror.domain.models.profile import UserProfile
from deep_mirror.domain.models.question import Question, RegenerateReason, Report
from deep_mirror.domain.models.requests import (
    FeedbackRequest,
    QuestionRequest,
    ReportRequest,
)
from deep_mirror.domain.models.session import SessionState


# =============================================================================
# User actions
# =============================================================================


@dataclass(frozen=True)
class ProfileSubmitted:
    profile: UserProfile


@dataclass(frozen=True)
class OptionSelected:
    option_id: str


@dataclass(frozen=True)
class RegenerateRequested:
    reason: RegenerateReason
    custom_feedback: str = ""


@dataclass(frozen=True)
class ContinueRequested:
    pass


@dataclass(frozen=True)
class AnswerEditRequested:
    index: int


@dataclass(frozen=True)
class RestartRequested:
    pass


# =============================================================================
# Network completions
# =============================================================================


@dataclass(frozen=True)
class QuestionReceived:
    """A question arrived for (stage, question_index)."""

    stage: int
    question_index: int
    question: Question


@dataclass(frozen=True)
class FeedbackReceived:
    stage: int
    feedback: str


@dataclass(frozen=True)
class ReportReceived:
    report: Report


SessionEvent = Union[
    ProfileSubmitted,
    OptionSelected,
    RegenerateRequested,
    ContinueRequested,
    AnswerEditRequested,
    RestartRequested,
    QuestionReceived,
    FeedbackReceived,
    ReportReceived,
]


# =============================================================================
# Effects
# =============================================================================


@dataclass(frozen=True)
class ClearSnapshot:
    """Remove the persisted snapshot."""

    pass


Effect = Union[QuestionRequest, FeedbackRequest, ReportRequest, ClearSnapshot]


@dataclass
class Transition:
    """Result of applying one event: the next state and its effects.

    stale is set when a completion no longer matches the state it was
    requested for; the state is then returned unchanged.
    """

    state: SessionState
    effects: List[Effect] = field(default_factory=list)
    stale: bool = False
