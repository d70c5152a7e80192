"""Domain models package."""

from .profile import (
    Interest,
    InterestDepth,
    StressLevel,
    Trouble,
    TroubleCategory,
    UserProfile,
)
from .question import (
    Answer,
    Question,
    QuestionOption,
    RegenerateReason,
    Report,
)
from .requests import (
    AIRequest,
    FeedbackRequest,
    QuestionRequest,
    RegenerateContext,
    ReportRequest,
)
from .session import (
    STAGE_QUESTION_COUNTS,
    SessionPhase,
    SessionState,
    question_count_of,
)

__all__ = [
    "Interest",
    "InterestDepth",
    "StressLevel",
    "Trouble",
    "TroubleCategory",
    "UserProfile",
    "Answer",
    "Question",
    "QuestionOption",
    "RegenerateReason",
    "Report",
    "AIRequest",
    "FeedbackRequest",
    "QuestionRequest",
    "RegenerateContext",
    "ReportRequest",
    "STAGE_QUESTION_COUNTS",
    "SessionPhase",
    "SessionState",
    "question_count_of",
]
