"""AI request payloads.

These are the serializable side-effect requests emitted by the session state
machine. A failed request is kept verbatim so that retrying re-sends exactly
the same payload.
"""

from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from deep_mirror.domain.models.profile import UserProfile
from deep_mirror.domain.models.question import Answer, Question, RegenerateReason


class RegenerateContext(BaseModel):
    """Why the previous question was rejected, and the question itself."""

    reason: RegenerateReason
    custom_feedback: str = Field(default="", max_length=1000)
    previous_question: Question


class QuestionRequest(BaseModel):
    """Ask for the question at (stage, question_index)."""

    kind: Literal["question"] = "question"
    profile: UserProfile
    stage: int = Field(ge=1, le=3)
    question_index: int = Field(ge=0)
    previous_answers: Dict[int, List[Answer]] = Field(default_factory=dict)
    regenerate: Optional[RegenerateContext] = None

    @property
    def is_regenerate(self) -> bool:
        return self.regenerate is not None


class FeedbackRequest(BaseModel):
    """Ask for feedback on a completed stage."""

    kind: Literal["feedback"] = "feedback"
    profile: UserProfile
    stage: int = Field(ge=1, le=3)
    answers: List[Answer] = Field(min_length=1)


class ReportRequest(BaseModel):
    """Ask for the final report over all stages."""

    kind: Literal["report"] = "report"
    profile: UserProfile
    all_answers: Dict[int, List[Answer]]


AIRequest = Annotated[
    Union[QuestionRequest, FeedbackRequest, ReportRequest],
    Field(discriminator="kind"),
]
