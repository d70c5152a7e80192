"""
API request/response schemas.

Pydantic models for API validation and serialization. Session responses
reuse SessionView from the controller; profiles reuse UserProfile.
"""

from pydantic import BaseModel, Field

from deep_mirror.domain.models.question import RegenerateReason


# ============ ACTION SCHEMAS ============


class AnswerRequest(BaseModel):
    """Select an option of the current question."""

    option_id: str = Field(..., min_length=1, max_length=16)


class RegenerateRequest(BaseModel):
    """Ask for a different question."""

    reason: RegenerateReason
    custom_feedback: str = Field(default="", max_length=1000)


class EditAnswerRequest(BaseModel):
    """Go back to the answer at index within the current stage."""

    index: int = Field(..., ge=0)

