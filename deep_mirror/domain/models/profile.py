"""User profile collected at stage 0.

The profile is immutable once submitted: every model here is frozen, and the
session never mutates it after stage 0 completes.

Core Models:
    - Interest: hobby tag with depth of involvement
    - Trouble: current life trouble with self-rated stress intensity
    - UserProfile: demographic fields plus interests and troubles
"""

from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


class InterestDepth(str, Enum):
    """How deeply the user is involved in an interest."""

    LIGHT = "light"
    MEDIUM = "medium"
    HEAVY = "heavy"


class StressLevel(str, Enum):
    """Stress level derived from a 1-10 intensity rating."""

    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class TroubleCategory(str, Enum):
    """Trouble topics offered during profiling."""

    CAREER_BOTTLENECK = "career_bottleneck"
    INTIMATE_RELATIONSHIP = "intimate_relationship"
    FAMILY_ORIGIN = "family_origin"
    SELF_WORTH = "self_worth"
    MEANINGLESSNESS = "meaninglessness"
    FINANCIAL_ANXIETY = "financial_anxiety"


TROUBLE_LABELS = {
    TroubleCategory.CAREER_BOTTLENECK: "Career bottleneck",
    TroubleCategory.INTIMATE_RELATIONSHIP: "Intimate relationship",
    TroubleCategory.FAMILY_ORIGIN: "Family of origin",
    TroubleCategory.SELF_WORTH: "Self-worth",
    TroubleCategory.MEANINGLESSNESS: "Meaninglessness",
    TroubleCategory.FINANCIAL_ANXIETY: "Financial anxiety",
}

MBTI_TYPES = (
    "INTJ", "INTP", "ENTJ", "ENTP",
    "INFJ", "INFP", "ENFJ", "ENFP",
    "ISTJ", "ISFJ", "ESTJ", "ESFJ",
    "ISTP", "ISFP", "ESTP", "ESFP",
)


def stress_level_for(intensity: int) -> StressLevel:
    """Map a 1-10 stress intensity onto mild (1-3), moderate (4-6) or severe (7-10)."""
    if intensity <= 3:
        return StressLevel.MILD
    if intensity <= 6:
        return StressLevel.MODERATE
    return StressLevel.SEVERE


class Interest(BaseModel):
    """A hobby tag with depth of involvement."""

    model_config = ConfigDict(frozen=True)

    tag: str = Field(min_length=1, max_length=50)
    depth: InterestDepth = InterestDepth.MEDIUM

    @field_validator("tag")
    @classmethod
    def strip_tag(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("interest tag must not be blank")
        return v


class Trouble(BaseModel):
    """A current trouble with its stress rating.

    stress_level is always derived from stress_intensity; a supplied value
    is replaced.
    """

    model_config = ConfigDict(frozen=True)

    category: TroubleCategory
    stress_intensity: int = Field(default=5, ge=1, le=10)
    stress_level: StressLevel = StressLevel.MODERATE

    @model_validator(mode="before")
    @classmethod
    def derive_stress_level(cls, data):
        if isinstance(data, dict):
            data = dict(data)
            intensity = data.get("stress_intensity", 5)
            if isinstance(intensity, int) and 1 <= intensity <= 10:
                data["stress_level"] = stress_level_for(intensity)
        return data


class UserProfile(BaseModel):
    """Profile collected at stage 0 and sent with every AI request."""

    model_config = ConfigDict(frozen=True)

    gender: str = Field(min_length=1)
    birth_year: int
    industry: str = Field(min_length=1)
    job_title: str = Field(min_length=1)
    mbti: Optional[str] = None
    interests: List[Interest] = Field(min_length=1)
    troubles: List[Trouble] = Field(min_length=1)
    trouble_details: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("birth_year")
    @classmethod
    def validate_birth_year(cls, v: int) -> int:
        if v <= 1900 or v > date.today().year:
            raise ValueError(f"birth_year must be after 1900 and not in the future, got {v}")
        return v

    @field_validator("mbti")
    @classmethod
    def validate_mbti(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        v = v.upper()
        if v not in MBTI_TYPES:
            raise ValueError(f"unknown MBTI type: {v}")
        return v

    @field_validator("interests")
    @classmethod
    def unique_interest_tags(cls, v: List[Interest]) -> List[Interest]:
        tags = [interest.tag for interest in v]
        if len(tags) != len(set(tags)):
            raise ValueError("interest tags must be unique")
        return v

    @field_validator("troubles")
    @classmethod
    def unique_trouble_categories(cls, v: List[Trouble]) -> List[Trouble]:
        categories = [trouble.category for trouble in v]
        if len(categories) != len(set(categories)):
            raise ValueError("trouble categories must be unique")
        return v

    @property
    def age(self) -> int:
        return date.today().year - self.birth_year

    def heavy_interests(self) -> List[str]:
        return [i.tag for i in self.interests if i.depth == InterestDepth.HEAVY]

    def light_interests(self) -> List[str]:
        return [i.tag for i in self.interests if i.depth == InterestDepth.LIGHT]
