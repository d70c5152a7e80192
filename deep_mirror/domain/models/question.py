"""Question, answer and report payloads exchanged with the AI service."""

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field

# Every generated question offers exactly this many options (A, B, C)
OPTIONS_PER_QUESTION = 3


class QuestionOption(BaseModel):
    """One selectable option of a question."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    text: str = Field(min_length=1)


class Question(BaseModel):
    """A scenario question with its options.

    Replaced wholesale on regeneration, never patched.
    """

    model_config = ConfigDict(frozen=True)

    question: str = Field(min_length=1)
    options: List[QuestionOption] = Field(min_length=1)

    def find_option(self, option_id: str):
        for option in self.options:
            if option.id == option_id:
                return option
        return None


class Answer(BaseModel):
    """A recorded answer: the question text and the option chosen."""

    model_config = ConfigDict(frozen=True)

    question: str
    selected_option: QuestionOption


class RegenerateReason(str, Enum):
    """Why the user asked for a different question."""

    SCENARIO_MISMATCH = "scenario_mismatch"
    TOO_GENERIC = "too_generic"
    DIFFERENT_ANGLE = "different_angle"


class ReportSection(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)


class EvolutionSuggestion(BaseModel):
    label: str = Field(min_length=1)
    description: str = Field(min_length=1)


class EvolutionPath(BaseModel):
    title: str = Field(min_length=1)
    suggestions: List[EvolutionSuggestion] = Field(min_length=1)


class Report(BaseModel):
    """Final synthesized report produced after stage 3."""

    core_identity: ReportSection
    inner_conflict: ReportSection
    risk_prediction: ReportSection
    evolution_path: EvolutionPath
