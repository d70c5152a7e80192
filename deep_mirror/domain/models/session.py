"""Session domain models for the assessment lifecycle.

This module defines the aggregate root of an assessment (SessionState) and
the phase derived from it.

Session Lifecycle:
    1. Created empty (stage 0) on first load
    2. Profile submitted -> stage 1, question 0
    3. Stages 1-3: one question at a time, feedback after each stage
    4. Report received -> stage 4 (terminal)
    5. Reset to empty only by an explicit restart

State Transition:
    - deep_mirror.services.session_machine is the only code that produces
      new SessionState values
    - SessionController persists every accepted state via PersistedStore
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from deep_mirror.domain.models.profile import UserProfile
from deep_mirror.domain.models.question import Answer, Question, Report

# Fixed question count per probing stage
STAGE_QUESTION_COUNTS: Dict[int, int] = {1: 3, 2: 3, 3: 2}

PROFILING_STAGE = 0
FIRST_STAGE = 1
LAST_STAGE = 3
DONE_STAGE = 4

SNAPSHOT_VERSION = "2.0"


def question_count_of(stage: int) -> int:
    """Number of questions in a probing stage (0 for stages without questions)."""
    return STAGE_QUESTION_COUNTS.get(stage, 0)


class SessionPhase(str, Enum):
    """Where the session is in its journey, derived from SessionState."""

    PROFILING = "profiling"
    AWAITING_QUESTION = "awaiting_question"
    ASKING = "asking"
    AWAITING_FEEDBACK = "awaiting_feedback"
    REVIEWING = "reviewing"
    AWAITING_REPORT = "awaiting_report"
    DONE = "done"


class SessionState(BaseModel):
    """Complete state of one assessment.

    Fields:
        - stage: 0 profiling, 1-3 probing stages, 4 done
        - question_index: position in the active stage (meaningful for 1-3)
        - current_question: the question on screen, absent while loading
        - stage_answers: answers recorded in the active stage
        - all_answers: finalized answers per completed stage
        - feedback: stage feedback, cleared when the next stage starts
        - report: final report, present iff stage == 4
        - showing_insight: stage feedback is displayed instead of a question
        - awaiting_report: report requested after stage 3, not yet received
        - version: snapshot schema tag
    """

    stage: int = Field(default=PROFILING_STAGE, ge=PROFILING_STAGE, le=DONE_STAGE)
    question_index: int = Field(default=0, ge=0)
    current_question: Optional[Question] = None
    stage_answers: List[Answer] = Field(default_factory=list)
    all_answers: Dict[int, List[Answer]] = Field(default_factory=dict)
    feedback: str = ""
    report: Optional[Report] = None
    showing_insight: bool = False
    awaiting_report: bool = False
    profile: Optional[UserProfile] = None
    version: str = SNAPSHOT_VERSION

    @model_validator(mode="after")
    def check_invariants(self) -> "SessionState":
        stage = self.stage
        count = question_count_of(stage)

        if stage >= FIRST_STAGE and self.profile is None:
            raise ValueError(f"stage {stage} requires a profile")

        if (self.report is not None) != (stage == DONE_STAGE):
            raise ValueError("report must be present exactly when stage == 4")

        for s, answers in self.all_answers.items():
            if s not in STAGE_QUESTION_COUNTS:
                raise ValueError(f"all_answers has unknown stage {s}")
            if s > stage:
                raise ValueError(f"all_answers has stage {s} beyond current stage {stage}")
            if len(answers) != question_count_of(s):
                raise ValueError(
                    f"all_answers[{s}] has {len(answers)} answers, expected {question_count_of(s)}"
                )
        for s in STAGE_QUESTION_COUNTS:
            if s < stage and s not in self.all_answers:
                raise ValueError(f"completed stage {s} is missing from all_answers")

        if FIRST_STAGE <= stage <= LAST_STAGE:
            if len(self.stage_answers) > count:
                raise ValueError(
                    f"stage {stage} allows {count} answers, got {len(self.stage_answers)}"
                )
            if self.question_index >= count:
                raise ValueError(
                    f"question_index {self.question_index} out of range for stage {stage}"
                )
        elif stage == PROFILING_STAGE and (self.stage_answers or self.current_question):
            raise ValueError("profiling stage cannot hold questions or answers")

        if self.showing_insight:
            if not FIRST_STAGE <= stage <= LAST_STAGE:
                raise ValueError("showing_insight is only valid in stages 1-3")
            if self.current_question is not None:
                raise ValueError("current_question must be absent while showing insight")
            if len(self.stage_answers) != count:
                raise ValueError("showing_insight requires a completed stage")

        if self.awaiting_report and (stage != LAST_STAGE or self.showing_insight):
            raise ValueError("awaiting_report is only valid after reviewing the last stage")

        return self

    @property
    def phase(self) -> SessionPhase:
        """Derive the phase from the stored fields."""
        if self.stage == DONE_STAGE:
            return SessionPhase.DONE
        if self.stage == PROFILING_STAGE:
            return SessionPhase.PROFILING
        if self.showing_insight:
            return SessionPhase.REVIEWING
        if self.awaiting_report:
            return SessionPhase.AWAITING_REPORT
        if len(self.stage_answers) >= question_count_of(self.stage):
            return SessionPhase.AWAITING_FEEDBACK
        if self.current_question is None:
            return SessionPhase.AWAITING_QUESTION
        return SessionPhase.ASKING

    def prior_answers(self) -> Dict[int, List[Answer]]:
        """Answers that give context to the next question.

        Finalized answers of earlier stages plus whatever has been recorded
        in the active stage so far.
        """
        prior = {s: list(a) for s, a in self.all_answers.items() if s < self.stage}
        if self.stage_answers and FIRST_STAGE <= self.stage <= LAST_STAGE:
            prior[self.stage] = list(self.stage_answers)
        return prior
