"""
Progress computation.

Progress is a pure function of SessionState so that a reloaded session shows
exactly the percentage it showed before. The journey has 9 units: the
profile, then one unit per question (3 + 3 + 2).
"""

from typing import Optional

from pydantic import BaseModel

from deep_mirror.core.config import AssessmentConfig, assessment_config
from deep_mirror.domain.models.session import (
    DONE_STAGE,
    FIRST_STAGE,
    LAST_STAGE,
    PROFILING_STAGE,
    STAGE_QUESTION_COUNTS,
    SessionPhase,
    SessionState,
    question_count_of,
)

TOTAL_UNITS = 1 + sum(STAGE_QUESTION_COUNTS.values())


class ProgressInfo(BaseModel):
    """What the progress bar shows."""

    percentage: int
    stage: int
    stage_name: str = ""
    question_number: Optional[int] = None
    question_total: Optional[int] = None


def completed_units(state: SessionState) -> int:
    if state.stage == DONE_STAGE:
        return TOTAL_UNITS

    units = 1 if state.profile is not None else 0
    if state.stage == PROFILING_STAGE:
        return units

    for stage in range(FIRST_STAGE, state.stage):
        units += question_count_of(stage)

    if state.showing_insight:
        units += question_count_of(state.stage)
    else:
        units += len(state.stage_answers)
    return units


def calculate_progress(state: SessionState) -> int:
    """
    Completion percentage in [0, 100].

    Args:
        state: Session state

    Returns:
        round(100 * completed / 9); 100 once the report is in
    """
    if state.stage == DONE_STAGE:
        return 100
    return min(100, round(100 * completed_units(state) / TOTAL_UNITS))


def describe_progress(
    state: SessionState,
    config: Optional[AssessmentConfig] = None,
) -> ProgressInfo:
    """Percentage plus stage name and question position for display."""
    config = config or assessment_config
    info = ProgressInfo(percentage=calculate_progress(state), stage=state.stage)

    if FIRST_STAGE <= state.stage <= LAST_STAGE:
        info.stage_name = config.stage_name(state.stage)
        if state.phase in (SessionPhase.ASKING, SessionPhase.AWAITING_QUESTION):
            info.question_number = state.question_index + 1
            info.question_total = question_count_of(state.stage)

    return info
