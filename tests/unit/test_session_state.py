"""Tests for SessionState invariants and phase derivation."""

import pytest
from pydantic import ValidationError

from deep_mirror.domain.models.question import Answer
from deep_mirror.domain.models.session import (
    STAGE_QUESTION_COUNTS,
    SessionPhase,
    SessionState,
    question_count_of,
)
from tests.support import make_profile, make_question, make_report


def recorded(count):
    option = make_question().options[2]
    return [Answer(question=f"q{i}", selected_option=option) for i in range(count)]


def test_question_counts():
    assert STAGE_QUESTION_COUNTS == {1: 3, 2: 3, 3: 2}
    assert question_count_of(0) == 0
    assert question_count_of(4) == 0


class TestPhase:
    def test_profiling(self):
        assert SessionState().phase == SessionPhase.PROFILING

    def test_awaiting_question(self):
        state = SessionState(stage=1, profile=make_profile())
        assert state.phase == SessionPhase.AWAITING_QUESTION

    def test_asking(self):
        state = SessionState(stage=1, profile=make_profile(), current_question=make_question())
        assert state.phase == SessionPhase.ASKING

    def test_awaiting_feedback(self):
        state = SessionState(
            stage=3,
            question_index=1,
            stage_answers=recorded(2),
            all_answers={1: recorded(3), 2: recorded(3), 3: recorded(2)},
            profile=make_profile(),
        )
        assert state.phase == SessionPhase.AWAITING_FEEDBACK

    def test_reviewing(self):
        state = SessionState(
            stage=1,
            question_index=2,
            stage_answers=recorded(3),
            all_answers={1: recorded(3)},
            showing_insight=True,
            profile=make_profile(),
        )
        assert state.phase == SessionPhase.REVIEWING

    def test_awaiting_report(self):
        state = SessionState(
            stage=3,
            question_index=1,
            stage_answers=recorded(2),
            all_answers={1: recorded(3), 2: recorded(3), 3: recorded(2)},
            awaiting_report=True,
            profile=make_profile(),
        )
        assert state.phase == SessionPhase.AWAITING_REPORT

    def test_done(self):
        state = SessionState(
            stage=4,
            all_answers={1: recorded(3), 2: recorded(3), 3: recorded(2)},
            report=make_report(),
            profile=make_profile(),
        )
        assert state.phase == SessionPhase.DONE


class TestInvariants:
    def test_stage_requires_profile(self):
        with pytest.raises(ValidationError):
            SessionState(stage=1)

    def test_report_only_at_stage_four(self):
        with pytest.raises(ValidationError):
            SessionState(stage=1, profile=make_profile(), report=make_report())
        with pytest.raises(ValidationError):
            SessionState(
                stage=4,
                all_answers={1: recorded(3), 2: recorded(3), 3: recorded(2)},
                profile=make_profile(),
            )

    def test_partial_stage_in_all_answers_rejected(self):
        """all_answers only ever holds complete stages."""
        with pytest.raises(ValidationError):
            SessionState(stage=2, all_answers={1: recorded(2)}, profile=make_profile())

    def test_completed_stage_must_be_recorded(self):
        with pytest.raises(ValidationError):
            SessionState(stage=2, profile=make_profile())

    def test_too_many_stage_answers(self):
        with pytest.raises(ValidationError):
            SessionState(
                stage=3,
                question_index=1,
                stage_answers=recorded(3),
                all_answers={1: recorded(3), 2: recorded(3)},
                profile=make_profile(),
            )

    def test_question_index_in_range(self):
        with pytest.raises(ValidationError):
            SessionState(stage=1, question_index=3, profile=make_profile())

    def test_insight_needs_complete_stage(self):
        with pytest.raises(ValidationError):
            SessionState(
                stage=1,
                question_index=1,
                stage_answers=recorded(1),
                showing_insight=True,
                profile=make_profile(),
            )

    def test_stage_out_of_range(self):
        with pytest.raises(ValidationError):
            SessionState(stage=5, profile=make_profile())


class TestPriorAnswers:
    def test_includes_current_stage(self):
        state = SessionState(
            stage=2,
            question_index=1,
            stage_answers=recorded(1),
            all_answers={1: recorded(3)},
            profile=make_profile(),
        )

        prior = state.prior_answers()

        assert set(prior) == {1, 2}
        assert len(prior[2]) == 1

    def test_empty_at_start(self):
        state = SessionState(stage=1, profile=make_profile())
        assert state.prior_answers() == {}


def test_json_round_trip_keys():
    """Stage keys come back as ints after a JSON round trip."""
    state = SessionState(
        stage=2,
        all_answers={1: recorded(3)},
        profile=make_profile(),
    )
    restored = SessionState.model_validate_json(state.model_dump_json())
    assert restored == state
    assert list(restored.all_answers) == [1]
