"""Tests for the pure session state machine."""

import pytest

from deep_mirror.core.exceptions import ValidationError
from deep_mirror.domain.models.events import (
    AnswerEditRequested,
    ClearSnapshot,
    ContinueRequested,
    FeedbackReceived,
    OptionSelected,
    ProfileSubmitted,
    QuestionReceived,
    RegenerateRequested,
    ReportReceived,
    RestartRequested,
)
from deep_mirror.domain.models.question import Answer, RegenerateReason
from deep_mirror.domain.models.requests import FeedbackRequest, QuestionRequest, ReportRequest
from deep_mirror.domain.models.session import SessionPhase, SessionState
from deep_mirror.services.session_machine import (
    Action,
    allowed_actions,
    pending_request,
    transition,
)
from tests.support import make_profile, make_question, make_report


def asking(stage=1, index=0, answers=0, all_answers=None) -> SessionState:
    """State asking question `index` of `stage` with `answers` recorded."""
    question = make_question(f"Stage {stage} question {index}")
    recorded = [
        Answer(question=f"q{i}", selected_option=question.options[0]) for i in range(answers)
    ]
    return SessionState(
        stage=stage,
        question_index=index,
        current_question=question,
        stage_answers=recorded,
        all_answers=all_answers or {},
        profile=make_profile(),
    )


def finished_answers(count):
    option = make_question().options[1]
    return [Answer(question=f"done {i}", selected_option=option) for i in range(count)]


def reviewing(stage=1) -> SessionState:
    counts = {1: 3, 2: 3, 3: 2}
    all_answers = {s: finished_answers(counts[s]) for s in range(1, stage + 1)}
    return SessionState(
        stage=stage,
        question_index=counts[stage] - 1,
        stage_answers=all_answers[stage],
        all_answers=all_answers,
        feedback="I see that you...",
        showing_insight=True,
        profile=make_profile(),
    )


class TestProfileSubmitted:
    """Stage 0 -> stage 1."""

    def test_moves_to_first_question(self):
        """Profile submission enters stage 1 and requests question 0."""
        profile = make_profile()
        result = transition(SessionState(), ProfileSubmitted(profile=profile))

        assert result.state.stage == 1
        assert result.state.question_index == 0
        assert result.state.profile == profile
        assert result.state.phase == SessionPhase.AWAITING_QUESTION
        assert len(result.effects) == 1
        request = result.effects[0]
        assert isinstance(request, QuestionRequest)
        assert (request.stage, request.question_index) == (1, 0)
        assert request.previous_answers == {}
        assert request.regenerate is None

    def test_rejected_outside_profiling(self):
        """A second profile submission is a contract violation."""
        with pytest.raises(ValidationError):
            transition(asking(), ProfileSubmitted(profile=make_profile()))


class TestOptionSelected:
    """Answering questions."""

    def test_appends_answer_and_requests_next(self):
        """A non-final answer advances the index and asks for the next question."""
        state = asking(stage=1, index=0)
        result = transition(state, OptionSelected(option_id="B"))

        assert len(result.state.stage_answers) == 1
        answer = result.state.stage_answers[0]
        assert answer.question == state.current_question.question
        assert answer.selected_option.id == "B"
        assert result.state.question_index == 1
        assert result.state.current_question is None

        request = result.effects[0]
        assert isinstance(request, QuestionRequest)
        assert request.question_index == 1
        assert request.previous_answers == {1: result.state.stage_answers}

    def test_final_answer_finalizes_stage(self):
        """The last answer writes all_answers[s] and requests feedback."""
        state = asking(stage=1, index=2, answers=2)
        result = transition(state, OptionSelected(option_id="C"))

        assert len(result.state.all_answers[1]) == 3
        assert result.state.all_answers[1] == result.state.stage_answers
        assert result.state.phase == SessionPhase.AWAITING_FEEDBACK
        assert result.state.question_index == 2
        request = result.effects[0]
        assert isinstance(request, FeedbackRequest)
        assert request.stage == 1
        assert len(request.answers) == 3

    def test_stage_three_completes_after_two_answers(self):
        """Stage 3 has two questions."""
        all_answers = {1: finished_answers(3), 2: finished_answers(3)}
        state = asking(stage=3, index=1, answers=1, all_answers=all_answers)
        result = transition(state, OptionSelected(option_id="A"))

        assert len(result.state.all_answers[3]) == 2
        assert isinstance(result.effects[0], FeedbackRequest)

    def test_unknown_option_is_contract_violation(self):
        """Option ids must come from the current question."""
        with pytest.raises(ValidationError):
            transition(asking(), OptionSelected(option_id="Z"))

    def test_no_current_question_is_contract_violation(self):
        """Answering while the question is loading never reaches the reducer legitimately."""
        state = SessionState(stage=1, profile=make_profile())
        with pytest.raises(ValidationError):
            transition(state, OptionSelected(option_id="A"))


class TestRegenerate:
    """Question regeneration."""

    def test_discards_question_and_carries_context(self):
        """The rejected question travels with the request and is dropped from state."""
        state = asking(stage=2, index=1, answers=1, all_answers={1: finished_answers(3)})
        event = RegenerateRequested(
            reason=RegenerateReason.SCENARIO_MISMATCH, custom_feedback="I only play Dota"
        )
        result = transition(state, event)

        assert result.state.current_question is None
        assert result.state.stage_answers == state.stage_answers
        assert result.state.question_index == 1

        request = result.effects[0]
        assert request.is_regenerate
        assert request.regenerate.reason == RegenerateReason.SCENARIO_MISMATCH
        assert request.regenerate.custom_feedback == "I only play Dota"
        assert request.regenerate.previous_question == state.current_question
        assert set(request.previous_answers) == {1, 2}

    def test_never_appends_answers(self):
        """Regeneration leaves stage_answers untouched."""
        state = asking(stage=1, index=2, answers=2)
        result = transition(state, RegenerateRequested(reason=RegenerateReason.TOO_GENERIC))
        assert len(result.state.stage_answers) == 2


class TestContinue:
    """Leaving the review screen."""

    def test_starts_next_stage(self):
        """Continue from stage 1 resets the per-stage fields."""
        result = transition(reviewing(stage=1), ContinueRequested())

        assert result.state.stage == 2
        assert result.state.question_index == 0
        assert result.state.stage_answers == []
        assert result.state.feedback == ""
        assert result.state.showing_insight is False
        assert len(result.state.all_answers[1]) == 3
        request = result.effects[0]
        assert isinstance(request, QuestionRequest)
        assert (request.stage, request.question_index) == (2, 0)
        assert set(request.previous_answers) == {1}

    def test_last_stage_requests_report(self):
        """Continue after stage 3 waits for the report."""
        result = transition(reviewing(stage=3), ContinueRequested())

        assert result.state.stage == 3
        assert result.state.awaiting_report is True
        assert result.state.phase == SessionPhase.AWAITING_REPORT
        assert result.state.feedback == ""
        request = result.effects[0]
        assert isinstance(request, ReportRequest)
        assert set(request.all_answers) == {1, 2, 3}


class TestEditAnswer:
    """Rolling back within a stage."""

    @pytest.mark.parametrize("k", [0, 1, 2])
    def test_truncates_to_k(self, k):
        """Edit at k keeps answers [0, k) and asks question k again."""
        state = reviewing(stage=1)
        result = transition(state, AnswerEditRequested(index=k))

        assert result.state.stage_answers == state.stage_answers[:k]
        assert result.state.question_index == k
        assert result.state.showing_insight is False
        assert result.state.feedback == ""
        assert 1 not in result.state.all_answers
        request = result.effects[0]
        assert request.question_index == k

    def test_keeps_earlier_stages(self):
        """Only the active stage is un-finalized."""
        result = transition(reviewing(stage=2), AnswerEditRequested(index=1))
        assert len(result.state.all_answers[1]) == 3
        assert 2 not in result.state.all_answers

    def test_out_of_range_is_contract_violation(self):
        with pytest.raises(ValidationError):
            transition(reviewing(stage=1), AnswerEditRequested(index=3))


class TestCompletions:
    """Network completion events."""

    def test_question_received(self):
        """A matching question is shown."""
        state = SessionState(stage=1, profile=make_profile())
        question = make_question()
        result = transition(state, QuestionReceived(stage=1, question_index=0, question=question))

        assert result.state.current_question == question
        assert result.state.phase == SessionPhase.ASKING
        assert not result.stale

    def test_question_for_other_index_is_stale(self):
        """A question for another position is discarded."""
        state = SessionState(stage=1, profile=make_profile())
        result = transition(
            state, QuestionReceived(stage=1, question_index=1, question=make_question())
        )
        assert result.stale
        assert result.state is state

    def test_feedback_received_shows_insight(self):
        state = transition(asking(stage=1, index=2, answers=2), OptionSelected(option_id="A")).state
        result = transition(state, FeedbackReceived(stage=1, feedback="I see that you..."))

        assert result.state.showing_insight is True
        assert result.state.feedback == "I see that you..."
        assert result.state.phase == SessionPhase.REVIEWING

    def test_report_received_finishes(self):
        """The report moves the session to stage 4."""
        state = transition(reviewing(stage=3), ContinueRequested()).state
        result = transition(state, ReportReceived(report=make_report()))

        assert result.state.stage == 4
        assert result.state.report is not None
        assert result.state.phase == SessionPhase.DONE
        assert result.state.awaiting_report is False

    def test_report_after_restart_is_stale(self):
        result = transition(SessionState(), ReportReceived(report=make_report()))
        assert result.stale


class TestRestart:
    def test_resets_and_clears_snapshot(self):
        """Restart from anywhere yields an empty state and a clear effect."""
        result = transition(reviewing(stage=2), RestartRequested())

        assert result.state == SessionState()
        assert any(isinstance(e, ClearSnapshot) for e in result.effects)


class TestAllowedActions:
    """Phase gating."""

    def test_profiling(self):
        assert allowed_actions(SessionState()) == {Action.SUBMIT_PROFILE, Action.RESTART}

    def test_asking(self):
        assert allowed_actions(asking()) == {
            Action.SELECT_OPTION,
            Action.REGENERATE,
            Action.RESTART,
        }

    def test_reviewing(self):
        assert allowed_actions(reviewing()) == {
            Action.CONTINUE,
            Action.EDIT_ANSWER,
            Action.RESTART,
        }

    def test_awaiting_question_only_restart(self):
        state = SessionState(stage=1, profile=make_profile())
        assert allowed_actions(state) == {Action.RESTART}


class TestPendingRequest:
    """Requests rebuilt from state after a reload."""

    def test_awaiting_question(self):
        state = SessionState(stage=1, question_index=0, profile=make_profile())
        request = pending_request(state)
        assert isinstance(request, QuestionRequest)
        assert request.question_index == 0

    def test_awaiting_feedback(self):
        state = transition(asking(stage=1, index=2, answers=2), OptionSelected(option_id="A")).state
        request = pending_request(state)
        assert isinstance(request, FeedbackRequest)
        assert len(request.answers) == 3

    def test_awaiting_report(self):
        state = transition(reviewing(stage=3), ContinueRequested()).state
        assert isinstance(pending_request(state), ReportRequest)

    def test_nothing_pending_while_asking(self):
        assert pending_request(asking()) is None
