"""
Session state machine.

transition(state, event) is a pure function: it returns the next
SessionState and the effects (AI requests, snapshot clearing) that the
driver must run. It never performs I/O.

Guards here are contract checks. SessionController only forwards events that
allowed_actions() permits, so a ValidationError from this module means a
programming error, not bad user input.

Transitions:
    PROFILING         + ProfileSubmitted    -> AWAITING_QUESTION(1, 0)
    ASKING            + OptionSelected      -> AWAITING_QUESTION(s, i+1) | AWAITING_FEEDBACK
    ASKING            + RegenerateRequested -> AWAITING_QUESTION(s, i)
    REVIEWING         + ContinueRequested   -> AWAITING_QUESTION(s+1, 0) | AWAITING_REPORT
    REVIEWING         + AnswerEditRequested -> AWAITING_QUESTION(s, k)
    AWAITING_QUESTION + QuestionReceived    -> ASKING
    AWAITING_FEEDBACK + FeedbackReceived    -> REVIEWING
    AWAITING_REPORT   + ReportReceived      -> DONE
    any               + RestartRequested    -> PROFILING
"""

from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Optional

import pydantic

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
    SessionEvent,
    Transition,
)
from deep_mirror.domain.models.question import Answer
from deep_mirror.domain.models.requests import (
    FeedbackRequest,
    QuestionRequest,
    RegenerateContext,
    ReportRequest,
)
from deep_mirror.domain.models.session import (
    DONE_STAGE,
    FIRST_STAGE,
    LAST_STAGE,
    SessionPhase,
    SessionState,
    question_count_of,
)


class Action(str, Enum):
    """User actions exposed by SessionController."""

    SUBMIT_PROFILE = "submit_profile"
    SELECT_OPTION = "select_option"
    REGENERATE = "regenerate"
    CONTINUE = "continue"
    EDIT_ANSWER = "edit_answer"
    RESTART = "restart"
    RETRY = "retry"


PHASE_ACTIONS: Dict[SessionPhase, FrozenSet[Action]] = {
    SessionPhase.PROFILING: frozenset({Action.SUBMIT_PROFILE}),
    SessionPhase.AWAITING_QUESTION: frozenset(),
    SessionPhase.ASKING: frozenset({Action.SELECT_OPTION, Action.REGENERATE}),
    SessionPhase.AWAITING_FEEDBACK: frozenset({Action.EDIT_ANSWER}),
    SessionPhase.REVIEWING: frozenset({Action.CONTINUE, Action.EDIT_ANSWER}),
    SessionPhase.AWAITING_REPORT: frozenset(),
    SessionPhase.DONE: frozenset(),
}


def allowed_actions(state: SessionState) -> FrozenSet[Action]:
    """Actions the phase permits. Restart is always allowed; retry is decided by the driver."""
    return PHASE_ACTIONS[state.phase] | {Action.RESTART}


def _evolve(state: SessionState, **changes: Any) -> SessionState:
    """Build the next state, re-checking every invariant."""
    values = dict(state)
    values.update(changes)
    try:
        return SessionState(**values)
    except pydantic.ValidationError as e:
        raise ValidationError(f"transition produced an invalid state: {e}") from e


def _require_phase(state: SessionState, *phases: SessionPhase) -> None:
    if state.phase not in phases:
        allowed = ", ".join(p.value for p in phases)
        raise ValidationError(f"event requires phase {allowed}, session is {state.phase.value}")


def _question_request(state: SessionState, **extra: Any) -> QuestionRequest:
    return QuestionRequest(
        profile=state.profile,
        stage=state.stage,
        question_index=state.question_index,
        previous_answers=state.prior_answers(),
        **extra,
    )


def pending_request(state: SessionState):
    """
    The AI request a waiting state is waiting for, rebuilt from state.

    Used to resume after a reload, when the original request is gone.
    Regeneration context is not part of the state, so a resumed
    regeneration becomes a plain question request.

    Returns:
        QuestionRequest, FeedbackRequest, ReportRequest, or None when the
        session is not waiting for anything
    """
    phase = state.phase
    if phase == SessionPhase.AWAITING_QUESTION:
        return _question_request(state)
    if phase == SessionPhase.AWAITING_FEEDBACK:
        return FeedbackRequest(
            profile=state.profile, stage=state.stage, answers=list(state.stage_answers)
        )
    if phase == SessionPhase.AWAITING_REPORT:
        return ReportRequest(profile=state.profile, all_answers=dict(state.all_answers))
    return None


# =============================================================================
# User actions
# =============================================================================


def _on_profile_submitted(state: SessionState, event: ProfileSubmitted) -> Transition:
    _require_phase(state, SessionPhase.PROFILING)
    new_state = SessionState(stage=FIRST_STAGE, question_index=0, profile=event.profile)
    return Transition(new_state, [_question_request(new_state)])


def _on_option_selected(state: SessionState, event: OptionSelected) -> Transition:
    _require_phase(state, SessionPhase.ASKING)
    question = state.current_question
    option = question.find_option(event.option_id)
    if option is None:
        raise ValidationError(f"option {event.option_id!r} is not offered by the current question")

    answers = list(state.stage_answers) + [Answer(question=question.question, selected_option=option)]

    if len(answers) < question_count_of(state.stage):
        new_state = _evolve(
            state,
            stage_answers=answers,
            question_index=state.question_index + 1,
            current_question=None,
        )
        return Transition(new_state, [_question_request(new_state)])

    # Stage complete: finalize exactly once, here
    all_answers = dict(state.all_answers)
    all_answers[state.stage] = answers
    new_state = _evolve(
        state,
        stage_answers=answers,
        all_answers=all_answers,
        current_question=None,
    )
    request = FeedbackRequest(profile=state.profile, stage=state.stage, answers=answers)
    return Transition(new_state, [request])


def _on_regenerate_requested(state: SessionState, event: RegenerateRequested) -> Transition:
    _require_phase(state, SessionPhase.ASKING)
    context = RegenerateContext(
        reason=event.reason,
        custom_feedback=event.custom_feedback,
        previous_question=state.current_question,
    )
    # The rejected question is dropped now, not kept as a fallback
    new_state = _evolve(state, current_question=None)
    return Transition(new_state, [_question_request(new_state, regenerate=context)])


def _on_continue_requested(state: SessionState, event: ContinueRequested) -> Transition:
    _require_phase(state, SessionPhase.REVIEWING)

    if state.stage < LAST_STAGE:
        new_state = _evolve(
            state,
            stage=state.stage + 1,
            question_index=0,
            current_question=None,
            stage_answers=[],
            feedback="",
            showing_insight=False,
        )
        return Transition(new_state, [_question_request(new_state)])

    new_state = _evolve(state, feedback="", showing_insight=False, awaiting_report=True)
    request = ReportRequest(profile=state.profile, all_answers=dict(state.all_answers))
    return Transition(new_state, [request])


def _on_answer_edit_requested(state: SessionState, event: AnswerEditRequested) -> Transition:
    _require_phase(state, SessionPhase.REVIEWING, SessionPhase.AWAITING_FEEDBACK)
    k = event.index
    if not 0 <= k < len(state.stage_answers):
        raise ValidationError(f"answer index {k} out of range")

    all_answers = {s: a for s, a in state.all_answers.items() if s != state.stage}
    new_state = _evolve(
        state,
        stage_answers=list(state.stage_answers[:k]),
        all_answers=all_answers,
        question_index=k,
        current_question=None,
        feedback="",
        showing_insight=False,
    )
    return Transition(new_state, [_question_request(new_state)])


def _on_restart_requested(state: SessionState, event: RestartRequested) -> Transition:
    return Transition(SessionState(), [ClearSnapshot()])


# =============================================================================
# Network completions
# =============================================================================


def _on_question_received(state: SessionState, event: QuestionReceived) -> Transition:
    if (
        state.phase != SessionPhase.AWAITING_QUESTION
        or state.stage != event.stage
        or state.question_index != event.question_index
    ):
        return Transition(state, stale=True)
    return Transition(_evolve(state, current_question=event.question))


def _on_feedback_received(state: SessionState, event: FeedbackReceived) -> Transition:
    if state.phase != SessionPhase.AWAITING_FEEDBACK or state.stage != event.stage:
        return Transition(state, stale=True)
    return Transition(_evolve(state, feedback=event.feedback, showing_insight=True))


def _on_report_received(state: SessionState, event: ReportReceived) -> Transition:
    if state.phase != SessionPhase.AWAITING_REPORT:
        return Transition(state, stale=True)
    new_state = _evolve(
        state,
        stage=DONE_STAGE,
        question_index=0,
        current_question=None,
        stage_answers=[],
        feedback="",
        showing_insight=False,
        awaiting_report=False,
        report=event.report,
    )
    return Transition(new_state)


_HANDLERS: Dict[type, Callable[[SessionState, Any], Transition]] = {
    ProfileSubmitted: _on_profile_submitted,
    OptionSelected: _on_option_selected,
    RegenerateRequested: _on_regenerate_requested,
    ContinueRequested: _on_continue_requested,
    AnswerEditRequested: _on_answer_edit_requested,
    RestartRequested: _on_restart_requested,
    QuestionReceived: _on_question_received,
    FeedbackReceived: _on_feedback_received,
    ReportReceived: _on_report_received,
}


def transition(state: SessionState, event: SessionEvent) -> Transition:
    """
    Apply one event.

    Args:
        state: Current state (never mutated)
        event: User action or network completion

    Returns:
        Transition with the next state and the effects to run

    Raises:
        ValidationError: The event is not valid for the state (contract violation)
    """
    handler: Optional[Callable] = _HANDLERS.get(type(event))
    if handler is None:
        raise ValidationError(f"unknown event type {type(event).__name__}")
    return handler(state, event)
