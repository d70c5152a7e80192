"""
Session controller.

SessionController drives the pure state machine in session_machine:
    1. Reject the action if a request is in flight (restart excepted) or the
       phase does not allow it
    2. Apply the event and persist the new state before anything else
    3. Run the resulting effect (one AI request) under a cancellation token
    4. Apply the completion event and persist again

Failures leave the state as it was after step 2 and are recorded as a
PendingRetry carrying the exact request that failed. retry() re-sends it.

Restart cancels the in-flight request and bumps an epoch counter, so a
result that arrives later is discarded instead of applied.
"""

import asyncio
from typing import List, Optional

import pydantic
import structlog
from pydantic import BaseModel

from deep_mirror.core.exceptions import (
    AIRequestCancelledError,
    AIServiceError,
    InvalidActionError,
    NoPendingRequestError,
    SessionBusyError,
)
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
)
from deep_mirror.domain.models.profile import UserProfile
from deep_mirror.domain.models.question import RegenerateReason
from deep_mirror.domain.models.requests import (
    AIRequest,
    FeedbackRequest,
    QuestionRequest,
    ReportRequest,
)
from deep_mirror.domain.models.session import SessionPhase, SessionState
from deep_mirror.persistence.migrations import migrate_snapshot
from deep_mirror.persistence.store import PersistedStore
from deep_mirror.services.cancellation import CancellationToken
from deep_mirror.services.error_classifier import ClassifiedError, classify_error
from deep_mirror.services.feedback_service import FeedbackClient
from deep_mirror.services.progress import ProgressInfo, describe_progress
from deep_mirror.services.question_service import QuestionClient
from deep_mirror.services.report_service import ReportClient
from deep_mirror.services.session_machine import (
    Action,
    allowed_actions,
    pending_request,
    transition,
)

log = structlog.get_logger(__name__)


class PendingRetry(BaseModel):
    """The last failed AI request and how it failed."""

    request: AIRequest
    error: ClassifiedError


class SessionView(BaseModel):
    """Read-only picture of the session for the presentation layer."""

    state: SessionState
    phase: SessionPhase
    progress: ProgressInfo
    busy: bool
    error: Optional[ClassifiedError] = None
    allowed_actions: List[Action]


class SessionController:
    """Owns the session state and sequences every transition."""

    def __init__(
        self,
        store: PersistedStore,
        question_client: QuestionClient,
        feedback_client: FeedbackClient,
        report_client: ReportClient,
    ):
        """
        Args:
            store: Snapshot storage
            question_client: Generates questions and regenerations
            feedback_client: Generates stage feedback
            report_client: Generates the final report
        """
        self.store = store
        self.question_client = question_client
        self.feedback_client = feedback_client
        self.report_client = report_client

        self._state = SessionState()
        self._busy = False
        self._epoch = 0
        self._token: Optional[CancellationToken] = None
        self._pending: Optional[PendingRetry] = None
        self._persist_lock = asyncio.Lock()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def pending_retry(self) -> Optional[PendingRetry]:
        return self._pending

    # ==========================================================================
    # Loading and views
    # ==========================================================================

    async def load(self) -> SessionState:
        """
        Restore the persisted session, or start empty.

        Snapshots are migrated (stage flooring) before validation. A snapshot
        that fails validation is treated as no session.
        """
        raw = await self.store.load()
        if raw is None:
            self._state = SessionState()
            log.info("session_started_empty")
            return self._state

        migrated = migrate_snapshot(raw)
        try:
            state = SessionState.model_validate(migrated)
        except pydantic.ValidationError as e:
            log.warning("snapshot_invalid", error_count=e.error_count())
            self._state = SessionState()
            return self._state

        self._state = state
        if migrated.get("stage") != raw.get("stage"):
            await self.store.save(state.model_dump(mode="json"))

        log.info("session_restored", stage=state.stage, phase=state.phase.value)
        return self._state

    def allowed_actions(self) -> List[Action]:
        if self._busy:
            return [Action.RESTART]
        actions = set(allowed_actions(self._state))
        if self._pending is not None or pending_request(self._state) is not None:
            actions.add(Action.RETRY)
        return sorted(actions, key=lambda a: a.value)

    def view(self) -> SessionView:
        return SessionView(
            state=self._state,
            phase=self._state.phase,
            progress=describe_progress(self._state),
            busy=self._busy,
            error=self._pending.error if self._pending else None,
            allowed_actions=self.allowed_actions(),
        )

    # ==========================================================================
    # User actions
    # ==========================================================================

    async def submit_profile(self, profile: UserProfile) -> SessionView:
        return await self._act(Action.SUBMIT_PROFILE, ProfileSubmitted(profile=profile))

    async def select_option(self, option_id: str) -> SessionView:
        self._guard(Action.SELECT_OPTION)
        if self._state.current_question.find_option(option_id) is None:
            raise InvalidActionError(f"Option '{option_id}' is not offered by the current question")
        return await self._act(Action.SELECT_OPTION, OptionSelected(option_id=option_id))

    async def regenerate(
        self, reason: RegenerateReason, custom_feedback: str = ""
    ) -> SessionView:
        event = RegenerateRequested(reason=reason, custom_feedback=custom_feedback)
        return await self._act(Action.REGENERATE, event)

    async def continue_to_next_stage(self) -> SessionView:
        return await self._act(Action.CONTINUE, ContinueRequested())

    async def edit_answer(self, index: int) -> SessionView:
        self._guard(Action.EDIT_ANSWER)
        if not 0 <= index < len(self._state.stage_answers):
            raise InvalidActionError(
                f"Answer index {index} out of range (0-{len(self._state.stage_answers) - 1})"
            )
        return await self._act(Action.EDIT_ANSWER, AnswerEditRequested(index=index))

    async def restart(self) -> SessionView:
        """
        Reset to an empty session and clear the snapshot.

        Allowed at any time; an in-flight request is cancelled and its
        result discarded.
        """
        self._epoch += 1
        if self._token is not None:
            self._token.cancel("restart")
        self._pending = None

        result = transition(self._state, RestartRequested())
        async with self._persist_lock:
            self._state = result.state
            for effect in result.effects:
                if isinstance(effect, ClearSnapshot):
                    await self.store.clear()

        log.info("session_restarted", epoch=self._epoch)
        return self.view()

    async def retry(self) -> SessionView:
        """
        Re-send the last failed request.

        After a reload there is no recorded failure; the request the current
        phase is waiting for is rebuilt from state instead.

        Raises:
            SessionBusyError: A request is in flight
            NoPendingRequestError: Nothing is waiting to be retried
        """
        if self._busy:
            raise SessionBusyError("A request is already in progress")

        request = self._pending.request if self._pending else pending_request(self._state)
        if request is None:
            raise NoPendingRequestError("There is no failed request to retry")

        self._busy = True
        try:
            log.info("request_retried", kind=request.kind, stage=self._state.stage)
            await self._run_request(request, self._epoch)
        finally:
            self._busy = False
        return self.view()

    # ==========================================================================
    # Driver
    # ==========================================================================

    def _guard(self, action: Action) -> None:
        if self._busy:
            raise SessionBusyError("A request is already in progress")
        if action not in allowed_actions(self._state):
            raise InvalidActionError(
                f"Action '{action.value}' is not allowed while {self._state.phase.value}"
            )

    async def _act(self, action: Action, event: SessionEvent) -> SessionView:
        # Check and claim the busy flag before the first await
        self._guard(action)
        self._busy = True
        epoch = self._epoch

        try:
            result = transition(self._state, event)
            if not await self._commit(result.state, epoch):
                return self.view()

            self._pending = None
            log.info("action_applied", action=action.value, phase=result.state.phase.value)

            for effect in result.effects:
                await self._run_request(effect, epoch)
        finally:
            self._busy = False

        return self.view()

    async def _commit(self, state: SessionState, epoch: int) -> bool:
        """Adopt and persist a state unless a restart made it obsolete."""
        async with self._persist_lock:
            if epoch != self._epoch:
                log.info("stale_state_discarded", epoch=epoch, current_epoch=self._epoch)
                return False
            self._state = state
            await self.store.save(state.model_dump(mode="json"))
            return True

    async def _run_request(self, request: AIRequest, epoch: int) -> None:
        token = CancellationToken()
        self._token = token

        try:
            event = await self._send(request, token)
        except AIRequestCancelledError:
            log.info("request_cancelled", kind=request.kind)
            return
        except AIServiceError as e:
            if epoch != self._epoch:
                return
            error = classify_error(e)
            self._pending = PendingRetry(request=request, error=error)
            log.warning(
                "request_failed",
                kind=request.kind,
                error_kind=error.kind.value,
                error=e.message,
            )
            raise
        finally:
            if self._token is token:
                self._token = None

        if epoch != self._epoch:
            log.info("stale_result_discarded", kind=request.kind)
            return

        result = transition(self._state, event)
        if result.stale:
            log.info("stale_result_discarded", kind=request.kind, phase=self._state.phase.value)
            self._pending = None
            return

        if await self._commit(result.state, epoch):
            self._pending = None

    async def _send(self, request: AIRequest, token: CancellationToken) -> SessionEvent:
        if isinstance(request, QuestionRequest):
            question = await self.question_client.request(request, token=token)
            return QuestionReceived(
                stage=request.stage,
                question_index=request.question_index,
                question=question,
            )
        if isinstance(request, FeedbackRequest):
            feedback = await self.feedback_client.request(request, token=token)
            return FeedbackReceived(stage=request.stage, feedback=feedback)
        if isinstance(request, ReportRequest):
            report = await self.report_client.request(request, token=token)
            return ReportReceived(report=report)
        raise TypeError(f"unsupported request type {type(request).__name__}")
