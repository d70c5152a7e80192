"""
Session API routes.

One endpoint per user action. Every action endpoint waits for the AI request
it triggers and returns the resulting SessionView. A failed AI request
answers with its classified error (see exception_handlers) and leaves the
session ready for POST /session/retry.
"""

from fastapi import APIRouter, HTTPException, status
import structlog

from deep_mirror.api.dependencies import SessionControllerDep
from deep_mirror.api.schemas import AnswerRequest, EditAnswerRequest, RegenerateRequest
from deep_mirror.domain.models.profile import UserProfile
from deep_mirror.domain.models.question import Report
from deep_mirror.services.session_controller import SessionView

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/session", tags=["session"])


@router.get("", response_model=SessionView)
async def get_session(controller: SessionControllerDep) -> SessionView:
    """Current state, phase, progress, last error and allowed actions."""
    return controller.view()


@router.post("/profile", response_model=SessionView)
async def submit_profile(profile: UserProfile, controller: SessionControllerDep) -> SessionView:
    """Submit the stage-0 profile and receive the first question."""
    log.info(
        "profile_submitted",
        interest_count=len(profile.interests),
        trouble_count=len(profile.troubles),
    )
    return await controller.submit_profile(profile)


@router.post("/answer", response_model=SessionView)
async def select_option(body: AnswerRequest, controller: SessionControllerDep) -> SessionView:
    return await controller.select_option(body.option_id)


@router.post("/regenerate", response_model=SessionView)
async def regenerate_question(
    body: RegenerateRequest, controller: SessionControllerDep
) -> SessionView:
    """Replace the current question, telling the model why it missed."""
    return await controller.regenerate(body.reason, body.custom_feedback)


@router.post("/continue", response_model=SessionView)
async def continue_to_next_stage(controller: SessionControllerDep) -> SessionView:
    return await controller.continue_to_next_stage()


@router.post("/edit", response_model=SessionView)
async def edit_answer(body: EditAnswerRequest, controller: SessionControllerDep) -> SessionView:
    """Roll the current stage back to the answer at index."""
    return await controller.edit_answer(body.index)


@router.post("/restart", response_model=SessionView)
async def restart(controller: SessionControllerDep) -> SessionView:
    return await controller.restart()


@router.post("/retry", response_model=SessionView)
async def retry(controller: SessionControllerDep) -> SessionView:
    """Re-send the last failed AI request."""
    return await controller.retry()


@router.get("/report", response_model=Report)
async def get_report(controller: SessionControllerDep) -> Report:
    """
    Final report for export consumers.

    Raises:
        HTTPException 404: The assessment is not finished
    """
    report = controller.state.report
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Report is not available until the assessment is complete",
        )
    return report
