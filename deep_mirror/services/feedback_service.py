"""Stage feedback generation."""

from typing import Optional

import structlog

from deep_mirror.core.exceptions import MalformedResponseError
from deep_mirror.domain.models.requests import FeedbackRequest
from deep_mirror.llm.prompts.feedback import (
    get_feedback_system_prompt,
    get_feedback_user_prompt,
)
from deep_mirror.services.ai_request_base import AIRequestService
from deep_mirror.services.cancellation import CancellationToken

log = structlog.get_logger(__name__)


class FeedbackClient(AIRequestService):
    """Generates the plain-text feedback shown after each stage."""

    label = "feedback"

    async def request(
        self,
        payload: FeedbackRequest,
        token: Optional[CancellationToken] = None,
    ) -> str:
        log.info("feedback_requested", stage=payload.stage, answer_count=len(payload.answers))

        content = await self._complete(
            system=get_feedback_system_prompt(),
            prompt=get_feedback_user_prompt(payload, self.config),
            generation=self.config.generation.feedback,
            token=token,
        )
        feedback = content.strip()
        if not feedback:
            raise MalformedResponseError("AI feedback is empty")

        log.info("feedback_generated", stage=payload.stage, feedback_length=len(feedback))
        return feedback
