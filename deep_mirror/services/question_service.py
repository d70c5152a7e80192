"""
Question generation.

QuestionClient sends a QuestionRequest to the LLM and returns a validated
Question. Regeneration requests carry the rejected question, the reason and
the user's freeform correction; the prompt layer turns them into directives.
"""

from typing import Any, Dict, Optional

import pydantic
import structlog

from deep_mirror.core.exceptions import MalformedResponseError
from deep_mirror.domain.models.question import OPTIONS_PER_QUESTION, Question
from deep_mirror.domain.models.requests import QuestionRequest
from deep_mirror.llm.prompts.question import (
    get_question_system_prompt,
    get_question_user_prompt,
)
from deep_mirror.services.ai_request_base import AIRequestService, extract_json_object
from deep_mirror.services.cancellation import CancellationToken

log = structlog.get_logger(__name__)


def parse_question(data: Dict[str, Any]) -> Question:
    """
    Validate a decoded question payload.

    Args:
        data: Decoded JSON object

    Returns:
        Question with exactly OPTIONS_PER_QUESTION options

    Raises:
        MalformedResponseError: Missing fields, wrong option count or duplicate ids
    """
    try:
        question = Question.model_validate(data)
    except pydantic.ValidationError as e:
        raise MalformedResponseError(
            f"AI question is missing required fields: {e.error_count()} error(s)"
        ) from e

    if len(question.options) != OPTIONS_PER_QUESTION:
        raise MalformedResponseError(
            f"AI question has {len(question.options)} options, expected {OPTIONS_PER_QUESTION}"
        )

    ids = [option.id for option in question.options]
    if len(set(ids)) != len(ids):
        raise MalformedResponseError("AI question has duplicate option ids")

    return question


class QuestionClient(AIRequestService):
    """Generates one question per request."""

    label = "question"

    async def request(
        self,
        payload: QuestionRequest,
        token: Optional[CancellationToken] = None,
    ) -> Question:
        """
        Generate the question for (payload.stage, payload.question_index).

        Args:
            payload: Question request
            token: Cancellation token for the in-flight call

        Returns:
            Validated Question

        Raises:
            AIServiceError: Any transport, timeout or parsing failure
        """
        log.info(
            "question_requested",
            stage=payload.stage,
            question_index=payload.question_index,
            is_regenerate=payload.is_regenerate,
            regenerate_reason=payload.regenerate.reason.value if payload.regenerate else None,
        )

        content = await self._complete(
            system=get_question_system_prompt(),
            prompt=get_question_user_prompt(payload, self.config),
            generation=self.config.generation.question,
            token=token,
        )
        question = parse_question(extract_json_object(content))

        log.info(
            "question_generated",
            stage=payload.stage,
            question_index=payload.question_index,
            question_length=len(question.question),
        )
        return question
