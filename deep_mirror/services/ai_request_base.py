"""
Shared plumbing for the question, feedback and report clients.

Every client sends one prompt through the LLM transport under the request
timeout, then parses the text it gets back. Parsing is structural only:
Markdown fences and surrounding prose are stripped, the outermost JSON object
is decoded, and anything else raises MalformedResponseError.
"""

import json
import re
from typing import Any, Dict, Optional

import structlog

from deep_mirror.core.config import AssessmentConfig, GenerationConfig, assessment_config, settings
from deep_mirror.core.exceptions import MalformedResponseError
from deep_mirror.llm.client import LLMClient
from deep_mirror.services.cancellation import CancellationToken, run_with_timeout

log = structlog.get_logger(__name__)

FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Decode the outermost JSON object in a model response.

    Args:
        text: Raw response text, possibly fenced or wrapped in prose

    Returns:
        The decoded object

    Raises:
        MalformedResponseError: No object found, or it does not decode
    """
    clean = FENCE_PATTERN.sub("", text).strip()
    first = clean.find("{")
    last = clean.rfind("}")
    if first == -1 or last <= first:
        raise MalformedResponseError("AI response does not contain a JSON object")

    candidate = clean[first : last + 1]
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        # Models sometimes emit literal newlines inside strings
        try:
            data = json.loads(candidate, strict=False)
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"AI response is not valid JSON: {e.msg}") from e

    if not isinstance(data, dict):
        raise MalformedResponseError("AI response JSON is not an object")
    return data


class AIRequestService:
    """Base for clients that turn one AI request into one typed result."""

    label = "ai_request"

    def __init__(
        self,
        llm_client: LLMClient,
        timeout: Optional[float] = None,
        config: Optional[AssessmentConfig] = None,
    ):
        """
        Args:
            llm_client: Transport used for the completion
            timeout: Wall-clock budget per request (defaults to settings.ai_request_timeout)
            config: Assessment config (stage names, generation parameters)
        """
        self.llm_client = llm_client
        self.timeout = timeout if timeout is not None else settings.ai_request_timeout
        self.config = config or assessment_config

    async def _complete(
        self,
        system: str,
        prompt: str,
        generation: GenerationConfig,
        token: Optional[CancellationToken] = None,
    ) -> str:
        response = await run_with_timeout(
            self.llm_client.complete(
                prompt=prompt,
                system=system,
                temperature=generation.temperature,
                max_tokens=generation.max_tokens,
            ),
            timeout=self.timeout,
            token=token,
            label=self.label,
        )
        return response.content
