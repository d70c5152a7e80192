"""
Final report generation.

ReportClient runs once, after the user continues past stage 3's feedback.
"""

from typing import Optional

import pydantic
import structlog

from deep_mirror.core.exceptions import MalformedResponseError
from deep_mirror.domain.models.question import Report
from deep_mirror.domain.models.requests import ReportRequest
from deep_mirror.llm.prompts.report import get_report_system_prompt, get_report_user_prompt
from deep_mirror.services.ai_request_base import AIRequestService, extract_json_object
from deep_mirror.services.cancellation import CancellationToken

log = structlog.get_logger(__name__)


class ReportClient(AIRequestService):
    """Generates the four-section report."""

    label = "report"

    async def request(
        self,
        payload: ReportRequest,
        token: Optional[CancellationToken] = None,
    ) -> Report:
        """
        Generate the report over all stages.

        Args:
            payload: Report request with every stage's answers
            token: Cancellation token for the in-flight call

        Returns:
            Validated Report

        Raises:
            AIServiceError: Any transport, timeout or parsing failure
        """
        log.info(
            "report_requested",
            answer_count=sum(len(a) for a in payload.all_answers.values()),
        )

        content = await self._complete(
            system=get_report_system_prompt(),
            prompt=get_report_user_prompt(payload, self.config),
            generation=self.config.generation.report,
            token=token,
        )
        data = extract_json_object(content)

        try:
            report = Report.model_validate(data)
        except pydantic.ValidationError as e:
            raise MalformedResponseError(
                f"AI report is missing required sections: {e.error_count()} error(s)"
            ) from e

        log.info("report_generated", title=report.core_identity.title)
        return report
