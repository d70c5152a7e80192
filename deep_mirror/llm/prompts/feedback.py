"""Prompts for per-stage feedback (plain text, no JSON)."""

from typing import Optional

from deep_mirror.core.config import AssessmentConfig, assessment_config
from deep_mirror.domain.models.requests import FeedbackRequest
from deep_mirror.llm.prompts.profile import (
    format_answers,
    format_profile_for_prompt,
    get_troubles_analysis,
)


def get_feedback_system_prompt() -> str:
    return """You are a senior Jungian analyst and behavioural economist. Your style is objective, deep and incisive: empathetic but never sentimental.

Your task is to give immediate feedback on the user's answers in one stage.

Structure (150-200 words):
1. Recognition: start with "I see that you..." and describe the behaviour pattern you observed
2. Insight: continue with "This suggests..." and reveal the mechanism or drive behind it
3. Hook: turn with "But..." and raise a deeper question that leads into the next stage

Style:
- No empty praise such as "great job"
- Reflect the user back like a mirror
- Gentle, but sharp
- Concrete observations instead of abstract judgements"""


def get_feedback_user_prompt(
    request: FeedbackRequest,
    config: Optional[AssessmentConfig] = None,
) -> str:
    config = config or assessment_config

    prompt = format_profile_for_prompt(request.profile)
    prompt += f"\n\n{get_troubles_analysis(request.profile)}\n\n---\n\n"
    prompt += f"## Answers in the {config.stage_name(request.stage)} stage\n\n"
    prompt += format_answers(request.answers)
    prompt += (
        "\n\n## Task\n\n"
        "Write 150-200 words of feedback following the structure above.\n"
        "Output the feedback text directly: no JSON, no heading."
    )
    return prompt
