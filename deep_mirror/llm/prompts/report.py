"""
Prompts for the final report.

The report covers all three probing stages and is returned as JSON with four
sections: core_identity, inner_conflict, risk_prediction, evolution_path.
"""

from typing import Optional

from deep_mirror.core.config import AssessmentConfig, assessment_config
from deep_mirror.domain.models.requests import ReportRequest
from deep_mirror.domain.models.session import STAGE_QUESTION_COUNTS
from deep_mirror.llm.prompts.profile import (
    format_answers,
    format_profile_for_prompt,
    get_interests_analysis,
    get_troubles_analysis,
)

REPORT_JSON_SHAPE = """{
  "core_identity": {"title": "A metaphorical title", "description": "100-150 words"},
  "inner_conflict": {"title": "Short title of the core conflict", "description": "150-200 words"},
  "risk_prediction": {"title": "Risk warning title", "description": "150-200 words"},
  "evolution_path": {
    "title": "Evolution path",
    "suggestions": [
      {"label": "Short strategy title", "description": "50-80 words, concrete and actionable"}
    ]
  }
}"""


def get_report_system_prompt() -> str:
    """
    Get system prompt for the final report.

    Returns:
        System prompt string
    """
    return """You are a senior Jungian analyst and behavioural economist. Your style is objective, deep and incisive: empathetic but never sentimental.

Your task is to write a deep psychological report from the user's answers across all three stages.
The report is not meant to comfort. It should let the user see themselves clearly, including hidden contradictions, risks and possibilities.

The report has four sections, returned as JSON:
1. core_identity: a metaphorical title ("a lone captain in the storm") and a 100-150 word portrait
2. inner_conflict: the central logical contradiction in the answers, 150-200 words
3. risk_prediction: where the user's defences will fail under high pressure, 150-200 words
4. evolution_path: 2-3 actionable strategies, 50-80 words each, no platitudes

Style:
- A mirror without filters
- Gentle, but sharp
- No empty encouragement
- Return RAW JSON only, without Markdown code fences"""


def get_report_user_prompt(
    request: ReportRequest,
    config: Optional[AssessmentConfig] = None,
) -> str:
    """
    Get user prompt for the final report.

    Args:
        request: Profile plus the finalized answers of every stage
        config: Assessment config for stage names (defaults to global config)

    Returns:
        User prompt string
    """
    config = config or assessment_config

    prompt = format_profile_for_prompt(request.profile)
    prompt += get_interests_analysis(request.profile)
    prompt += f"\n\n{get_troubles_analysis(request.profile)}\n\n---\n\n"
    prompt += "## Answers across the three stages\n"

    for stage in sorted(STAGE_QUESTION_COUNTS):
        prompt += f"\n### Stage {stage}: {config.stage_name(stage)}\n\n"
        answers = request.all_answers.get(stage) or []
        prompt += format_answers(answers) if answers else "(no answers)"
        prompt += "\n"

    prompt += (
        "\n---\n\n## Task\n\n"
        "Internally (do not output this): classify the behaviour patterns, detect the "
        "contradictions between answers, decide whether fear or desire drives this person, "
        "and predict what they would do under extreme pressure.\n\n"
        "Output format (pure JSON):\n"
    )
    prompt += REPORT_JSON_SHAPE
    prompt += "\n\nRemember: this is a mirror, not comfort food."
    return prompt
