"""
Prompts for question generation.

Generates one scenario question based on:
- The user profile (interests, troubles)
- The active stage and its purpose
- Answers recorded so far (for context and anti-repetition)
- Regeneration feedback, when the user rejected the previous question

Stage display names come from the assessment YAML config.
"""

import json
import re
from typing import Dict, List, Optional

from deep_mirror.core.config import AssessmentConfig, assessment_config
from deep_mirror.domain.models.profile import UserProfile
from deep_mirror.domain.models.question import OPTIONS_PER_QUESTION, Answer, RegenerateReason
from deep_mirror.domain.models.requests import QuestionRequest, RegenerateContext
from deep_mirror.llm.prompts.profile import (
    format_profile_for_prompt,
    get_interests_analysis,
    get_troubles_analysis,
)

# Freeform feedback markers. Each match adds a constraint section to the prompt.
EXCLUSIVE_PATTERN = re.compile(r"\b(only|just|solely)\b", re.IGNORECASE)
NEGATIVE_PATTERN = re.compile(r"\b(not|never|don't|do not|can't)\b", re.IGNORECASE)
PRIORITY_PATTERN = re.compile(r"\b(actually|more|really care)\b", re.IGNORECASE)

STAGE_TASKS = {
    1: """Generate ONE concrete, scenario-based question for this user.

Question requirements:
- A high-frequency situation this user really meets in daily life
- Ask for their instinctive reaction or first action in that moment
- Vivid and specific; no abstract psychological wording

Option requirements:
- Each option is a different stress-reaction pattern
- Options are observable actions or decisions, not feelings""",
    2: """Based on the profile and the previous answers, generate ONE question that
digs into motivation.

Question requirements:
- Probe the values and core drives behind the behaviour seen so far
- Set up a situation that forces a choice between different values
- Reveal whether the user is driven by fear or by desire

Option requirements:
- Each option stands for a different value or inner need
- For example: control vs safety, dignity vs money, freedom vs stability""",
    3: """Generate ONE high-pressure dilemma that tests defence mechanisms.

Question requirements:
- An extreme, painful dilemma with no comfortable way out
- Force a choice between options the user does not want
- Reveal the user's defences and bottom line near breaking point

Option requirements:
- Every option is hard and has a cost
- Reveal what the user protects first and what they sacrifice""",
}

STAGE_VARIETY_RULES = {
    1: (
        "1. Switch to a different conflict type (time pressure, interpersonal conflict, "
        "self-doubt, moral dilemma, resource competition, identity)\n"
        "2. Switch to a different area of life (if the last one was work, use private "
        "life, hobbies or another area)\n"
        "3. Use a different emotional tone (anxiety, loss, anger, confusion, excitement)\n"
        "4. Never produce a scene or phrasing similar to the previous question"
    ),
    2: "The new question must probe a different value dimension than the previous one.",
    3: "The new question must use a different kind of extreme dilemma and a different source of pressure.",
}

REGENERATE_DIRECTIVES = {
    RegenerateReason.SCENARIO_MISMATCH: (
        "The scenario does not fit the user's real life.",
        [
            "Drop the previous question's setting entirely",
            "Build the scene from a completely different side of the user's life or work",
            "The scene must be one the user really meets; do not idealise or guess",
            "Make sure it reflects the everyday reality of the {industry} industry",
        ],
    ),
    RegenerateReason.TOO_GENERIC: (
        "The question is too generic or feels templated.",
        [
            "Zoom in on one specific micro-moment",
            "Add sensory details (sight, sound, touch) or industry jargon",
            "Weave in the user's deep interest ({heavy_interest}) where it fits",
            "Replace 'what would you do' with 'your first reaction right now is...'",
        ],
    ),
    RegenerateReason.DIFFERENT_ANGLE: (
        "The user wants a completely different angle.",
        [
            "Pick an area of the profile not covered yet (interests, troubles, relationships)",
            "If the previous question was about work, use private life this time, and vice versa",
            "Creativity first: metaphors and counter-intuitive situations are welcome",
            "Keep the psychological depth; do not trade test value for novelty",
        ],
    ),
}


def get_question_system_prompt() -> str:
    """
    Get system prompt for question generation.

    Returns:
        System prompt string
    """
    return f"""You are a senior Jungian analyst and behavioural economist. Your style is objective, deep and incisive: empathetic but never sentimental.

Your task is to write questions for a staged psychological self-assessment:
- Stage 1: surface behaviour (stress reactions)
- Stage 2: deep drive (motivation)
- Stage 3: shadow and defence (pressure test)

## JSON format (mandatory)
- Return RAW JSON only. Do not wrap it in Markdown code fences.
- Do not put literal newlines inside string values; use \\n instead.
- The response must parse as JSON without any preprocessing.

## Principles
1. Never ask abstract questions such as "Are you anxious?"
2. Always build a concrete scenario
3. Always offer projective options; each option reveals a different trait
4. The scenario must match the user's real life and identity
5. Split the scenario into 2-3 short paragraphs separated by \\n\\n:
   background, then conflict, then (optionally) the pressure point

## Exclusion logic
When the user's feedback says "only", treat it as a strict scope limit. When it says
"not" or "never", treat it as an absolute ban. Do not generalise or extend the user's
self-description.

## Output
{{"question": "...", "options": [{{"id": "A", "text": "..."}}, {{"id": "B", "text": "..."}}, {{"id": "C", "text": "..."}}]}}
Exactly {OPTIONS_PER_QUESTION} options."""


def detect_feedback_constraints(custom_feedback: str) -> List[str]:
    """
    Detect constraint markers in freeform regeneration feedback.

    Args:
        custom_feedback: Text the user typed when rejecting a question

    Returns:
        Subset of ["exclusive", "negative", "priority_shift"], in that order
    """
    constraints = []
    if EXCLUSIVE_PATTERN.search(custom_feedback):
        constraints.append("exclusive")
    if NEGATIVE_PATTERN.search(custom_feedback):
        constraints.append("negative")
    if PRIORITY_PATTERN.search(custom_feedback):
        constraints.append("priority_shift")
    return constraints


def build_regenerate_instructions(context: RegenerateContext, profile: UserProfile) -> str:
    """
    Build the regeneration section of the user prompt.

    Args:
        context: Reason, freeform feedback and the rejected question
        profile: User profile (industry and interests fill the directives)

    Returns:
        Markdown section telling the model what to change
    """
    heavy = profile.heavy_interests()
    summary, directives = REGENERATE_DIRECTIVES[context.reason]

    text = "\n\n## The user asked for a different question\n\n"
    text += f'**Previous question:**\n"{context.previous_question.question}"\n\n'
    text += f"**Reason:** {summary}\n\n**Directives:**\n"
    for index, directive in enumerate(directives, start=1):
        filled = directive.format(
            industry=profile.industry,
            heavy_interest=heavy[0] if heavy else "their deepest interest",
        )
        text += f"{index}. {filled}\n"

    feedback = context.custom_feedback.strip()
    if feedback:
        text += "\n## The user's own correction (highest priority)\n\n"
        text += f'"{feedback}"\n\n'
        text += (
            "Follow this correction strictly. Respect the user's self-description and "
            "include any concrete life details they mention.\n\n"
        )

        constraints = detect_feedback_constraints(feedback)
        if "exclusive" in constraints:
            text += (
                "### Exclusive constraint\n"
                "The user limited the scope with 'only'. Keep the scene strictly inside "
                "what they named; do not generalise.\n\n"
            )
        if "negative" in constraints:
            text += (
                "### Negative constraint\n"
                "The user excluded something they do not do or are not. Avoid that area "
                "completely.\n\n"
            )
        if "priority_shift" in constraints:
            text += (
                "### Priority shift\n"
                "The user revealed what they actually care about. Their statement outranks "
                "anything inferred from the profile; build the scene around it.\n\n"
            )

    text += (
        "---\n\nThis is a second attempt after explicit feedback. The new question must be "
        "clearly different from the previous one.\n\n"
    )
    return text


def _format_previous_answers(previous_answers: Dict[int, List[Answer]]) -> str:
    if not previous_answers:
        return "(none yet)"
    payload = {
        str(stage): [answer.model_dump(mode="json") for answer in answers]
        for stage, answers in sorted(previous_answers.items())
    }
    return json.dumps(payload, ensure_ascii=False, indent=2)


def get_question_user_prompt(
    request: QuestionRequest,
    config: Optional[AssessmentConfig] = None,
) -> str:
    """
    Get user prompt for question generation.

    Args:
        request: The question request (profile, stage, prior answers, regeneration)
        config: Assessment config for stage names (defaults to global config)

    Returns:
        User prompt string
    """
    config = config or assessment_config
    stage = request.stage

    prompt = format_profile_for_prompt(request.profile)
    prompt += get_interests_analysis(request.profile)
    prompt += f"\n\n{get_troubles_analysis(request.profile)}\n\n---\n\n"

    if request.regenerate is not None:
        prompt += build_regenerate_instructions(request.regenerate, request.profile)

    prompt += f"## Task\n\nThis is the {config.stage_name(stage)} stage "
    prompt += f"(question {request.question_index + 1}).\n\n"

    if stage > 1:
        prompt += "Answers so far:\n"
        prompt += _format_previous_answers(request.previous_answers)
        prompt += "\n\n"

    prompt += STAGE_TASKS[stage]
    prompt += f"\n- Provide exactly {OPTIONS_PER_QUESTION} options (A, B, C)\n"

    current = request.previous_answers.get(stage) or []
    if current:
        prompt += "\n## Variety\n\n"
        prompt += f'**Previous question:**\n"{current[-1].question}"\n\n'
        prompt += STAGE_VARIETY_RULES[stage] + "\n"

    prompt += (
        '\nReturn pure JSON: {"question": "...", "options": '
        '[{"id": "A", "text": "..."}, {"id": "B", "text": "..."}, {"id": "C", "text": "..."}]}'
    )
    return prompt
