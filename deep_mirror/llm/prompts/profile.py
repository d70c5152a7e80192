"""
Profile and answer formatting shared by all prompts.

Turns a UserProfile and recorded answers into the plain-text blocks that
prefix every question, feedback and report prompt.
"""

from typing import List

from deep_mirror.domain.models.profile import (
    TROUBLE_LABELS,
    Interest,
    Trouble,
    UserProfile,
)
from deep_mirror.domain.models.question import Answer


def format_interests(interests: List[Interest]) -> str:
    if not interests:
        return "(none given)"
    return ", ".join(f"{i.tag} ({i.depth.value})" for i in interests)


def format_trouble(trouble: Trouble) -> str:
    label = TROUBLE_LABELS.get(trouble.category, trouble.category.value)
    return f"{label} ({trouble.stress_level.value} {trouble.stress_intensity}/10)"


def format_profile_for_prompt(profile: UserProfile) -> str:
    """
    Render the profile as a Markdown section.

    Args:
        profile: Submitted user profile

    Returns:
        "## User profile" block with one field per line
    """
    lines = [
        "## User profile",
        f"Gender: {profile.gender}",
        f"Age: {profile.age} (born {profile.birth_year})",
        f"Industry: {profile.industry}",
        f"Job title: {profile.job_title}",
    ]
    if profile.mbti:
        lines.append(f"MBTI: {profile.mbti}")
    lines.append(f"Interests: {format_interests(profile.interests)}")

    troubles = ", ".join(format_trouble(t) for t in profile.troubles)
    lines.append(f"Core troubles: {troubles}")
    if profile.trouble_details:
        lines.append(f"How the troubles relate: {profile.trouble_details}")

    return "\n".join(lines)


def get_troubles_analysis(profile: UserProfile) -> str:
    """Numbered trouble list with a note when several troubles coexist."""
    text = f"The user currently faces {len(profile.troubles)} trouble(s):\n\n"
    for index, trouble in enumerate(profile.troubles, start=1):
        text += f"{index}. {format_trouble(trouble)}\n"

    if profile.trouble_details:
        text += f'\nThe user describes how they relate:\n"{profile.trouble_details}"'

    if len(profile.troubles) > 1:
        text += (
            "\n\nNote: several troubles at once may influence each other or share "
            "a common root. Consider how they connect."
        )
    return text


def get_interests_analysis(profile: UserProfile) -> str:
    heavy = profile.heavy_interests()
    light = profile.light_interests()

    text = ""
    if heavy:
        text += f"\nDeeply invested in: {', '.join(heavy)}"
    if light:
        text += f"\nCasually into: {', '.join(light)}"
    if heavy:
        text += (
            f"\n\nHint: deep investment in {', '.join(heavy)} may reveal personality "
            "traits or psychological needs."
        )
    return text


def format_answers(answers: List[Answer]) -> str:
    """One block per answer: question text and the chosen option."""
    blocks = []
    for index, answer in enumerate(answers, start=1):
        option = answer.selected_option
        blocks.append(
            f"Question {index}: {answer.question}\n"
            f"Chosen: {option.id}. {option.text}"
        )
    return "\n\n".join(blocks)
