# noqa
from deep_mirror.llm.prompts.feedback import (
    get_feedback_system_prompt,
    get_feedback_user_prompt,
)
from deep_mirror.llm.prompts.question import (
    detect_feedback_constraints,
    get_question_system_prompt,
    get_question_user_prompt,
)
from deep_mirror.llm.prompts.report import (
    get_report_system_prompt,
    get_report_user_prompt,
)

__all__ = [
    "get_feedback_system_prompt",
    "get_feedback_user_prompt",
    "detect_feedback_constraints",
    "get_question_system_prompt",
    "get_question_user_prompt",
    "get_report_system_prompt",
    "get_report_user_prompt",
]
