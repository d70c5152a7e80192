"""
Test doubles and builders shared by the unit and integration suites.

Fake AI clients stand in for the question/feedback/report services so the
controller and the API can be exercised without network access.
"""

import asyncio
from typing import Callable, List, Optional

from deep_mirror.core.exceptions import AIRequestCancelledError
from deep_mirror.domain.models.profile import (
    Interest,
    InterestDepth,
    Trouble,
    TroubleCategory,
    UserProfile,
)
from deep_mirror.domain.models.question import (
    EvolutionPath,
    EvolutionSuggestion,
    Question,
    QuestionOption,
    Report,
    ReportSection,
)
from deep_mirror.domain.models.session import SessionPhase
from deep_mirror.services.session_controller import SessionController

STORAGE_KEY = "deep-mirror-session"


def make_profile(**overrides) -> UserProfile:
    data = dict(
        gender="female",
        birth_year=1992,
        industry="Software",
        job_title="Product manager",
        mbti="INTJ",
        interests=[
            Interest(tag="Dota", depth=InterestDepth.HEAVY),
            Interest(tag="Hiking", depth=InterestDepth.LIGHT),
        ],
        troubles=[
            Trouble(category=TroubleCategory.CAREER_BOTTLENECK, stress_intensity=8),
            Trouble(category=TroubleCategory.SELF_WORTH, stress_intensity=4),
        ],
        trouble_details="Stuck at work makes me doubt myself",
    )
    data.update(overrides)
    return UserProfile(**data)


def make_question(text: str = "You are in a meeting...") -> Question:
    return Question(
        question=text,
        options=[
            QuestionOption(id="A", text="Speak up"),
            QuestionOption(id="B", text="Stay silent"),
            QuestionOption(id="C", text="Leave the room"),
        ],
    )


def make_report() -> Report:
    return Report(
        core_identity=ReportSection(title="Lone captain", description="You steer alone."),
        inner_conflict=ReportSection(title="Freedom vs control", description="You want both."),
        risk_prediction=ReportSection(title="Three signals", description="Watch for these."),
        evolution_path=EvolutionPath(
            title="Evolution path",
            suggestions=[EvolutionSuggestion(label="Delegate", description="Hand over one task.")],
        ),
    )


class FakeAIClient:
    """Records requests and answers them from a factory.

    failures: exceptions raised (in order) instead of answering
    gate: when set, every call waits on it before answering
    """

    def __init__(self, factory: Callable):
        self.factory = factory
        self.requests: List = []
        self.failures: List[Exception] = []
        self.gate: Optional[asyncio.Event] = None

    async def request(self, payload, token=None):
        self.requests.append(payload)
        if self.gate is not None:
            await self.gate.wait()
        if token is not None and token.cancelled:
            raise AIRequestCancelledError("cancelled")
        if self.failures:
            raise self.failures.pop(0)
        return self.factory(payload, len(self.requests))


def question_for(payload, call_number: int) -> Question:
    return make_question(
        f"Stage {payload.stage} question {payload.question_index} (call {call_number})"
    )


def feedback_for(payload, call_number: int) -> str:
    return f"I see that you... (stage {payload.stage})"


def report_for(payload, call_number: int) -> Report:
    return make_report()


async def answer_until_review(controller: SessionController, option_id: str = "A") -> None:
    """Answer every remaining question of the active stage."""
    while controller.state.phase == SessionPhase.ASKING:
        await controller.select_option(option_id)


async def advance_to_stage(controller: SessionController, stage: int) -> None:
    """Drive a controller until it is asking the first question of stage."""
    if controller.state.phase == SessionPhase.PROFILING:
        await controller.submit_profile(make_profile())
    while controller.state.stage < stage:
        await answer_until_review(controller)
        await controller.continue_to_next_stage()
