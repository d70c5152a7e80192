"""
Load-time snapshot migrations.

Migrations run once, on the raw snapshot dict, before it is validated into a
SessionState. Each step must be idempotent. There is no field-by-field
migration across versions: a snapshot with another version tag never
reaches this module (PersistedStore drops it).
"""

import math
from typing import Any, Callable, Dict, List

import structlog

from deep_mirror.domain.models.session import question_count_of

log = structlog.get_logger(__name__)


def normalize_stage(stage: Any) -> Any:
    """Floor a half-step stage marker (1.5 -> 1, 2.5 -> 2) to its integer base.

    Older releases stored half steps between stages; they are no longer
    produced. Integer stages are returned unchanged, and so is anything that
    is not a number (validation rejects it later).
    """
    if isinstance(stage, bool):
        return stage
    if isinstance(stage, float) and math.isfinite(stage):
        return int(math.floor(stage))
    return stage


def floor_stage(snapshot: Dict[str, Any]) -> Dict[str, Any]:
    if "stage" not in snapshot:
        return snapshot
    original = snapshot["stage"]
    normalized = normalize_stage(original)
    if normalized != original or type(normalized) is not type(original):
        log.info("snapshot_stage_normalized", original=original, normalized=normalized)
        snapshot = {**snapshot, "stage": normalized}
        snapshot = restore_insight(snapshot)
    return snapshot


def restore_insight(snapshot: Dict[str, Any]) -> Dict[str, Any]:
    """Reopen the stage feedback view that a half-step stage stood for.

    Only called for snapshots whose stage was just floored. The view is
    restored when the stage is fully answered, feedback text is stored and no
    question is on screen.
    """
    stage = snapshot.get("stage")
    answers = snapshot.get("stage_answers")
    feedback = snapshot.get("feedback")
    if not isinstance(stage, int) or not isinstance(answers, list):
        return snapshot
    if not answers or len(answers) != question_count_of(stage):
        return snapshot
    if not isinstance(feedback, str) or not feedback.strip():
        return snapshot
    if snapshot.get("current_question") is not None or snapshot.get("awaiting_report"):
        return snapshot
    if snapshot.get("showing_insight") is not True:
        log.info("snapshot_insight_restored", stage=stage)
        snapshot = {**snapshot, "showing_insight": True}
    return snapshot


# Applied in order
SNAPSHOT_MIGRATIONS: List[Callable[[Dict[str, Any]], Dict[str, Any]]] = [
    floor_stage,
]


def migrate_snapshot(snapshot: Dict[str, Any]) -> Dict[str, Any]:
    """Run every migration step over a raw snapshot."""
    for step in SNAPSHOT_MIGRATIONS:
        snapshot = step(snapshot)
    return snapshot
