"""Tests for load-time snapshot migrations."""

import pytest

from deep_mirror.persistence.migrations import floor_stage, migrate_snapshot, normalize_stage


@pytest.mark.parametrize(
    "stage, expected",
    [(0, 0), (1, 1), (1.5, 1), (2.5, 2), (3.0, 3), (4, 4)],
)
def test_normalize_stage(stage, expected):
    """Half steps floor to their integer base."""
    result = normalize_stage(stage)
    assert result == expected
    assert isinstance(result, int)


@pytest.mark.parametrize("stage", ["2", None, True, float("nan")])
def test_non_numbers_pass_through(stage):
    """Validation, not migration, rejects these."""
    result = normalize_stage(stage)
    assert result is stage


def test_migrate_is_idempotent():
    snapshot = {"stage": 2.5, "question_index": 0}
    once = migrate_snapshot(snapshot)
    twice = migrate_snapshot(once)

    assert once == twice == {"stage": 2, "question_index": 0}


def test_migrate_does_not_mutate_input():
    snapshot = {"stage": 1.5}
    migrate_snapshot(snapshot)
    assert snapshot == {"stage": 1.5}


def test_missing_stage_untouched():
    snapshot = {"question_index": 1}
    assert floor_stage(snapshot) is snapshot


def answers(count):
    return [
        {"question": f"q{i}", "selected_option": {"id": "A", "text": "Speak up"}}
        for i in range(count)
    ]


class TestRestoreInsight:
    def test_half_stage_with_feedback_reopens_insight(self):
        snapshot = {
            "stage": 1.5,
            "question_index": 2,
            "stage_answers": answers(3),
            "all_answers": {"1": answers(3)},
            "feedback": "You tend to act first.",
            "current_question": None,
        }

        migrated = migrate_snapshot(snapshot)

        assert migrated["stage"] == 1
        assert migrated["showing_insight"] is True
        assert migrate_snapshot(migrated) == migrated

    @pytest.mark.parametrize(
        "overrides",
        [
            {"feedback": "   "},
            {"stage_answers": answers(2)},
            {"current_question": {"text": "q", "options": []}},
            {"awaiting_report": True},
        ],
    )
    def test_insight_left_closed(self, overrides):
        snapshot = {
            "stage": 1.5,
            "stage_answers": answers(3),
            "feedback": "You tend to act first.",
            **overrides,
        }

        assert "showing_insight" not in migrate_snapshot(snapshot)

    def test_integer_stage_not_touched(self):
        """Only floored snapshots get the insight view back."""
        snapshot = {"stage": 1, "stage_answers": answers(3), "feedback": "You tend to act first."}
        assert migrate_snapshot(snapshot) is snapshot
