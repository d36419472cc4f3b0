# ==============================================================================
# ARCHITECTURE: UNIT TEST (CORE LOGIC)
# ------------------------------------------------------------------------------
# GOAL: Verify payload versioning: encode/decode, stepwise upgrades and
#       rejection of corrupt payloads.
# ==============================================================================
import json
from datetime import datetime, timezone

import pytest

from nautiquiz.config import Category
from nautiquiz.quiz.domain.errors import PersistenceDecodeError
from nautiquiz.quiz.domain.migration import (
    CURRENT_SCHEMA_VERSION,
    MIGRATIONS,
    decode_progress,
    encode_progress,
    migrate_payload,
    needs_migration,
)
from nautiquiz.quiz.domain.models import OptionKey, UserProgress

V1_PAYLOAD = {
    "questions_answered": 10,
    "correct_answers": 7,
    "category_stats": {"Part A: General": {"answered": 10, "correct": 7}},
    "bookmarks": [3, 1],
    "incorrect_question_ids": [4, 5, 6],
    "streak_days": 2,
}


def populated_progress():
    progress = UserProgress()
    progress.record_answer(1, Category.PART_B, "Rule 9", True)
    progress.record_answer(2, Category.PART_C, "Rule 23", False)
    progress.toggle_bookmark(2)
    progress.toggle_bookmark(1)
    now = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
    progress.update_streak(now)
    progress.record_quiz_completion(
        mode="2-Question Quiz",
        score=50.0,
        time_taken=42.5,
        total_questions=2,
        correct_count=1,
        question_ids=[1, 2],
        answers={1: OptionKey.A, 2: OptionKey.D},
        now=now,
    )
    return progress


class TestVersioning:
    def test_current_version_is_two(self):
        assert CURRENT_SCHEMA_VERSION == 2

    @pytest.mark.parametrize(
        "stored, expected",
        [(0, False), (1, True), (2, False), (3, False)],
    )
    def test_needs_migration(self, stored, expected):
        assert needs_migration(stored) is expected

    def test_every_step_below_current_is_registered(self):
        assert set(MIGRATIONS) == set(range(1, CURRENT_SCHEMA_VERSION))

    def test_v1_to_v2_adds_rule_stats(self):
        payload = migrate_payload(dict(V1_PAYLOAD), from_version=1)

        assert payload["rule_stats"] == {}
        assert payload["questions_answered"] == 10

    def test_migration_keeps_existing_rule_stats(self):
        payload = migrate_payload(
            {"rule_stats": {"Rule 5": {"answered": 1, "correct": 1}}}, from_version=1
        )

        assert payload["rule_stats"] == {"Rule 5": {"answered": 1, "correct": 1}}


class TestDecode:
    def test_round_trip_is_lossless(self):
        progress = populated_progress()

        restored = decode_progress(encode_progress(progress), CURRENT_SCHEMA_VERSION)

        assert restored == progress
        assert restored.bookmarks == [2, 1]
        assert restored.quiz_history[0].answers == {1: "A", 2: "D"}

    def test_v1_payload_decodes_with_defaults(self):
        progress = decode_progress(json.dumps(V1_PAYLOAD), stored_version=1)

        assert progress.questions_answered == 10
        assert progress.stats_for_category(Category.PART_A).correct == 7
        assert progress.rule_stats == {}
        assert progress.incorrect_question_ids == {4, 5, 6}
        assert progress.quiz_history == []
        assert progress.total_quizzes_taken == 0

    @pytest.mark.parametrize(
        "raw",
        [
            "not json at all",
            "[1, 2, 3]",
            '{"questions_answered": "many"}',
            b"\xff\xfe\x00",
        ],
    )
    def test_corrupt_payload_raises(self, raw):
        with pytest.raises(PersistenceDecodeError):
            decode_progress(raw, CURRENT_SCHEMA_VERSION)
