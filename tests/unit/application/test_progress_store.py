# ==============================================================================
# ARCHITECTURE: UNIT TEST (APPLICATION LOGIC)
# ------------------------------------------------------------------------------
# GOAL: Verify the progress store against a mocked repository: load paths,
#       save-per-mutation, session finalization and recommendations.
# ==============================================================================
from unittest.mock import Mock

import pytest

from nautiquiz.config import Category, QuizConfig
from nautiquiz.quiz.application.progress_store import ProgressStore
from nautiquiz.quiz.domain.migration import CURRENT_SCHEMA_VERSION, encode_progress
from nautiquiz.quiz.domain.models import (
    OptionKey,
    RecommendationAction,
    RecommendationPriority,
    UserProgress,
)
from nautiquiz.quiz.domain.modes import PracticeMode, QuickQuizMode
from nautiquiz.quiz.domain.ports import IProgressRepository
from nautiquiz.quiz.domain.session import QuizSession
from tests.helpers.builders import make_question


# --- Fixtures (The "Arrange" Phase) ---

@pytest.fixture
def mock_repo():
    """A strict mock of the repository port holding nothing."""
    repo = Mock(spec=IProgressRepository)
    repo.load_payload.return_value = None
    repo.get_schema_version.return_value = 0
    return repo


@pytest.fixture
def store(mock_repo, clock):
    return ProgressStore(mock_repo, clock=clock)


@pytest.fixture
def three_questions():
    return [
        make_question(1, OptionKey.A, Category.PART_B, "Rule 9"),
        make_question(2, OptionKey.B, Category.PART_B, "Rule 9"),
        make_question(3, OptionKey.C, Category.PART_C, "Rule 23"),
    ]


def saved_progress(mock_repo) -> UserProgress:
    payload = mock_repo.save_payload.call_args.args[0]
    return UserProgress.model_validate_json(payload)


# --- Tests (The "Act" & "Assert" Phases) ---

class TestLoad:
    def test_first_launch_starts_empty_and_stamps_version(self, store, mock_repo):
        assert store.questions_answered == 0
        mock_repo.set_schema_version.assert_called_once_with(CURRENT_SCHEMA_VERSION)
        mock_repo.save_payload.assert_not_called()

    def test_existing_payload_is_decoded(self, mock_repo, clock):
        progress = UserProgress(questions_answered=4, correct_answers=3, bookmarks=[8])
        mock_repo.load_payload.return_value = encode_progress(progress)
        mock_repo.get_schema_version.return_value = CURRENT_SCHEMA_VERSION

        store = ProgressStore(mock_repo, clock=clock)

        assert store.questions_answered == 4
        assert store.bookmarked_ids == [8]

    def test_corrupt_payload_falls_back_to_fresh(self, mock_repo, clock):
        mock_repo.load_payload.return_value = "{{{ definitely not json"
        mock_repo.get_schema_version.return_value = 1

        store = ProgressStore(mock_repo, clock=clock)

        assert store.progress == UserProgress()
        mock_repo.set_schema_version.assert_called_once_with(CURRENT_SCHEMA_VERSION)

    def test_v1_payload_is_upgraded(self, mock_repo, clock):
        mock_repo.load_payload.return_value = '{"questions_answered": 3, "correct_answers": 1}'
        mock_repo.get_schema_version.return_value = 1

        store = ProgressStore(mock_repo, clock=clock)

        assert store.questions_answered == 3
        assert store.all_rule_stats == []
        mock_repo.set_schema_version.assert_called_once_with(CURRENT_SCHEMA_VERSION)


class TestMutationsSave:
    def test_record_answer_saves(self, store, mock_repo):
        store.record_answer(1, Category.PART_A, "Rule 1", False)

        mock_repo.save_payload.assert_called_once()
        assert saved_progress(mock_repo).incorrect_question_ids == {1}

    def test_toggle_bookmark_saves_each_time(self, store, mock_repo):
        assert store.toggle_bookmark(5) is True
        assert store.is_bookmarked(5) is True
        assert store.toggle_bookmark(5) is False

        assert mock_repo.save_payload.call_count == 2
        assert saved_progress(mock_repo).bookmarks == []

    def test_update_streak_saves(self, store, mock_repo, clock):
        store.update_streak()

        assert store.streak_days == 1
        assert saved_progress(mock_repo).last_session_date == clock()

    def test_reset_keeps_bookmarks_only(self, store, mock_repo):
        store.toggle_bookmark(2)
        store.toggle_bookmark(1)
        store.record_answer(3, Category.PART_A, "Rule 2", False)
        store.update_streak()

        store.reset_progress()

        assert store.progress == UserProgress(bookmarks=[2, 1])
        assert saved_progress(mock_repo).bookmarks == [2, 1]

    def test_record_quiz_completion_updates_streak_and_history(self, store, clock):
        entry = store.record_quiz_completion(
            mode="10-Question Quiz",
            score=80.0,
            time_taken=90.0,
            total_questions=10,
            correct_count=8,
            question_ids=list(range(1, 11)),
            answers={1: OptionKey.A},
        )

        assert entry.date == clock()
        assert store.streak_days == 1
        assert store.total_quizzes_taken == 1
        assert store.recent_quizzes == [entry]
        # Per-answer statistics are recorded separately
        assert store.questions_answered == 0


class TestFinalizeSession:
    def test_deferred_mode_records_answers_at_end(self, store, mock_repo, clock, three_questions):
        session = QuizSession.start(QuickQuizMode(question_count=3), three_questions, now=clock())
        session.submit_answer(OptionKey.A)  # right
        session.move_to_next(clock())
        session.submit_answer(OptionKey.A)  # wrong
        clock.advance(seconds=40)

        result = store.finalize_session(session)

        assert result.score == 50
        assert result.time_taken == 40.0
        assert store.questions_answered == 2
        assert store.correct_answers == 1
        assert store.incorrect_ids == {2}
        assert store.rule_stats("Rule 9").answered == 2
        assert store.total_quizzes_taken == 1
        assert store.recent_quizzes[0].mode == "3-Question Quiz"
        assert store.recent_quizzes[0].answers == {1: "A", 2: "A"}
        mock_repo.save_payload.assert_called_once()

    def test_immediate_mode_does_not_record_twice(self, store, clock, three_questions):
        session = QuizSession.start(PracticeMode(), three_questions, now=clock())
        session.submit_answer(OptionKey.A)
        # The service records immediate answers as they are given
        store.record_answer(1, Category.PART_B, "Rule 9", True)

        store.finalize_session(session)

        assert store.questions_answered == 1
        assert store.total_quizzes_taken == 1

    def test_second_finalize_is_ignored(self, store, mock_repo, clock, three_questions):
        session = QuizSession.start(QuickQuizMode(question_count=3), three_questions, now=clock())
        session.submit_answer(OptionKey.A)

        first = store.finalize_session(session)
        clock.advance(minutes=5)
        second = store.finalize_session(session)

        assert second.time_taken == first.time_taken
        assert store.questions_answered == 1
        assert store.total_quizzes_taken == 1
        assert mock_repo.save_payload.call_count == 1

    def test_finalize_updates_streak(self, store, clock, three_questions):
        session = QuizSession.start(QuickQuizMode(question_count=3), three_questions, now=clock())

        store.finalize_session(session)

        assert store.streak_days == 1
        assert store.has_active_streak is True
        clock.advance(days=3)
        assert store.has_active_streak is False


class TestStatistics:
    def test_formatted_values(self, store):
        store.record_quiz_completion("m", 50.0, 3900.0, 1, 0, [1], {})
        store.record_answer(1, Category.PART_A, "", True)
        store.record_answer(2, Category.PART_A, "", False)
        store.record_answer(3, Category.PART_A, "", False)

        assert store.formatted_study_time == "1h 5m"
        assert store.formatted_accuracy == "33.3%"

    def test_formatted_study_time_minutes_only(self, store):
        store.record_quiz_completion("m", 50.0, 330.0, 1, 0, [1], {})

        assert store.formatted_study_time == "5m"

    def test_completion_percentages(self, store):
        for qid in range(1, 5):
            store.record_answer(qid, Category.PART_D, "", True)

        assert store.category_completion(Category.PART_D, 8) == 50.0
        assert store.category_completion(Category.PART_D, 0) == 0.0
        assert store.overall_completion(40) == 10.0

    def test_all_rule_stats_sorted_numerically(self, store):
        for rule in ("Rule 19", "Rule 2", "Annex I", "Rule 10"):
            store.record_answer(1, Category.PART_B, rule, True)

        assert [rule for rule, _ in store.all_rule_stats] == [
            "Rule 2",
            "Rule 10",
            "Rule 19",
            "Annex I",
        ]

    def test_recent_quizzes_newest_first_and_limited(self, store, clock):
        for n in range(QuizConfig.RECENT_QUIZZES + 3):
            clock.advance(minutes=1)
            store.record_quiz_completion("m", float(n), 1.0, 1, 0, [1], {})

        recent = store.recent_quizzes

        assert len(recent) == QuizConfig.RECENT_QUIZZES
        assert recent[0].score == float(QuizConfig.RECENT_QUIZZES + 2)
        assert store.last_quiz_date == clock()

    def test_average_score(self, store):
        assert store.average_score == 0.0
        store.record_quiz_completion("m", 60.0, 1.0, 1, 0, [1], {})
        store.record_quiz_completion("m", 90.0, 1.0, 1, 0, [1], {})

        assert store.average_score == 75.0


class TestRecommendations:
    def test_nothing_to_recommend_for_new_user(self, store):
        assert store.study_recommendations() == []

    def test_ranked_by_priority(self, store):
        for qid in range(1, 6):
            store.record_answer(qid, Category.PART_C, "", qid == 1)
        store.toggle_bookmark(1)

        recommendations = store.study_recommendations()

        assert [r.action for r in recommendations] == [
            RecommendationAction.PRACTICE_CATEGORY,
            RecommendationAction.REVIEW_MISTAKES,
            RecommendationAction.STUDY_BOOKMARKED,
        ]
        assert recommendations[0].category is Category.PART_C
        assert recommendations[1].priority is RecommendationPriority.MEDIUM

    def test_many_mistakes_become_high_priority(self, store):
        for qid in range(1, QuizConfig.REVIEW_HIGH_PRIORITY_THRESHOLD + 2):
            store.record_answer(qid, Category.PART_A, "", False)

        review = [
            r
            for r in store.study_recommendations()
            if r.action is RecommendationAction.REVIEW_MISTAKES
        ]

        assert review[0].priority is RecommendationPriority.HIGH
        assert "21 questions" in review[0].description
