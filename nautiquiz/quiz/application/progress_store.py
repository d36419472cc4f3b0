from collections.abc import Callable
from datetime import datetime

from nautiquiz.config import Category, QuizConfig
from nautiquiz.quiz.domain.errors import PersistenceDecodeError
from nautiquiz.quiz.domain.migration import (
    CURRENT_SCHEMA_VERSION,
    decode_progress,
    encode_progress,
)
from nautiquiz.quiz.domain.models import (
    MasteryLevel,
    OptionKey,
    QuizHistoryEntry,
    RecommendationAction,
    RecommendationPriority,
    SessionResult,
    Stats,
    StudyRecommendation,
    UserProgress,
    WeakRule,
    calendar_day,
    rule_sort_key,
)
from nautiquiz.quiz.domain.modes import display_name, shows_immediate_feedback
from nautiquiz.quiz.domain.ports import IProgressRepository
from nautiquiz.quiz.domain.session import QuizSession, utcnow
from nautiquiz.shared.telemetry import Telemetry, count_answer, measure_time


class ProgressStore:
    """
    Durable all-time statistics with single-writer semantics.

    Loaded once on construction; every mutating call saves the whole
    aggregate immediately (no batching).
    """

    def __init__(
        self,
        repo: IProgressRepository,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.repo = repo
        self.telemetry = Telemetry("ProgressStore")
        self._clock = clock or utcnow
        self._progress = UserProgress()
        self._finalized_sessions: set[str] = set()
        self.load()

    @property
    def progress(self) -> UserProgress:
        return self._progress

    # --- Persistence ---
    @measure_time("progress_load")
    def load(self) -> None:
        saved_version = self.repo.get_schema_version()
        raw = self.repo.load_payload()

        if raw is None:
            # First launch
            self._progress = UserProgress()
            self.repo.set_schema_version(CURRENT_SCHEMA_VERSION)
            return

        try:
            self._progress = decode_progress(raw, saved_version)
            self.telemetry.log_info(
                "Progress loaded",
                stored_version=saved_version,
                answered=self._progress.questions_answered,
            )
        except PersistenceDecodeError as e:
            self.telemetry.log_error("Saved progress unreadable, starting fresh", e)
            self._progress = UserProgress()

        self.repo.set_schema_version(CURRENT_SCHEMA_VERSION)

    def save(self) -> None:
        self.repo.save_payload(encode_progress(self._progress))

    def reset_progress(self) -> None:
        """Clears all statistics. Bookmarks are user curation and survive."""
        bookmarks = list(self._progress.bookmarks)
        self._progress = UserProgress(bookmarks=bookmarks)
        self.save()
        self.telemetry.log_info("Progress reset", bookmarks_kept=len(bookmarks))

    # --- Recording ---
    def record_answer(
        self, question_id: int, category: Category, rule: str, is_correct: bool
    ) -> None:
        self._progress.record_answer(question_id, category, rule, is_correct)
        count_answer(is_correct)
        self.save()

    def record_quiz_completion(
        self,
        mode: str,
        score: float,
        time_taken: float,
        total_questions: int,
        correct_count: int,
        question_ids: list[int],
        answers: dict[int, OptionKey],
    ) -> QuizHistoryEntry:
        """
        Appends a history entry and updates the streak. Per-answer statistics
        are not touched here; see finalize_session().
        """
        entry = self._append_history(
            mode, score, time_taken, total_questions, correct_count, question_ids, answers
        )
        self.save()
        return entry

    def _append_history(
        self,
        mode: str,
        score: float,
        time_taken: float,
        total_questions: int,
        correct_count: int,
        question_ids: list[int],
        answers: dict[int, OptionKey],
    ) -> QuizHistoryEntry:
        now = self._clock()
        entry = self._progress.record_quiz_completion(
            mode=mode,
            score=score,
            time_taken=time_taken,
            total_questions=total_questions,
            correct_count=correct_count,
            question_ids=question_ids,
            answers=answers,
            now=now,
        )
        self._progress.update_streak(now)
        return entry

    @measure_time("finalize_session")
    def finalize_session(self, session: QuizSession) -> SessionResult:
        """
        Completes a session and records it exactly once.

        Deferred-feedback modes have their answers recorded here; immediate
        modes were recorded as each answer was given.
        """
        now = self._clock()
        session.finish(now)
        result = session.result(now)

        if session.id in self._finalized_sessions:
            self.telemetry.log_warning("Session already finalized", session_id=session.id)
            return result

        if not shows_immediate_feedback(session.mode):
            for question in session.questions:
                answer = session.answer_for(question)
                if answer is None:
                    continue
                is_correct = question.is_correct(answer)
                self._progress.record_answer(
                    question.id, question.category, question.rule, is_correct
                )
                count_answer(is_correct)

        self._append_history(
            mode=display_name(session.mode),
            score=session.score,
            time_taken=session.elapsed_time(now),
            total_questions=len(session.questions),
            correct_count=session.correct_count,
            question_ids=[q.id for q in session.questions],
            answers=dict(session.answers),
        )
        self._finalized_sessions.add(session.id)
        self.save()

        self.telemetry.log_info(
            "Session finalized",
            session_id=session.id,
            mode=result.mode,
            score=result.score,
            streak=self._progress.streak_days,
        )
        return result

    # --- Bookmarks ---
    def toggle_bookmark(self, question_id: int) -> bool:
        bookmarked = self._progress.toggle_bookmark(question_id)
        self.save()
        return bookmarked

    def is_bookmarked(self, question_id: int) -> bool:
        return question_id in self._progress.bookmarks

    @property
    def bookmarked_ids(self) -> list[int]:
        """Most recently added last."""
        return list(self._progress.bookmarks)

    @property
    def bookmark_count(self) -> int:
        return len(self._progress.bookmarks)

    # --- Incorrect Questions ---
    @property
    def incorrect_ids(self) -> set[int]:
        return set(self._progress.incorrect_question_ids)

    @property
    def incorrect_count(self) -> int:
        return len(self._progress.incorrect_question_ids)

    # --- Streak ---
    def update_streak(self) -> None:
        self._progress.update_streak(self._clock())
        self.save()

    @property
    def streak_days(self) -> int:
        return self._progress.streak_days

    @property
    def has_active_streak(self) -> bool:
        last = self._progress.last_session_date
        if last is None:
            return False
        return (calendar_day(self._clock()) - calendar_day(last)).days <= 1

    # --- Statistics ---
    @property
    def questions_answered(self) -> int:
        return self._progress.questions_answered

    @property
    def correct_answers(self) -> int:
        return self._progress.correct_answers

    @property
    def overall_accuracy(self) -> float:
        return self._progress.overall_accuracy

    @property
    def mastery_level(self) -> MasteryLevel:
        return self._progress.mastery_level

    @property
    def total_quizzes_taken(self) -> int:
        return self._progress.total_quizzes_taken

    @property
    def total_study_time(self) -> float:
        return self._progress.total_study_time

    @property
    def formatted_study_time(self) -> str:
        total = int(self._progress.total_study_time)
        hours, minutes = total // 3600, (total % 3600) // 60
        if hours > 0:
            return f"{hours}h {minutes}m"
        return f"{minutes}m"

    @property
    def formatted_accuracy(self) -> str:
        return f"{self.overall_accuracy:.1f}%"

    def category_stats(self, category: Category) -> Stats:
        return self._progress.stats_for_category(category)

    def category_completion(self, category: Category, total_in_category: int) -> float:
        if total_in_category <= 0:
            return 0.0
        return self.category_stats(category).answered / total_in_category * 100

    def overall_completion(self, total_questions: int) -> float:
        if total_questions <= 0:
            return 0.0
        return self._progress.questions_answered / total_questions * 100

    def rule_stats(self, rule: str) -> Stats:
        return self._progress.stats_for_rule(rule)

    @property
    def all_rule_stats(self) -> list[tuple[str, Stats]]:
        return sorted(
            self._progress.rule_stats.items(), key=lambda item: rule_sort_key(item[0])
        )

    def weakest_category(self) -> Category | None:
        return self._progress.weakest_category(QuizConfig.WEAK_CATEGORY_MIN_ANSWERS)

    def weakest_rule(self) -> WeakRule | None:
        return self._progress.weakest_rule(QuizConfig.WEAK_RULE_MIN_ANSWERS)

    # --- Quiz History ---
    @property
    def recent_quizzes(self) -> list[QuizHistoryEntry]:
        """Newest first."""
        return list(reversed(self._progress.quiz_history[-QuizConfig.RECENT_QUIZZES :]))

    @property
    def last_quiz_date(self) -> datetime | None:
        history = self._progress.quiz_history
        return history[-1].date if history else None

    @property
    def average_score(self) -> float:
        history = self._progress.quiz_history
        if not history:
            return 0.0
        return sum(entry.score for entry in history) / len(history)

    # --- Recommendations ---
    def study_recommendations(self) -> list[StudyRecommendation]:
        recommendations: list[StudyRecommendation] = []

        weak = self.weakest_category()
        if weak is not None:
            recommendations.append(
                StudyRecommendation(
                    title=f"Focus on {weak.short_name}",
                    description="Your accuracy is lowest in this category",
                    action=RecommendationAction.PRACTICE_CATEGORY,
                    priority=RecommendationPriority.HIGH,
                    category=weak,
                )
            )

        mistakes = self.incorrect_count
        if mistakes > 0:
            recommendations.append(
                StudyRecommendation(
                    title="Review Mistakes",
                    description=f"You have {mistakes} questions to review",
                    action=RecommendationAction.REVIEW_MISTAKES,
                    priority=(
                        RecommendationPriority.HIGH
                        if mistakes > QuizConfig.REVIEW_HIGH_PRIORITY_THRESHOLD
                        else RecommendationPriority.MEDIUM
                    ),
                )
            )

        if self.bookmark_count > 0:
            recommendations.append(
                StudyRecommendation(
                    title="Study Bookmarked",
                    description=f"{self.bookmark_count} bookmarked questions",
                    action=RecommendationAction.STUDY_BOOKMARKED,
                    priority=RecommendationPriority.LOW,
                )
            )

        return sorted(recommendations, key=lambda r: r.priority, reverse=True)
