import random
from collections.abc import Collection, Iterable, Sequence
from datetime import date

from nautiquiz.config import Category, QuizConfig
from nautiquiz.quiz.domain.models import Jurisdiction, Question
from nautiquiz.quiz.domain.modes import (
    ExamMode,
    PracticeMode,
    QuickQuizMode,
    QuizMode,
    ReviewMode,
    StudyMode,
)
from nautiquiz.shared.telemetry import Telemetry


class QuestionStore:
    """
    Read-only, in-memory question bank with filtering and random sampling.
    """

    def __init__(
        self, questions: Iterable[Question], rng: random.Random | None = None
    ) -> None:
        self.telemetry = Telemetry("QuestionStore")
        self._rng = rng or random.Random()
        self._questions: list[Question] = []
        self._by_id: dict[int, Question] = {}

        for question in questions:
            if question.id in self._by_id:
                self.telemetry.log_warning("Duplicate question id ignored", id=question.id)
                continue
            self._by_id[question.id] = question
            self._questions.append(question)

    # --- Lookup ---
    @property
    def all_questions(self) -> list[Question]:
        return list(self._questions)

    @property
    def count(self) -> int:
        return len(self._questions)

    def question(self, question_id: int) -> Question | None:
        return self._by_id.get(question_id)

    def by_ids(self, question_ids: Collection[int]) -> list[Question]:
        """Questions with the given ids, in bank order."""
        wanted = set(question_ids)
        return [q for q in self._questions if q.id in wanted]

    # --- Filtering ---
    def by_category(self, category: Category) -> list[Question]:
        return [q for q in self._questions if q.category is category]

    def by_rule(self, rule: str) -> list[Question]:
        return [q for q in self._questions if q.rule == rule]

    def by_jurisdiction(self, jurisdiction: Jurisdiction) -> list[Question]:
        return [q for q in self._questions if q.jurisdiction is jurisdiction]

    def category_breakdown(self) -> dict[Category, int]:
        return {category: len(self.by_category(category)) for category in Category}

    def search(self, query: str) -> list[Question]:
        if not query:
            return self.all_questions
        needle = query.lower()
        return [
            q
            for q in self._questions
            if needle in q.text.lower()
            or any(needle in option.lower() for option in q.options)
            or needle in q.explanation.lower()
        ]

    # --- Sampling ---
    def sample(
        self,
        count: int,
        pool: Sequence[Question] | None = None,
        exclude: Collection[int] = (),
    ) -> list[Question]:
        """Up to ``count`` distinct questions in random order."""
        source = self._questions if pool is None else pool
        candidates = [q for q in source if q.id not in exclude]
        return self._rng.sample(candidates, min(max(count, 0), len(candidates)))

    def generate_quiz(
        self,
        mode: QuizMode,
        question_count: int | None = None,
        exclude: Collection[int] = (),
    ) -> list[Question]:
        match mode:
            case PracticeMode(category=category) | StudyMode(category=category):
                pool = self.by_category(category) if category else self._questions
            case ExamMode(question_count=count) | QuickQuizMode(question_count=count):
                return self.sample(count, exclude=exclude)
            case ReviewMode():
                # Review needs the incorrect ids from progress: see review_quiz()
                return []
            case _:
                raise TypeError(f"Unknown quiz mode: {mode!r}")

        if question_count is None:
            question_count = len(pool)
        return self.sample(question_count, pool=pool, exclude=exclude)

    def review_quiz(self, incorrect_ids: Collection[int]) -> list[Question]:
        return self.sample(len(incorrect_ids), pool=self.by_ids(incorrect_ids))

    def bookmarked_quiz(self, bookmarked_ids: Collection[int]) -> list[Question]:
        return self.sample(len(bookmarked_ids), pool=self.by_ids(bookmarked_ids))

    def daily_challenge(
        self,
        count: int = QuizConfig.DAILY_CHALLENGE_QUESTIONS,
        today: date | None = None,
    ) -> list[Question]:
        """Same selection for everyone on a given calendar day."""
        day = today or date.today()
        shuffled = list(self._questions)
        random.Random(day.toordinal()).shuffle(shuffled)
        return shuffled[:count]
