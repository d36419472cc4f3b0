import uuid
from collections.abc import Sequence
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from nautiquiz.quiz.domain.errors import EmptyQuestionSetError
from nautiquiz.quiz.domain.fsm import SessionAction, SessionState, transition
from nautiquiz.quiz.domain.models import OptionKey, Question, SessionResult, Stats
from nautiquiz.quiz.domain.modes import QuizMode, display_name, time_limit_of


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuizSession(BaseModel):
    """
    One attempt over a fixed question list.

    The session owns navigation, the answers of record and timing. It does no
    I/O and has no notion of a locked answer: the latest submission wins.
    Time-dependent reads accept an explicit ``now`` so callers (and tests)
    control the clock.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    mode: QuizMode
    questions: tuple[Question, ...]
    current_index: int = 0
    answers: dict[int, OptionKey] = {}  # question id -> chosen option
    start_time: datetime = Field(default_factory=utcnow)
    end_time: datetime | None = None
    time_limit: float | None = None  # seconds

    @classmethod
    def start(
        cls,
        mode: QuizMode,
        questions: Sequence[Question],
        time_limit: float | None = None,
        now: datetime | None = None,
    ) -> "QuizSession":
        if not questions:
            raise EmptyQuestionSetError(
                f"No questions available for {display_name(mode)}"
            )
        if time_limit is None:
            time_limit = time_limit_of(mode)
        return cls(
            mode=mode,
            questions=tuple(questions),
            start_time=now or utcnow(),
            time_limit=time_limit,
        )

    # --- State ---
    @property
    def is_complete(self) -> bool:
        return self.end_time is not None or self.current_index >= len(self.questions)

    @property
    def state(self) -> SessionState:
        return SessionState.COMPLETE if self.is_complete else SessionState.ACTIVE

    def _apply(self, action: SessionAction, now: datetime | None) -> None:
        previous = (
            SessionState.COMPLETE if self.end_time is not None else SessionState.ACTIVE
        )
        if transition(previous, action) is SessionState.COMPLETE and self.end_time is None:
            self.end_time = now or utcnow()

    # --- Answers ---
    @property
    def current_question(self) -> Question | None:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    def submit_answer(self, option: OptionKey | int | str) -> bool | None:
        """
        Records (or overwrites) the answer for the current question.
        Returns whether it is correct, or None when there is no current question.
        """
        question = self.current_question
        if question is None:
            return None
        answer = OptionKey.coerce(option)
        self.answers[question.id] = answer
        return question.is_correct(answer)

    def has_answered(self, question: Question) -> bool:
        return question.id in self.answers

    def answer_for(self, question: Question) -> OptionKey | None:
        return self.answers.get(question.id)

    def was_correct(self, question: Question) -> bool | None:
        answer = self.answers.get(question.id)
        if answer is None:
            return None
        return question.is_correct(answer)

    # --- Navigation ---
    def move_to_next(self, now: datetime | None = None) -> None:
        if self.current_index < len(self.questions):
            self.current_index += 1
        if self.current_index >= len(self.questions):
            self._apply(SessionAction.ADVANCE_PAST_END, now)

    def move_to_previous(self) -> None:
        if self.current_index > 0:
            self.current_index -= 1

    def jump_to(self, index: int) -> None:
        if 0 <= index < len(self.questions):
            self.current_index = index

    def finish(self, now: datetime | None = None) -> None:
        self._apply(SessionAction.FINISH, now)

    def expire(self, now: datetime | None = None) -> bool:
        """Completes the session when its countdown has run out."""
        if not self.is_time_up(now):
            return False
        self._apply(SessionAction.TIME_UP, now)
        return True

    # --- Scoring ---
    @property
    def answered_count(self) -> int:
        return len(self.answers)

    @property
    def correct_count(self) -> int:
        return sum(1 for q in self.questions if self.was_correct(q))

    @property
    def incorrect_count(self) -> int:
        return self.answered_count - self.correct_count

    @property
    def score(self) -> int:
        """Percent correct of answered questions, rounded down."""
        if self.answered_count == 0:
            return 0
        return self.correct_count * 100 // self.answered_count

    @property
    def progress(self) -> float:
        if not self.questions:
            return 0.0
        return self.current_index / len(self.questions)

    @property
    def incorrect_questions(self) -> list[Question]:
        return [q for q in self.questions if self.was_correct(q) is False]

    @property
    def unanswered_questions(self) -> list[Question]:
        return [q for q in self.questions if q.id not in self.answers]

    # --- Timing ---
    def elapsed_time(self, now: datetime | None = None) -> float:
        end = self.end_time or now or utcnow()
        return max(0.0, (end - self.start_time).total_seconds())

    def remaining_time(self, now: datetime | None = None) -> float | None:
        if self.time_limit is None:
            return None
        return max(0.0, self.time_limit - self.elapsed_time(now))

    def is_time_up(self, now: datetime | None = None) -> bool:
        remaining = self.remaining_time(now)
        return remaining is not None and remaining <= 0

    def formatted_time(self, now: datetime | None = None) -> str:
        """MM:SS countdown for timed sessions, elapsed time otherwise."""
        remaining = self.remaining_time(now)
        seconds = int(remaining if remaining is not None else self.elapsed_time(now))
        return f"{seconds // 60:02d}:{seconds % 60:02d}"

    # --- Results ---
    def category_breakdown(self) -> dict[str, Stats]:
        breakdown: dict[str, Stats] = {}
        for question in self.questions:
            stats = breakdown.setdefault(question.category.label, Stats())
            stats.answered += 1
            if self.was_correct(question):
                stats.correct += 1
        return breakdown

    def result(self, now: datetime | None = None) -> SessionResult:
        return SessionResult(
            session_id=self.id,
            mode=display_name(self.mode),
            total_questions=len(self.questions),
            answered_count=self.answered_count,
            correct_count=self.correct_count,
            score=self.score,
            time_taken=self.elapsed_time(now),
            category_breakdown=self.category_breakdown(),
            incorrect_question_ids=[q.id for q in self.incorrect_questions],
            unanswered_question_ids=[q.id for q in self.unanswered_questions],
        )
