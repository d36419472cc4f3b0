import uuid
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator

from nautiquiz.config import Category, QuizConfig


# --- Enums ---
class OptionKey(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"

    @property
    def index(self) -> int:
        return list(OptionKey).index(self)

    @classmethod
    def from_index(cls, index: int) -> "OptionKey":
        keys = list(cls)
        if not 0 <= index < len(keys):
            raise ValueError(f"Option index out of range: {index}")
        return keys[index]

    @classmethod
    def coerce(cls, value: "OptionKey | int | str") -> "OptionKey":
        if isinstance(value, OptionKey):
            return value
        if isinstance(value, int):
            return cls.from_index(value)
        return cls(value.strip().upper())


class Jurisdiction(str, Enum):
    INLAND_ONLY = "INLAND ONLY"
    INTERNATIONAL_ONLY = "INTERNATIONAL ONLY"
    BOTH = "BOTH"


JURISDICTION_PREFIXES = (
    "INLAND ONLY ",
    "INTERNATIONAL ONLY ",
    "BOTH INTERNATIONAL & INLAND ",
)


class MasteryLevel(str, Enum):
    BEGINNER = "Beginner"
    NOVICE = "Novice"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"
    EXPERT = "Expert"
    MASTER = "Master"

    @classmethod
    def for_accuracy(cls, accuracy: float) -> "MasteryLevel":
        if accuracy < 25:
            return cls.BEGINNER
        if accuracy < 50:
            return cls.NOVICE
        if accuracy < 70:
            return cls.INTERMEDIATE
        if accuracy < 85:
            return cls.ADVANCED
        if accuracy < 95:
            return cls.EXPERT
        return cls.MASTER

    @property
    def description(self) -> str:
        return _MASTERY_DESCRIPTIONS[self]


_MASTERY_DESCRIPTIONS = {
    MasteryLevel.BEGINNER: "Just getting started",
    MasteryLevel.NOVICE: "Learning the basics",
    MasteryLevel.INTERMEDIATE: "Making good progress",
    MasteryLevel.ADVANCED: "Strong understanding",
    MasteryLevel.EXPERT: "Near mastery",
    MasteryLevel.MASTER: "Complete mastery",
}


# --- Entities ---
class Question(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: PositiveInt
    text: str
    options: tuple[str, str, str, str]
    correct_option: OptionKey
    diagram_ref: str | None = None
    category: Category = Category.PART_A
    rule: str = ""
    explanation: str = ""

    @field_validator("category", mode="before")
    @classmethod
    def _category_from_label(cls, value: object) -> object:
        if isinstance(value, str):
            return Category.from_label(value)
        return value

    @property
    def correct_index(self) -> int:
        return self.correct_option.index

    @property
    def correct_answer_text(self) -> str:
        return self.options[self.correct_index]

    @property
    def has_diagram(self) -> bool:
        return bool(self.diagram_ref)

    @property
    def jurisdiction(self) -> Jurisdiction:
        if self.text.startswith("INLAND ONLY"):
            return Jurisdiction.INLAND_ONLY
        if self.text.startswith("INTERNATIONAL ONLY"):
            return Jurisdiction.INTERNATIONAL_ONLY
        return Jurisdiction.BOTH

    @property
    def clean_text(self) -> str:
        """Question text without its jurisdiction prefix."""
        for prefix in JURISDICTION_PREFIXES:
            if self.text.startswith(prefix):
                return self.text[len(prefix) :].strip()
        return self.text.strip()

    def is_correct(self, answer: OptionKey | int | str) -> bool:
        return OptionKey.coerce(answer) == self.correct_option


class Stats(BaseModel):
    answered: int = 0
    correct: int = 0

    @property
    def accuracy(self) -> float:
        if self.answered == 0:
            return 0.0
        return self.correct / self.answered * 100

    def record(self, is_correct: bool) -> None:
        self.answered += 1
        if is_correct:
            self.correct += 1


class QuizHistoryEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    date: datetime
    mode: str
    score: float
    time_taken: float
    total_questions: int
    correct_count: int
    question_ids: list[int] = []
    answers: dict[int, str] = {}  # question id -> option letter

    def get_answers(self) -> dict[int, OptionKey]:
        """Stored letters converted back to option keys; unknown letters are dropped."""
        result: dict[int, OptionKey] = {}
        for question_id, letter in self.answers.items():
            try:
                result[question_id] = OptionKey(letter)
            except ValueError:
                continue
        return result

    @property
    def is_passing(self) -> bool:
        return self.score >= QuizConfig.PASSING_SCORE


# --- (Data Transfer Objects) ---
@dataclass
class WeakRule:
    """The rule with the lowest accuracy among sufficiently practiced rules."""

    rule: str
    accuracy: float
    answered: int


class SessionResult(BaseModel):
    """
    Snapshot of a finished session, as shown on the results screen.
    """

    session_id: str
    mode: str
    total_questions: int
    answered_count: int
    correct_count: int
    score: int
    time_taken: float
    category_breakdown: dict[str, Stats] = {}
    incorrect_question_ids: list[int] = []
    unanswered_question_ids: list[int] = []

    @property
    def is_passing(self) -> bool:
        return self.score >= QuizConfig.PASSING_SCORE


class RecommendationAction(str, Enum):
    PRACTICE_CATEGORY = "practice_category"
    REVIEW_MISTAKES = "review_mistakes"
    STUDY_BOOKMARKED = "study_bookmarked"


class RecommendationPriority(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3


class StudyRecommendation(BaseModel):
    title: str
    description: str
    action: RecommendationAction
    priority: RecommendationPriority
    category: Category | None = None


# --- Aggregate ---
def calendar_day(moment: datetime) -> date:
    """Local calendar day of a timestamp (naive timestamps are taken as local)."""
    return moment.astimezone().date()


class UserProgress(BaseModel):
    """
    Durable all-time statistics. Persisted as a single JSON payload.

    Mutators are pure in-memory operations; saving is the caller's job.
    """

    questions_answered: int = 0
    correct_answers: int = 0
    category_stats: dict[str, Stats] = {}
    rule_stats: dict[str, Stats] = {}
    bookmarks: list[int] = []  # oldest first, most recent last
    incorrect_question_ids: set[int] = set()
    last_session_date: datetime | None = None
    streak_days: int = 0
    total_quizzes_taken: int = 0
    total_study_time: float = 0.0
    quiz_history: list[QuizHistoryEntry] = []

    # --- Derived ---
    @property
    def overall_accuracy(self) -> float:
        if self.questions_answered == 0:
            return 0.0
        return self.correct_answers / self.questions_answered * 100

    @property
    def mastery_level(self) -> MasteryLevel:
        return MasteryLevel.for_accuracy(self.overall_accuracy)

    def stats_for_category(self, category: Category) -> Stats:
        return self.category_stats.get(category.label, Stats())

    def stats_for_rule(self, rule: str) -> Stats:
        return self.rule_stats.get(rule, Stats())

    def weakest_category(self, min_answers: int) -> Category | None:
        weakest: Category | None = None
        lowest = 101.0
        for category in Category:
            stats = self.stats_for_category(category)
            if stats.answered >= min_answers and stats.accuracy < lowest:
                lowest = stats.accuracy
                weakest = category
        return weakest

    def weakest_rule(self, min_answers: int) -> WeakRule | None:
        eligible = [
            WeakRule(rule=rule, accuracy=stats.accuracy, answered=stats.answered)
            for rule, stats in sorted(
                self.rule_stats.items(), key=lambda item: rule_sort_key(item[0])
            )
            if stats.answered >= min_answers
        ]
        if not eligible:
            return None
        return min(eligible, key=lambda w: w.accuracy)

    # --- Mutators ---
    def record_answer(
        self, question_id: int, category: Category, rule: str, is_correct: bool
    ) -> None:
        self.questions_answered += 1
        if is_correct:
            self.correct_answers += 1
            self.incorrect_question_ids.discard(question_id)
        else:
            self.incorrect_question_ids.add(question_id)

        self.category_stats.setdefault(category.label, Stats()).record(is_correct)

        if rule:
            self.rule_stats.setdefault(rule, Stats()).record(is_correct)

    def toggle_bookmark(self, question_id: int) -> bool:
        """Returns True when the question is bookmarked afterwards."""
        if question_id in self.bookmarks:
            self.bookmarks.remove(question_id)
            return False
        self.bookmarks.append(question_id)
        return True

    def update_streak(self, now: datetime) -> None:
        today = calendar_day(now)
        if self.last_session_date is None:
            self.streak_days = 1
        else:
            days = (today - calendar_day(self.last_session_date)).days
            if days == 1:
                self.streak_days += 1
            elif days > 1:
                self.streak_days = 1
            # same day: unchanged
        self.last_session_date = now

    def record_quiz_completion(
        self,
        mode: str,
        score: float,
        time_taken: float,
        total_questions: int,
        correct_count: int,
        question_ids: list[int],
        answers: dict[int, OptionKey],
        now: datetime,
    ) -> QuizHistoryEntry:
        self.total_quizzes_taken += 1
        self.total_study_time += time_taken

        entry = QuizHistoryEntry(
            date=now,
            mode=mode,
            score=score,
            time_taken=time_taken,
            total_questions=total_questions,
            correct_count=correct_count,
            question_ids=list(question_ids),
            answers={qid: OptionKey.coerce(a).value for qid, a in answers.items()},
        )
        self.quiz_history.append(entry)

        overflow = len(self.quiz_history) - QuizConfig.HISTORY_LIMIT
        if overflow > 0:
            del self.quiz_history[:overflow]
        return entry


def rule_sort_key(rule: str) -> tuple[int, str]:
    """'Rule 34' sorts as 34; labels without digits sort last."""
    digits = "".join(ch for ch in rule if ch.isdigit())
    return (int(digits) if digits else 999, rule)
