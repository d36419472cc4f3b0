from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, PositiveFloat, PositiveInt

from nautiquiz.config import Category, QuizConfig


# --- Variants ---
class PracticeMode(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["practice"] = "practice"
    category: Category | None = None


class ExamMode(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["exam"] = "exam"
    question_count: PositiveInt = QuizConfig.DEFAULT_EXAM_QUESTIONS
    time_limit: PositiveFloat | None = None  # seconds


class QuickQuizMode(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["quick_quiz"] = "quick_quiz"
    question_count: PositiveInt = QuizConfig.DEFAULT_QUICK_QUIZ_QUESTIONS


class ReviewMode(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["review"] = "review"


class StudyMode(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["study"] = "study"
    category: Category | None = None


QuizMode = Annotated[
    Union[PracticeMode, ExamMode, QuickQuizMode, ReviewMode, StudyMode],
    Field(discriminator="kind"),
]


# --- Policies ---
def shows_immediate_feedback(mode: QuizMode) -> bool:
    """Practice and study reveal the answer at once; the rest defer it."""
    match mode:
        case PracticeMode() | StudyMode():
            return True
        case ExamMode() | QuickQuizMode() | ReviewMode():
            return False
        case _:
            raise TypeError(f"Unknown quiz mode: {mode!r}")


def time_limit_of(mode: QuizMode) -> float | None:
    match mode:
        case ExamMode(time_limit=limit):
            return limit
        case PracticeMode() | QuickQuizMode() | ReviewMode() | StudyMode():
            return None
        case _:
            raise TypeError(f"Unknown quiz mode: {mode!r}")


def shows_timer(mode: QuizMode) -> bool:
    return time_limit_of(mode) is not None


def display_name(mode: QuizMode) -> str:
    """Human label, also stored as the mode of a history entry."""
    match mode:
        case PracticeMode(category=None):
            return "Practice Mode"
        case PracticeMode(category=category):
            return f"Practice: {category.short_name}"
        case ExamMode(question_count=count):
            return f"{count}-Question Exam"
        case QuickQuizMode(question_count=count):
            return f"{count}-Question Quiz"
        case ReviewMode():
            return "Review Mistakes"
        case StudyMode(category=None):
            return "Study Mode"
        case StudyMode(category=category):
            return f"Study: {category.short_name}"
        case _:
            raise TypeError(f"Unknown quiz mode: {mode!r}")
