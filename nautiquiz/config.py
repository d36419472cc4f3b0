import os
from enum import Enum
from typing import Final


class Category(Enum):
    # Enum Member = ("Category Label", "Short Name")
    PART_A = ("Part A: General", "General")
    PART_B = ("Part B: Steering and Sailing Rules", "Steering & Sailing")
    PART_C = ("Part C: Lights and Shapes", "Lights & Shapes")
    PART_D = ("Part D: Sounds and Light Signals", "Sounds & Signals")
    ANNEXES = ("Annexes", "Annexes")

    def __init__(self, label: str, short_name: str):
        self.label = label
        self.short_name = short_name

    @classmethod
    def from_label(cls, text: str) -> "Category":
        """
        Fuzzy-matches free text from the question bank to a category.
        Falls back to Part A when nothing matches.
        """
        cleaned = text.strip()
        if cleaned:
            for category in cls:
                if cleaned in category.label or category.label in cleaned:
                    return category

        lowered = cleaned.lower()
        if "general" in lowered:
            return cls.PART_A
        if "steering" in lowered or "sailing" in lowered:
            return cls.PART_B
        if "light" in lowered and "shape" in lowered:
            return cls.PART_C
        if "sound" in lowered or "signal" in lowered:
            return cls.PART_D
        if "annex" in lowered:
            return cls.ANNEXES
        return cls.PART_A

    @classmethod
    def all_labels(cls) -> list[str]:
        """Returns a list of all category labels (persisted keys)."""
        return [c.label for c in cls]


class QuizConfig:
    # --- Persistence ---
    DB_PATH: str = os.getenv("NAUTIQUIZ_DB_PATH", "data/progress.db")
    PROGRESS_KEY: Final[str] = "NauticalRulesUserProgress"
    SCHEMA_VERSION_KEY: Final[str] = "NauticalRulesSchemaVersion"

    # --- Question Bank ---
    QUESTION_BANK_PATHS: Final[list[str]] = (
        [os.environ["NAUTIQUIZ_QUESTION_BANK"]]
        if os.getenv("NAUTIQUIZ_QUESTION_BANK")
        else [
            "data/Nautical Rules Test Bank.csv",
            "data/Nautical_Rules_Test_Bank.csv",
            "data/NauticalRulesTestBank.csv",
        ]
    )

    # --- Observability ---
    METRICS_PORT: int = int(os.getenv("NAUTIQUIZ_METRICS_PORT", "8000"))

    # --- Quiz Rules ---
    DEFAULT_EXAM_QUESTIONS: Final[int] = 50
    DEFAULT_QUICK_QUIZ_QUESTIONS: Final[int] = 10
    DAILY_CHALLENGE_QUESTIONS: Final[int] = 5
    PASSING_SCORE: Final[int] = 70

    # --- History ---
    HISTORY_LIMIT: Final[int] = 20
    RECENT_QUIZZES: Final[int] = 10

    # --- Weak Areas ---
    # Minimum attempts before an area counts as statistically meaningful
    WEAK_CATEGORY_MIN_ANSWERS: Final[int] = 5
    WEAK_RULE_MIN_ANSWERS: Final[int] = 3

    # --- Recommendations ---
    REVIEW_HIGH_PRIORITY_THRESHOLD: Final[int] = 20

    CATEGORIES = Category.all_labels()
