import random

import pytest

from nautiquiz.config import Category
from nautiquiz.quiz.adapters.db_manager import DatabaseManager
from nautiquiz.quiz.adapters.sqlite_repository import SQLiteProgressRepository
from nautiquiz.quiz.application.progress_store import ProgressStore
from nautiquiz.quiz.application.question_store import QuestionStore
from nautiquiz.quiz.domain.models import OptionKey, Question
from tests.helpers.builders import FakeClock, make_question

CATEGORIES = list(Category)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_question():
    return Question(
        id=42,
        text="INLAND ONLY What is a vessel engaged in fishing?",
        options=("A sailboat", "A trawler with gear deployed", "A ferry", "A tug"),
        correct_option=OptionKey.B,
        category=Category.PART_A,
        rule="Rule 3",
        explanation="Rule 3 defines fishing vessels",
    )


@pytest.fixture
def question_pool():
    """50 questions spread over all categories and ten rules; A is always correct."""
    return [
        make_question(
            i,
            category=CATEGORIES[i % len(CATEGORIES)],
            rule=f"Rule {i % 10 + 1}",
        )
        for i in range(1, 51)
    ]


@pytest.fixture
def question_store(question_pool):
    return QuestionStore(question_pool, rng=random.Random(7))


@pytest.fixture
def db_manager():
    db = DatabaseManager(db_path=":memory:")
    yield db
    db.close()


@pytest.fixture
def in_memory_repo(db_manager):
    """Returns a clean, empty in-memory repository."""
    return SQLiteProgressRepository(db_manager=db_manager)


@pytest.fixture
def progress_store(in_memory_repo, clock):
    return ProgressStore(in_memory_repo, clock=clock)
