import pytest
from pydantic import TypeAdapter, ValidationError

from nautiquiz.config import Category
from nautiquiz.quiz.domain.modes import (
    ExamMode,
    PracticeMode,
    QuickQuizMode,
    QuizMode,
    ReviewMode,
    StudyMode,
    display_name,
    shows_immediate_feedback,
    shows_timer,
    time_limit_of,
)

ALL_MODES = [
    PracticeMode(),
    PracticeMode(category=Category.PART_C),
    ExamMode(),
    ExamMode(question_count=20, time_limit=1800),
    QuickQuizMode(),
    ReviewMode(),
    StudyMode(),
    StudyMode(category=Category.ANNEXES),
]


class TestFeedbackPolicy:
    @pytest.mark.parametrize(
        "mode, immediate",
        [
            (PracticeMode(), True),
            (StudyMode(), True),
            (ExamMode(), False),
            (QuickQuizMode(), False),
            (ReviewMode(), False),
        ],
    )
    def test_immediate_feedback(self, mode, immediate):
        assert shows_immediate_feedback(mode) is immediate

    def test_unknown_mode_is_rejected(self):
        with pytest.raises(TypeError):
            shows_immediate_feedback("practice")


class TestTimer:
    def test_only_timed_exam_shows_timer(self):
        timed = [mode for mode in ALL_MODES if shows_timer(mode)]

        assert timed == [ExamMode(question_count=20, time_limit=1800)]
        assert time_limit_of(timed[0]) == 1800

    def test_time_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            ExamMode(time_limit=0)


class TestDisplayName:
    @pytest.mark.parametrize(
        "mode, name",
        [
            (PracticeMode(), "Practice Mode"),
            (PracticeMode(category=Category.PART_C), "Practice: Lights & Shapes"),
            (ExamMode(), "50-Question Exam"),
            (QuickQuizMode(), "10-Question Quiz"),
            (QuickQuizMode(question_count=25), "25-Question Quiz"),
            (ReviewMode(), "Review Mistakes"),
            (StudyMode(), "Study Mode"),
        ],
    )
    def test_names(self, mode, name):
        assert display_name(mode) == name

    def test_every_mode_has_a_name(self):
        for mode in ALL_MODES:
            assert display_name(mode)


class TestSerialization:
    def test_discriminated_union_round_trip(self):
        adapter = TypeAdapter(QuizMode)

        for mode in [m for m in ALL_MODES if getattr(m, "category", None) is None]:
            restored = adapter.validate_json(adapter.dump_json(mode))
            assert restored == mode
            assert type(restored) is type(mode)

    def test_modes_are_hashable_values(self):
        assert QuickQuizMode(question_count=10) == QuickQuizMode()
        assert len({ExamMode(), ExamMode(), ReviewMode()}) == 2
