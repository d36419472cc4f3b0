from collections.abc import Callable
from datetime import datetime

from nautiquiz.quiz.application.progress_store import ProgressStore
from nautiquiz.quiz.application.question_store import QuestionStore
from nautiquiz.quiz.domain.errors import EmptyQuestionSetError
from nautiquiz.quiz.domain.models import OptionKey, SessionResult
from nautiquiz.quiz.domain.modes import (
    QuizMode,
    ReviewMode,
    StudyMode,
    display_name,
    shows_immediate_feedback,
)
from nautiquiz.quiz.domain.session import QuizSession, utcnow
from nautiquiz.shared.telemetry import Telemetry, measure_time


class QuizService:
    """
    Drives sessions on behalf of the UI: picks questions, forwards answers and
    navigation, polls the exam timer and hands finished sessions to the store.
    """

    def __init__(
        self,
        questions: QuestionStore,
        progress: ProgressStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.questions = questions
        self.progress = progress
        self.telemetry = Telemetry("QuizService")
        self._clock = clock or utcnow

    # --- Session Setup ---
    @measure_time("start_quiz")
    def start_quiz(self, mode: QuizMode) -> QuizSession:
        """
        Raises:
            EmptyQuestionSetError: nothing to ask for this mode (e.g. no mistakes
            to review, or an empty category).
        """
        Telemetry.start_trace()
        match mode:
            case ReviewMode():
                selected = self.questions.review_quiz(self.progress.incorrect_ids)
            case _:
                selected = self.questions.generate_quiz(mode)

        if not selected:
            self.telemetry.log_info("No questions generated", mode=display_name(mode))
            raise EmptyQuestionSetError(f"No questions available for {display_name(mode)}")

        session = QuizSession.start(mode, selected, now=self._clock())
        self.telemetry.log_info(
            "Session started",
            session_id=session.id,
            mode=display_name(mode),
            questions=len(selected),
            time_limit=session.time_limit,
        )
        return session

    def start_bookmarked_study(self) -> QuizSession:
        selected = self.questions.bookmarked_quiz(self.progress.bookmarked_ids)
        if not selected:
            raise EmptyQuestionSetError("No bookmarked questions")
        return QuizSession.start(StudyMode(), selected, now=self._clock())

    # --- Answers ---
    @measure_time("submit_answer")
    def submit_answer(
        self, session: QuizSession, option: OptionKey | int | str
    ) -> bool | None:
        """
        Stores the answer of record. Immediate-feedback modes lock a question
        once answered and record it on the progress store right away.
        """
        question = session.current_question
        if question is None or session.is_complete:
            return None

        immediate = shows_immediate_feedback(session.mode)
        if immediate and session.has_answered(question):
            self.telemetry.log_info(
                "Duplicate Answer Attempt", session_id=session.id, q_id=question.id
            )
            return session.was_correct(question)

        is_correct = session.submit_answer(option)
        if immediate and is_correct is not None:
            self.progress.record_answer(
                question.id, question.category, question.rule, is_correct
            )
        return is_correct

    # --- Navigation ---
    def move_to_next(self, session: QuizSession) -> SessionResult | None:
        """Returns the result when moving past the last question ends the quiz."""
        session.move_to_next(self._clock())
        if session.is_complete:
            return self.finish_quiz(session)
        return None

    def move_to_previous(self, session: QuizSession) -> None:
        session.move_to_previous()

    def jump_to(self, session: QuizSession, index: int) -> None:
        session.jump_to(index)

    # --- Timer ---
    def tick(self, session: QuizSession) -> SessionResult | None:
        """Polled once per second; finishes the quiz when the countdown expires."""
        if session.end_time is not None:
            return None
        if session.expire(self._clock()):
            self.telemetry.log_info("Time is up", session_id=session.id)
            return self.finish_quiz(session)
        return None

    # --- Completion ---
    def finish_quiz(self, session: QuizSession) -> SessionResult:
        return self.progress.finalize_session(session)

    def end_quiz_early(self, session: QuizSession) -> SessionResult:
        return self.finish_quiz(session)

    # --- Bookmarking ---
    def toggle_bookmark(self, session: QuizSession) -> bool | None:
        question = session.current_question
        if question is None:
            return None
        return self.progress.toggle_bookmark(question.id)
