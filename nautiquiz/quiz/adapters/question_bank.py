import os
from collections.abc import Iterable

from nautiquiz.config import QuizConfig
from nautiquiz.quiz.adapters.csv_parser import parse_question_bank
from nautiquiz.quiz.application.question_store import QuestionStore
from nautiquiz.quiz.domain.errors import EmptyQuestionSetError
from nautiquiz.quiz.domain.models import Question
from nautiquiz.shared.telemetry import Telemetry, measure_time


class QuestionBankLoader:
    """
    Responsible for reading the question bank from disk.
    Tries each candidate file in order and keeps the first that yields questions.
    """

    def __init__(self, paths: Iterable[str] | None = None) -> None:
        self.paths = list(paths) if paths is not None else QuizConfig.QUESTION_BANK_PATHS
        self.telemetry = Telemetry("QuestionBankLoader")

    def load_file(self, path: str) -> list[Question]:
        try:
            with open(path, encoding="utf-8") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            self.telemetry.log_error("Could not read question bank", e, path=path)
            return []

        report = parse_question_bank(content)
        for error in report.errors[:3]:
            self.telemetry.log_warning("Row skipped", path=path, reason=str(error))
        return report.questions

    @measure_time("load_question_bank")
    def load(self) -> list[Question]:
        for path in self.paths:
            if not os.path.exists(path):
                continue
            questions = self.load_file(path)
            if questions:
                self.telemetry.log_info(
                    "Question bank loaded", path=path, count=len(questions)
                )
                return questions

        self.telemetry.log_warning("No question bank produced any questions", paths=self.paths)
        return []


def load_question_store(paths: Iterable[str] | None = None) -> QuestionStore:
    """
    Raises:
        EmptyQuestionSetError: no candidate file yielded a valid question.
    """
    questions = QuestionBankLoader(paths).load()
    if not questions:
        raise EmptyQuestionSetError("Failed to load questions from the test bank.")
    return QuestionStore(questions)
