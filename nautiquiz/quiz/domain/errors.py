class QuizError(Exception):
    """Base class for every error raised by the quiz engine."""


class EmptyQuestionSetError(QuizError):
    """No questions are available for the requested mode or filter."""

    def __init__(self, message: str = "No questions available") -> None:
        super().__init__(message)


class PersistenceDecodeError(QuizError):
    """The saved progress payload could not be decoded."""


class ContentParseError(QuizError):
    """A single question-bank row is malformed."""

    def __init__(self, row_number: int, reason: str) -> None:
        self.row_number = row_number
        self.reason = reason
        super().__init__(f"Row {row_number}: {reason}")
