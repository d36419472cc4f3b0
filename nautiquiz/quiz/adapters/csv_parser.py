import csv
import io
from dataclasses import dataclass, field

from pydantic import ValidationError

from nautiquiz.config import Category
from nautiquiz.quiz.domain.errors import ContentParseError
from nautiquiz.quiz.domain.models import OptionKey, Question
from nautiquiz.shared.telemetry import Telemetry

# Column layout of the question bank
COL_ID = 0
COL_TEXT = 1
COL_OPTIONS = slice(2, 6)
COL_ANSWER = 6
COL_DIAGRAM = 7
COL_CATEGORY = 8
COL_EXPLANATION = 9
COL_RULE = 10

MIN_COLUMNS = 7

telemetry = Telemetry("CSVParser")


@dataclass
class ParseReport:
    questions: list[Question] = field(default_factory=list)
    errors: list[ContentParseError] = field(default_factory=list)


def parse_csv_rows(content: str) -> list[list[str]]:
    """
    Splits delimited text into rows. Quoted fields may contain commas,
    newlines and doubled quotes. Blank rows are dropped.
    """
    if content.startswith("\ufeff"):
        content = content[1:]
    normalized = content.replace("\r\n", "\n").replace("\r", "\n")
    reader = csv.reader(io.StringIO(normalized))
    return [row for row in reader if any(cell.strip() for cell in row)]


def _cell(row: list[str], index: int) -> str:
    return row[index].strip() if len(row) > index else ""


def parse_question_row(row: list[str], row_number: int) -> Question:
    """
    Raises:
        ContentParseError: the row cannot become a valid question.
    """
    if len(row) < MIN_COLUMNS:
        raise ContentParseError(row_number, f"only {len(row)} columns")

    raw_id = row[COL_ID].strip()
    try:
        question_id = int(raw_id)
    except ValueError:
        raise ContentParseError(row_number, f"invalid id {raw_id!r}") from None

    letter = row[COL_ANSWER].strip().upper()
    try:
        correct = OptionKey(letter)
    except ValueError:
        raise ContentParseError(row_number, f"invalid answer {letter!r}") from None

    diagram = _cell(row, COL_DIAGRAM)
    try:
        return Question(
            id=question_id,
            text=row[COL_TEXT].strip(),
            options=tuple(cell.strip() for cell in row[COL_OPTIONS]),
            correct_option=correct,
            diagram_ref=diagram or None,
            category=Category.from_label(_cell(row, COL_CATEGORY)),
            explanation=_cell(row, COL_EXPLANATION),
            rule=_cell(row, COL_RULE),
        )
    except ValidationError as e:
        raise ContentParseError(row_number, str(e)) from e


def parse_question_bank(content: str) -> ParseReport:
    """Parses the whole bank, skipping the header and any malformed rows."""
    rows = parse_csv_rows(content)
    report = ParseReport()

    seen: set[int] = set()
    for row_number, row in enumerate(rows[1:], start=1):
        try:
            question = parse_question_row(row, row_number)
        except ContentParseError as e:
            report.errors.append(e)
            continue
        if question.id in seen:
            report.errors.append(
                ContentParseError(row_number, f"duplicate id {question.id}")
            )
            continue
        seen.add(question.id)
        report.questions.append(question)

    telemetry.log_info(
        "Question bank parsed",
        rows=max(len(rows) - 1, 0),
        valid=len(report.questions),
        skipped=len(report.errors),
    )
    return report


def parse_questions(content: str) -> list[Question]:
    return parse_question_bank(content).questions
