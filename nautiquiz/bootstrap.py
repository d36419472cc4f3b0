import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass

from opentelemetry import trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import start_http_server

from nautiquiz.config import QuizConfig
from nautiquiz.quiz.adapters.db_manager import DatabaseManager
from nautiquiz.quiz.adapters.question_bank import load_question_store
from nautiquiz.quiz.adapters.sqlite_repository import SQLiteProgressRepository
from nautiquiz.quiz.application.progress_store import ProgressStore
from nautiquiz.quiz.application.question_store import QuestionStore
from nautiquiz.quiz.application.service import QuizService
from nautiquiz.quiz.domain.errors import EmptyQuestionSetError
from nautiquiz.quiz.domain.models import Question

logger = logging.getLogger(__name__)

SERVICE_NAME = "nautiquiz"


def configure_observability() -> bool:
    """
    Sends traces and logs over OTLP and exposes Prometheus metrics, when the
    OTEL_EXPORTER_OTLP_* environment variables are present.
    Returns True when exporters were installed.
    """
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    headers = os.getenv("OTEL_EXPORTER_OTLP_HEADERS")

    if not endpoint or not headers:
        logger.warning("⚠️ OTEL env vars not set. Telemetry stays local.")
        return False

    resource = Resource.create({"service.name": SERVICE_NAME})

    # --- A. TRACING ---
    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, headers=headers))
    )
    trace.set_tracer_provider(trace_provider)

    # --- B. LOGGING ---
    logger_provider = LoggerProvider(resource=resource)
    logger_provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(endpoint=endpoint, headers=headers))
    )
    set_logger_provider(logger_provider)
    logging.getLogger().addHandler(
        LoggingHandler(level=logging.INFO, logger_provider=logger_provider)
    )

    # --- C. METRICS ---
    try:
        start_http_server(QuizConfig.METRICS_PORT)
        logger.info(f"✅ Prometheus metrics on port {QuizConfig.METRICS_PORT}")
    except OSError:
        logger.warning(f"⚠️ Port {QuizConfig.METRICS_PORT} already in use. Skipping.")

    return True


@dataclass
class AppContext:
    """
    The process-wide objects, built once at startup and passed to whoever
    needs them.
    """

    db_manager: DatabaseManager
    questions: QuestionStore
    progress: ProgressStore
    service: QuizService

    def close(self) -> None:
        self.db_manager.close()


def build_context(
    db_path: str | None = None,
    question_paths: Iterable[str] | None = None,
    questions: Iterable[Question] | None = None,
) -> AppContext:
    """
    Wires storage, the question bank and the service together.

    Raises:
        EmptyQuestionSetError: no questions were supplied and none could be
        loaded from ``question_paths``.
    """
    db_manager = DatabaseManager(db_path or QuizConfig.DB_PATH)
    progress = ProgressStore(SQLiteProgressRepository(db_manager))

    if questions is not None:
        question_store = QuestionStore(questions)
    else:
        try:
            question_store = load_question_store(question_paths)
        except EmptyQuestionSetError:
            db_manager.close()
            raise

    return AppContext(
        db_manager=db_manager,
        questions=question_store,
        progress=progress,
        service=QuizService(question_store, progress),
    )
