import sqlite3

from nautiquiz.config import QuizConfig
from nautiquiz.quiz.adapters.db_manager import DatabaseManager
from nautiquiz.quiz.domain.ports import IProgressRepository
from nautiquiz.shared.telemetry import Telemetry, measure_time


class SQLiteProgressRepository(IProgressRepository):
    def __init__(
        self,
        db_manager: DatabaseManager,
        progress_key: str = QuizConfig.PROGRESS_KEY,
        version_key: str = QuizConfig.SCHEMA_VERSION_KEY,
    ) -> None:
        self.telemetry = Telemetry("SQLiteProgressRepository")
        self.db_manager = db_manager
        self.progress_key = progress_key
        self.version_key = version_key

    def _get_connection(self) -> sqlite3.Connection:
        return self.db_manager.get_connection()

    def _release(self, conn: sqlite3.Connection) -> None:
        if not self.db_manager.is_shared:
            conn.close()

    def _get_value(self, key: str) -> str | None:
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
            return row[0] if row else None
        finally:
            self._release(conn)

    def _set_value(self, key: str, value: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET value      = excluded.value,
                                               updated_at = CURRENT_TIMESTAMP
                """,
                (key, value),
            )
            conn.commit()
        except sqlite3.Error as e:
            self.telemetry.log_error(f"Write failed for key={key}", e)
            raise
        finally:
            self._release(conn)

    def load_payload(self) -> str | None:
        return self._get_value(self.progress_key)

    @measure_time("db_save_progress")
    def save_payload(self, payload: str) -> None:
        self._set_value(self.progress_key, payload)

    def get_schema_version(self) -> int:
        raw = self._get_value(self.version_key)
        if raw is None:
            return 0
        try:
            return int(raw)
        except ValueError:
            self.telemetry.log_warning("Unreadable schema version", raw=raw)
            return 0

    def set_schema_version(self, version: int) -> None:
        self._set_value(self.version_key, str(version))
