"""PostgreSQL writer для логов с батчингом."""

import json
import sys
import threading
from collections.abc import Sequence
from typing import Any

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as Connection

from confstore.logger.types import LogEntry

LOG_TABLE_DDL = """
    CREATE TABLE IF NOT EXISTS _configuration_log (
        timestamp TIMESTAMPTZ NOT NULL,
        service_name TEXT NOT NULL,
        instance_id TEXT NOT NULL,
        node_name TEXT,
        environment TEXT NOT NULL,
        level TEXT NOT NULL,
        category TEXT,
        thread_name TEXT,
        function_name TEXT,
        file_path TEXT,
        line_number INTEGER,
        message TEXT NOT NULL,
        error_message TEXT,
        stack_trace TEXT,
        context JSONB,
        duration_ms BIGINT,
        ingestion_time TIMESTAMPTZ NOT NULL
    )
"""


class PostgresWriter:
    """PostgresWriter записывает логи в PostgreSQL с батчингом.

    Thread-safe: any thread may call ``write``; a daemon thread flushes the
    buffer every ``flush_interval`` seconds.
    """

    def __init__(
        self,
        dsn: str,
        batch_size: int = 100,
        flush_interval: float = 5.0,
    ) -> None:
        """
        Initialize PostgresWriter.

        Args:
            dsn: PostgreSQL connection string
            batch_size: Размер батча для flush
            flush_interval: Интервал автоматического flush в секундах
        """
        self.dsn = dsn
        self.batch_size = batch_size
        self.flush_interval = flush_interval
        self.buffer: list[LogEntry] = []
        self._lock = threading.Lock()
        self._conn: Connection | None = None
        self._stop = threading.Event()
        self._flush_thread: threading.Thread | None = None
        self._closed = False

    def connect(self) -> None:
        """Подключается к PostgreSQL и запускает фоновый flush."""
        try:
            self._conn = psycopg2.connect(self.dsn)
            self._conn.set_session(autocommit=False)
            with self._conn.cursor() as cursor:
                cursor.execute(LOG_TABLE_DDL)
            self._conn.commit()
        except psycopg2.Error as e:
            print(
                f"[LOGGER ERROR] Failed to connect to PostgreSQL: {e}",
                file=sys.stderr,
            )
            raise

        self._flush_thread = threading.Thread(
            target=self._background_flush,
            name="confstore-log-flush",
            daemon=True,
        )
        self._flush_thread.start()

    def write(self, entry: LogEntry) -> None:
        """Добавляет запись в буфер."""
        if self._closed:
            return

        with self._lock:
            self.buffer.append(entry)

            # Автоматический flush при достижении batch_size
            if len(self.buffer) >= self.batch_size:
                self._flush_locked()

    def write_batch(self, entries: Sequence[LogEntry]) -> None:
        """Записывает батч записей."""
        if self._closed:
            return

        with self._lock:
            self.buffer.extend(entries)

            if len(self.buffer) >= self.batch_size:
                self._flush_locked()

    def flush(self) -> None:
        """Принудительно записывает буфер в БД."""
        with self._lock:
            self._flush_locked()

    def _flush_locked(self) -> None:
        """Записывает буфер в БД (должен вызываться с захваченным lock)."""
        if not self.buffer:
            return
        if not self._conn:
            self._fallback_to_stderr()
            self.buffer.clear()
            return

        query = """
            INSERT INTO _configuration_log (
                timestamp, service_name, instance_id, node_name, environment,
                level, category, thread_name,
                function_name, file_path, line_number,
                message, error_message, stack_trace, context,
                duration_ms, ingestion_time
            ) VALUES %s
        """

        values = [
            (
                entry.timestamp,
                entry.service_name,
                entry.instance_id,
                entry.node_name,
                entry.environment,
                entry.level.value,
                entry.category.value if entry.category else None,
                entry.thread_name,
                entry.function_name,
                entry.file_path,
                entry.line_number,
                entry.message,
                entry.error_message,
                entry.stack_trace,
                (json.dumps(entry.context, default=str) if entry.context is not None else None),
                entry.duration_ms,
                entry.ingestion_time,
            )
            for entry in self.buffer
        ]

        try:
            with self._conn.cursor() as cursor:
                psycopg2.extras.execute_values(
                    cursor,
                    query,
                    values,
                    page_size=self.batch_size,
                )
            self._conn.commit()
        except psycopg2.Error as e:
            print(
                f"[LOGGER ERROR] Failed to insert logs into PostgreSQL: {e}",
                file=sys.stderr,
            )
            self._conn.rollback()
            # Fallback в stderr если PostgreSQL недоступен
            self._fallback_to_stderr()
        finally:
            self.buffer.clear()

    def _fallback_to_stderr(self) -> None:
        """Записывает логи в stderr если PostgreSQL недоступен."""
        for entry in self.buffer:
            data: dict[str, Any] = {
                "timestamp": entry.timestamp.isoformat(),
                "level": entry.level.value,
                "category": entry.category.value if entry.category else None,
                "message": entry.message,
                "service_name": entry.service_name,
                "environment": entry.environment,
            }
            if entry.error_message:
                data["error"] = entry.error_message
            if entry.context:
                data["context"] = entry.context

            print(json.dumps(data, default=str), file=sys.stderr)

    def _background_flush(self) -> None:
        """Периодически сбрасывает буфер."""
        while not self._stop.wait(self.flush_interval):
            try:
                self.flush()
            except Exception as e:
                print(
                    f"[LOGGER ERROR] Background flush failed: {e}",
                    file=sys.stderr,
                )

    def close(self) -> None:
        """Закрывает writer и сбрасывает оставшиеся логи."""
        self._closed = True

        self._stop.set()
        if self._flush_thread:
            self._flush_thread.join()
            self._flush_thread = None

        # Финальный flush
        self.flush()

        if self._conn:
            self._conn.close()
            self._conn = None
