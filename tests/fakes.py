"""
In-memory stand-in for a psycopg2 connection pool.

Understands the statements issued by ConfigRepository:
- CREATE TABLE / CREATE TEMP TABLE (no-ops, recorded)
- COPY into the staging table, reading the file object chunk by chunk
- pg_advisory_xact_lock, held until commit/rollback
- versioned INSERT ... SELECT max + 1, visible to others after commit
- versioned SELECT ordered by version descending
"""

import json
import threading
from collections import defaultdict
from datetime import datetime
from typing import Any

import psycopg2
import psycopg2.extensions
import psycopg2.pool


class FakeDatabase:
    """Committed rows plus the knobs tests use to inject failures."""

    def __init__(self) -> None:
        self.rows: list[dict[str, Any]] = []
        self.table_created = False
        self.fail_on: str | None = None
        self.copy_read_sizes: list[int] = []
        self.statements: list[str] = []
        self._lock = threading.Lock()
        self._key_locks: dict[tuple[str, str], threading.Lock] = defaultdict(threading.Lock)

    def key_lock(self, domain: str, key: str) -> threading.Lock:
        with self._lock:
            return self._key_locks[(domain, key)]

    def versions(self, domain: str, key: str) -> list[int]:
        with self._lock:
            return sorted(
                row["version"]
                for row in self.rows
                if row["domain"] == domain and row["key"] == key
            )

    def commit_rows(self, rows: list[dict[str, Any]]) -> None:
        with self._lock:
            existing = {(r["domain"], r["key"], r["version"]) for r in self.rows}
            for row in rows:
                if (row["domain"], row["key"], row["version"]) in existing:
                    raise psycopg2.IntegrityError(
                        'duplicate key value violates unique constraint "_configuration_pkey"'
                    )
            self.rows.extend(rows)

    def committed(self) -> list[dict[str, Any]]:
        with self._lock:
            return list(self.rows)


class FakeConnection:
    def __init__(self, database: FakeDatabase) -> None:
        self.database = database
        self.staged: list[str] = []
        self.pending: list[dict[str, Any]] = []
        self.held_locks: list[threading.Lock] = []
        self.commits = 0
        self.rollbacks = 0

    def cursor(self, cursor_factory: Any = None) -> "FakeCursor":
        return FakeCursor(self, dict_rows=cursor_factory is not None)

    def commit(self) -> None:
        try:
            self.database.commit_rows(self.pending)
        finally:
            self._end()
        self.commits += 1

    def rollback(self) -> None:
        self._end()
        self.rollbacks += 1

    def _end(self) -> None:
        self.pending = []
        self.staged = []
        while self.held_locks:
            self.held_locks.pop().release()


class FakeCursor:
    def __init__(self, conn: FakeConnection, dict_rows: bool) -> None:
        self.conn = conn
        self.dict_rows = dict_rows
        self._result: list[Any] = []

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None

    def _check_failure(self, sql: str) -> None:
        db = self.conn.database
        db.statements.append(" ".join(sql.split()))
        if db.fail_on and db.fail_on in sql:
            raise psycopg2.OperationalError("server closed the connection unexpectedly")

    def execute(self, sql: str, params: dict[str, Any] | None = None) -> None:
        self._check_failure(sql)
        db = self.conn.database
        params = params or {}

        if "CREATE TABLE IF NOT EXISTS _configuration" in sql:
            db.table_created = True
        elif "CREATE TEMP TABLE" in sql:
            pass
        elif "pg_advisory_xact_lock" in sql:
            lock = db.key_lock(params["domain"], params["key"])
            lock.acquire()
            self.conn.held_locks.append(lock)
        elif "INSERT INTO _configuration" in sql:
            self._insert(params["domain"], params["key"])
        elif "SELECT domain, key, version, created" in sql:
            self._select(params["domain"], params["key"], params["limit"])
        else:
            raise AssertionError(f"unexpected statement: {sql}")

    def _insert(self, domain: str, key: str) -> None:
        visible = self.conn.database.committed() + self.conn.pending
        current = [
            row["version"] for row in visible if row["domain"] == domain and row["key"] == key
        ]
        self._result = []
        for text in self.conn.staged:
            try:
                json.loads(text)
            except ValueError as e:
                raise psycopg2.DataError(f"invalid input syntax for type json: {e}") from e
            version = max(current, default=0) + 1
            current.append(version)
            created = datetime.now()
            self.conn.pending.append(
                {
                    "domain": domain,
                    "key": key,
                    "version": version,
                    "created": created,
                    "value": text,
                }
            )
            self._result.append((version, created))

    def _select(self, domain: str, key: str, limit: int) -> None:
        visible = self.conn.database.committed() + self.conn.pending
        rows = sorted(
            (row for row in visible if row["domain"] == domain and row["key"] == key),
            key=lambda row: row["version"],
            reverse=True,
        )[:limit]
        if self.dict_rows:
            self._result = [dict(row) for row in rows]
        else:
            self._result = [
                (row["domain"], row["key"], row["version"], row["created"], row["value"])
                for row in rows
            ]

    def copy_expert(self, sql: str, file: Any, size: int = 8192) -> None:
        self._check_failure(sql)
        chunks = []
        while True:
            try:
                data = file.read(size)
            except Exception as e:
                # psycopg2 reports a failing read() as a backend error
                raise psycopg2.extensions.QueryCanceledError(
                    f"COPY from stdin failed: error in .read() call: {e}"
                ) from e
            if not data:
                break
            self.conn.database.copy_read_sizes.append(len(data))
            chunks.append(data)
        text = b"".join(chunks).decode("ascii")
        self.conn.staged.extend(line for line in text.split("\n") if line)

    def fetchone(self) -> Any:
        return self._result[0] if self._result else None

    def fetchall(self) -> list[Any]:
        return list(self._result)


class FakePool:
    """Minimal ThreadedConnectionPool replacement."""

    def __init__(self, database: FakeDatabase, max_conn: int | None = None) -> None:
        self.database = database
        self.max_conn = max_conn
        self.checked_out = 0
        self.max_checked_out = 0
        self.closed = False
        self._lock = threading.Lock()

    def getconn(self) -> FakeConnection:
        with self._lock:
            if self.max_conn is not None and self.checked_out >= self.max_conn:
                raise psycopg2.pool.PoolError("connection pool exhausted")
            self.checked_out += 1
            self.max_checked_out = max(self.max_checked_out, self.checked_out)
        return FakeConnection(self.database)

    def putconn(self, conn: FakeConnection) -> None:
        with self._lock:
            self.checked_out -= 1

    def closeall(self) -> None:
        self.closed = True
