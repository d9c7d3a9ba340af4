"""PostgreSQL client for confstore."""

import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2
from psycopg2.extensions import connection as Connection
from psycopg2.pool import ThreadedConnectionPool

from confstore.errors import StorageError


class PostgresConfig:
    """PostgreSQL connection configuration."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        database: str | None = None,
        user: str | None = None,
        password: str | None = None,
        min_conn: int = 1,
        max_conn: int = 10,
    ) -> None:
        self.host = host or os.getenv("DB_HOST", "localhost")
        self.port = port or int(os.getenv("DB_PORT", "5432"))
        self.database = database or os.getenv("DB_NAME", "confstore")
        self.user = user or os.getenv("DB_USER", "confstore")
        self.password = password or self._read_password()
        self.min_conn = min_conn
        self.max_conn = max_conn

    @staticmethod
    def _read_password() -> str:
        """Read password from Docker secret or env."""
        secret_file = "/run/secrets/db_password"
        if os.path.exists(secret_file):
            with open(secret_file) as f:
                return f.read().strip()
        return os.getenv("DB_PASSWORD", "confstore")

    @property
    def dsn(self) -> str:
        """Get PostgreSQL DSN."""
        return (
            f"host={self.host} "
            f"port={self.port} "
            f"dbname={self.database} "
            f"user={self.user} "
            f"password={self.password}"
        )


class PostgresClient:
    """PostgreSQL client with thread-safe connection pooling."""

    def __init__(self, config: PostgresConfig | Any = None) -> None:
        """
        Initialize PostgreSQL client.

        Args:
            config: PostgresConfig, config dict or None for env defaults
        """
        if isinstance(config, dict):
            self.config = PostgresConfig(**config)
        elif config is None:
            self.config = PostgresConfig()
        else:
            self.config = config

        self.pool: ThreadedConnectionPool | None = None
        # ThreadedConnectionPool raises PoolError when exhausted instead of waiting
        self._slots = threading.BoundedSemaphore(self.config.max_conn)

    def connect(self) -> None:
        """Create the connection pool."""
        try:
            self.pool = ThreadedConnectionPool(
                minconn=self.config.min_conn,
                maxconn=self.config.max_conn,
                dsn=self.config.dsn,
            )
        except psycopg2.Error as e:
            raise StorageError(f"Failed to create connection pool: {e}") from e

    def close(self) -> None:
        """Close database connection pool."""
        if self.pool:
            self.pool.closeall()
            self.pool = None

    def get_connection(self) -> Connection:
        """Get connection from pool."""
        if not self.pool:
            raise RuntimeError("Connection pool not initialized. Call connect() first.")
        try:
            return self.pool.getconn()  # type: ignore[no-any-return]
        except psycopg2.Error as e:
            # PoolError (exhausted) is a psycopg2.Error too
            raise StorageError(f"Failed to acquire connection: {e}") from e

    def put_connection(self, conn: Connection) -> None:
        """Return connection to pool."""
        if self.pool:
            self.pool.putconn(conn)

    @contextmanager
    def connection(self) -> Iterator[Connection]:
        """Borrow a connection for the duration of the block.

        Blocks while all max_conn connections are borrowed. The connection
        goes back to the pool on every exit path.
        """
        with self._slots:
            conn = self.get_connection()
            try:
                yield conn
            finally:
                self.put_connection(conn)
