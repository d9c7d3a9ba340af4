"""Versioned configuration repository for PostgreSQL."""

from collections.abc import Callable

import psycopg2
from psycopg2.extras import RealDictCursor

from confstore.database.postgres import PostgresClient
from confstore.domain.config import ConfigEntry
from confstore.errors import SerializationError, StorageError
from confstore.logger.logger import get_logger
from confstore.logger.types import Category, param
from confstore.serialization.streaming import EncodingJob

TABLE_NAME = "_configuration"

CREATE_TABLE = """
    CREATE TABLE IF NOT EXISTS _configuration (
        domain VARCHAR(255) NOT NULL,
        key VARCHAR(255) NOT NULL,
        version BIGINT NOT NULL,
        created TIMESTAMP NOT NULL DEFAULT now(),
        value JSON,
        PRIMARY KEY (domain, key, version)
    )
"""

# Per-connection staging table; the COPY below streams one JSON document into it
CREATE_STAGING = """
    CREATE TEMP TABLE IF NOT EXISTS _configuration_incoming (value TEXT)
    ON COMMIT DELETE ROWS
"""

# Quote/delimiter are control characters json never emits unescaped,
# so each line is taken verbatim as a single column.
COPY_STAGING = (
    "COPY _configuration_incoming (value) FROM STDIN "
    "WITH (FORMAT csv, QUOTE E'\\x01', DELIMITER E'\\x02')"
)

LOCK_KEY = "SELECT pg_advisory_xact_lock(hashtext(%(domain)s), hashtext(%(key)s))"

INSERT_VERSION = """
    INSERT INTO _configuration (domain, key, version, value)
    SELECT
        %(domain)s,
        %(key)s,
        (
            SELECT coalesce(max(version) + 1, 1)
            FROM _configuration
            WHERE domain = %(domain)s AND key = %(key)s
        ),
        value::json
    FROM _configuration_incoming
    RETURNING version, created
"""

SELECT_LATEST = """
    SELECT domain, key, version, created, value::text AS value
    FROM _configuration
    WHERE domain = %(domain)s AND key = %(key)s
    ORDER BY version DESC
    LIMIT %(limit)s
"""


class ConfigRepository:
    """Append-only repository for versioned configuration values."""

    def __init__(self, postgres_client: PostgresClient, copy_chunk_size: int = 8192) -> None:
        """
        Initialize ConfigRepository.

        Args:
            postgres_client: PostgreSQL client instance
            copy_chunk_size: Bytes requested from the pipe per COPY read
        """
        self.postgres = postgres_client
        self.copy_chunk_size = copy_chunk_size
        self.logger = get_logger().with_category(Category.DATABASE)

    def ensure_table_exists(self) -> None:
        """Create the configuration table if it does not exist."""
        with self.postgres.connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute(CREATE_TABLE)
                conn.commit()
            except psycopg2.Error as e:
                conn.rollback()
                self.logger.error(
                    f"Failed to ensure {TABLE_NAME} table exists",
                    e,
                    param("error", str(e)),
                )
                raise StorageError(f"Failed to create {TABLE_NAME}: {e}") from e

        self.logger.debug(f"Table {TABLE_NAME} is ready")

    def insert(
        self, domain: str, key: str, start_job: Callable[[], EncodingJob]
    ) -> ConfigEntry:
        """
        Store the next version of (domain, key) from an encoding job.

        The payload is streamed from ``job.pipe`` with COPY; the version is
        computed inside the INSERT while holding a transaction-scoped advisory
        lock for the key, so concurrent writers get consecutive versions.
        The transaction commits only if the encoder finished successfully.
        The encoder is started only once a connection is held, so waiting for
        the pool never ties up an encoder thread.

        Args:
            domain: Configuration domain
            key: Configuration key
            start_job: Starts the encoding job feeding the value

        Returns:
            Stored entry (value not included)

        Raises:
            SerializationError: encoder failed, nothing was written
            StorageError: database failure, nothing was written
        """
        params = {"domain": domain, "key": key}
        job: EncodingJob | None = None
        try:
            with self.postgres.connection() as conn:
                job = start_job()
                try:
                    with conn.cursor() as cur:
                        cur.execute(CREATE_STAGING)
                        cur.copy_expert(COPY_STAGING, job.pipe, size=self.copy_chunk_size)
                        cur.execute(LOCK_KEY, params)
                        cur.execute(INSERT_VERSION, params)
                        row = cur.fetchone()
                    job.wait()
                    if row is None:
                        raise StorageError("No payload was staged", domain=domain, key=key)
                    conn.commit()
                except SerializationError:
                    conn.rollback()
                    raise
                except psycopg2.Error as e:
                    conn.rollback()
                    # An encoder abort surfaces from COPY as a psycopg2 error
                    encoder_error = job.cancel()
                    if isinstance(encoder_error, SerializationError):
                        raise encoder_error from e
                    self.logger.error(
                        "Failed to insert config version",
                        e,
                        param("domain", domain),
                        param("key", key),
                        param("error", str(e)),
                    )
                    raise StorageError(
                        f"Failed to store {domain}/{key}: {e}", domain=domain, key=key
                    ) from e
                except BaseException:
                    conn.rollback()
                    raise
        except BaseException:
            # The encoder may be blocked on a full pipe
            if job is not None:
                job.cancel()
            raise

        version, created = row
        self.logger.info(
            "Config version stored",
            param("domain", domain),
            param("key", key),
            param("version", version),
            param("bytes", job.pipe.bytes_written),
        )
        return ConfigEntry(domain=domain, key=key, version=version, created=created)

    def latest(self, domain: str, key: str, limit: int = 1) -> list[ConfigEntry]:
        """
        Get up to ``limit`` newest versions of (domain, key).

        Args:
            domain: Configuration domain
            key: Configuration key
            limit: Maximum number of versions

        Returns:
            Entries ordered by version descending, value as raw JSON text
        """
        with self.postgres.connection() as conn:
            try:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(
                        SELECT_LATEST,
                        {"domain": domain, "key": key, "limit": limit},
                    )
                    rows = cur.fetchall()
                # Close the read-only transaction before returning to the pool
                conn.rollback()
            except psycopg2.Error as e:
                conn.rollback()
                self.logger.error(
                    "Failed to read config versions",
                    e,
                    param("domain", domain),
                    param("key", key),
                    param("error", str(e)),
                )
                raise StorageError(
                    f"Failed to read {domain}/{key}: {e}", domain=domain, key=key
                ) from e

        return [
            ConfigEntry(
                domain=row["domain"],
                key=row["key"],
                version=row["version"],
                created=row["created"],
                value=row["value"],
            )
            for row in rows
        ]
