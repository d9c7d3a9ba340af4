"""
Wire confstore from settings: logger, connection pool, table, registry.

    from confstore import open_store, get_config

    open_store()
    flags = get_config("feature-flags")
    flags.set("beta", True)
    flags.get("beta", False)   # [True]
"""

import threading

from confstore.config.settings import Settings
from confstore.database.postgres import PostgresClient
from confstore.logger.logger import get_logger, init_logger
from confstore.logger.postgres_writer import PostgresWriter
from confstore.logger.types import Category, category, param
from confstore.repository.config_repository import ConfigRepository
from confstore.serialization.codec import JsonCodec
from confstore.serialization.streaming import StreamingSerializer
from confstore.services.registry import init_registry, reset_registry
from confstore.services.store import ConfigStore

_state_lock = threading.Lock()
_postgres_client: PostgresClient | None = None
_log_writer: PostgresWriter | None = None
_store: ConfigStore | None = None


def open_store(
    settings: Settings | None = None,
    postgres_client: PostgresClient | None = None,
    codec: JsonCodec | None = None,
) -> ConfigStore:
    """
    Build the process-wide ConfigStore and install its registry.

    Args:
        settings: Settings, read from the environment when None
        postgres_client: Already connected client; a new pool is created when None
        codec: Default codec for all domains

    Returns:
        ConfigStore instance
    """
    global _postgres_client, _log_writer, _store
    settings = settings or Settings()

    with _state_lock:
        if _store is not None:
            return _store

        log_writer = None
        if settings.store.log_to_postgres:
            log_writer = PostgresWriter(dsn=settings.postgres.dsn)
            log_writer.connect()

        init_logger(
            service_name=settings.service_name,
            environment=settings.environment,
            writer=log_writer,
            level=settings.log_level,
        )
        logger = get_logger()

        if postgres_client is None:
            postgres_client = PostgresClient(settings.postgres)
            postgres_client.connect()
            _postgres_client = postgres_client
            logger.info(
                "Connected to PostgreSQL",
                category(Category.DATABASE),
                param("host", settings.postgres.host),
                param("database", settings.postgres.database),
            )

        repository = ConfigRepository(postgres_client)
        repository.ensure_table_exists()

        serializer = StreamingSerializer(
            pipe_capacity=settings.store.pipe_capacity,
            max_workers=settings.store.encoder_workers,
        )
        store = ConfigStore(repository, serializer, codec)
        init_registry(store)

        _log_writer = log_writer
        _store = store
        logger.info(
            "Configuration store ready",
            category(Category.STORE),
            param("environment", settings.environment),
            param("version", settings.service_version),
            param("pipe_capacity", settings.store.pipe_capacity),
        )
        return store


def close_store() -> None:
    """Shut down encoders, the pool created by open_store and the log writer."""
    global _postgres_client, _log_writer, _store

    with _state_lock:
        if _store is not None:
            _store.close()
            _store = None
        reset_registry()

        if _postgres_client is not None:
            _postgres_client.close()
            _postgres_client = None

        get_logger().info("Configuration store closed", category(Category.STORE))

        if _log_writer is not None:
            _log_writer.close()
            _log_writer = None
