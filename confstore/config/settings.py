"""Settings module for confstore."""

import os

from confstore.database.postgres import PostgresConfig


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class StoreConfig:
    """Versioned store tuning."""

    def __init__(
        self,
        pipe_capacity: int | None = None,
        encoder_workers: int | None = None,
        log_to_postgres: bool | None = None,
    ) -> None:
        # Буфер между encoder-потоком и COPY
        self.pipe_capacity = pipe_capacity or int(
            os.getenv("CONFSTORE_PIPE_CAPACITY", "16384")
        )
        self.encoder_workers = encoder_workers or int(
            os.getenv("CONFSTORE_ENCODER_WORKERS", "8")
        )
        self.log_to_postgres = (
            log_to_postgres
            if log_to_postgres is not None
            else _env_flag("CONFSTORE_LOG_TO_POSTGRES")
        )
        if self.pipe_capacity <= 0:
            raise ValueError("CONFSTORE_PIPE_CAPACITY must be positive")
        if self.encoder_workers <= 0:
            raise ValueError("CONFSTORE_ENCODER_WORKERS must be positive")


class Settings:
    """Application settings."""

    def __init__(self) -> None:
        # Service info
        self.environment = os.getenv("ENVIRONMENT", "dev")
        self.service_name = os.getenv("SERVICE_NAME", "confstore")
        self.service_version = os.getenv("SERVICE_VERSION", "0.1.0")
        self.log_level = os.getenv("LOG_LEVEL", "info")

        # PostgreSQL
        self.postgres = PostgresConfig()

        # Versioned store
        self.store = StoreConfig()
