"""Types and constants for structured logging."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Level(str, Enum):
    """Log level определяет уровень важности лога."""

    TRACE = "trace"  # Детальная трассировка выполнения
    DEBUG = "debug"  # Отладочная информация
    INFO = "info"  # Информационные сообщения
    WARN = "warn"  # Предупреждения
    ERROR = "error"  # Ошибки (recoverable)
    FATAL = "fatal"  # Критические ошибки (требуют вмешательства)
    PANIC = "panic"  # Паника (программа падает)

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @classmethod
    def parse(cls, value: "str | Level") -> "Level":
        """Parse LOG_LEVEL, accepting ``warning`` as an alias."""
        if isinstance(value, Level):
            return value
        normalized = value.strip().lower()
        if normalized == "warning":
            normalized = "warn"
        return cls(normalized)


_SEVERITY = {level: idx for idx, level in enumerate(Level)}


class Category(str, Enum):
    """Category определяет категорию события для группировки логов."""

    DATABASE = "database"  # Операции с БД
    SERIALIZATION = "serialization"  # JSON encode/decode
    REGISTRY = "registry"  # Реестр доменов
    STORE = "store"  # Versioned get/set


@dataclass
class LogEntry:
    """LogEntry представляет одну запись лога для вставки в PostgreSQL."""

    timestamp: datetime
    service_name: str
    instance_id: str
    environment: str
    level: Level
    message: str
    ingestion_time: datetime = field(default_factory=_utcnow)
    node_name: str | None = None
    category: Category | None = None
    thread_name: str | None = None
    function_name: str | None = None
    file_path: str | None = None
    line_number: int | None = None
    error_message: str | None = None
    stack_trace: str | None = None
    context: dict[str, Any] | None = None
    duration_ms: int | None = None


@dataclass
class Field:
    """Field для структурированных данных в логах."""

    key: str
    value: Any


# Helper функции для создания полей


def category(cat: Category) -> Field:
    """Создаёт поле для категории лога."""
    return Field(key="_category", value=cat)


def param(key: str, value: Any) -> Field:
    """Универсальная функция для добавления параметра."""
    return Field(key=key, value=value)


def duration_ms(value: int) -> Field:
    """Создаёт поле для duration в миллисекундах."""
    return Field(key="duration_ms", value=value)
