"""Configuration domain models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class ConfigEntry:
    """Single stored version of a (domain, key) value."""

    domain: str
    key: str
    version: int
    created: datetime | None = None
    value: Any = None
