"""Append-only, versioned key/value configuration store on PostgreSQL."""

from confstore.bootstrap import close_store, open_store
from confstore.domain.config import ConfigEntry
from confstore.errors import (
    ConfigStoreError,
    DeserializationError,
    SerializationError,
    StorageError,
)
from confstore.serialization.codec import JsonCodec
from confstore.services.registry import (
    ConfigRegistry,
    Configuration,
    get_config,
    get_registry,
    init_registry,
)
from confstore.services.store import ConfigStore

__all__ = [
    "open_store",
    "close_store",
    "get_config",
    "get_registry",
    "init_registry",
    "ConfigRegistry",
    "Configuration",
    "ConfigStore",
    "ConfigEntry",
    "JsonCodec",
    "ConfigStoreError",
    "StorageError",
    "SerializationError",
    "DeserializationError",
]
