"""Per-domain configuration handles."""

import threading
from typing import Any, TypeVar

from confstore.domain.config import ConfigEntry
from confstore.logger.logger import get_logger
from confstore.logger.types import Category, param
from confstore.serialization.codec import Decoder, Encoder
from confstore.services.store import ConfigStore

T = TypeVar("T")


class Configuration:
    """Domain-bound accessor for a ConfigStore. Holds no per-call state."""

    __slots__ = ("_domain", "_store")

    def __init__(self, domain: str, store: ConfigStore) -> None:
        object.__setattr__(self, "_domain", domain)
        object.__setattr__(self, "_store", store)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    @property
    def domain(self) -> str:
        return self._domain

    @property
    def store(self) -> ConfigStore:
        return self._store

    def get(self, key: str, default: T, count: int = 1) -> list[T]:
        return self._store.get(self._domain, key, default, count)

    def get_by_class(self, key: str, type_: type[T], count: int = 1) -> list[T]:
        return self._store.get_by_class(self._domain, key, type_, count)

    def get_entries(self, key: str, count: int = 1, type_: Any = None) -> list[ConfigEntry]:
        return self._store.get_entries(self._domain, key, count, type_)

    def set(self, key: str, value: T) -> T:
        return self._store.set(self._domain, key, value)

    def put(self, key: str, value: Any) -> ConfigEntry:
        return self._store.put(self._domain, key, value)

    def register_type(
        self,
        type_: type,
        encoder: Encoder | None = None,
        decoder: Decoder | None = None,
    ) -> None:
        self._store.register_type(self._domain, type_, encoder, decoder)

    def __repr__(self) -> str:
        return f"Configuration(domain={self._domain!r})"


class ConfigRegistry:
    """Creates one Configuration per domain and hands out the same one after."""

    def __init__(self, store: ConfigStore) -> None:
        self.store = store
        self._handles: dict[str, Configuration] = {}
        self._lock = threading.Lock()
        self.logger = get_logger().with_category(Category.REGISTRY)

    def get_config(self, domain: str) -> Configuration:
        with self._lock:
            handle = self._handles.get(domain)
            if handle is None:
                handle = Configuration(domain, self.store)
                self._handles[domain] = handle
                self.logger.debug("Configuration domain registered", param("domain", domain))
            return handle

    def domains(self) -> list[str]:
        with self._lock:
            return sorted(self._handles)


# Глобальный registry instance
_global_registry: ConfigRegistry | None = None
_global_lock = threading.Lock()


def init_registry(store: ConfigStore) -> ConfigRegistry:
    """Install the process-wide registry for ``store``."""
    global _global_registry
    with _global_lock:
        _global_registry = ConfigRegistry(store)
        return _global_registry


def get_registry() -> ConfigRegistry:
    """Return the process-wide registry."""
    with _global_lock:
        if _global_registry is None:
            raise RuntimeError("Registry not initialized. Call open_store() first.")
        return _global_registry


def reset_registry() -> None:
    global _global_registry
    with _global_lock:
        _global_registry = None


def get_config(domain: str) -> Configuration:
    """Return the shared handle for ``domain``."""
    return get_registry().get_config(domain)
