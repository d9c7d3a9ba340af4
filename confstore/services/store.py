"""Typed read/write façade over the versioned configuration table."""

import threading
import time
from typing import Any, TypeVar

from confstore.domain.config import ConfigEntry
from confstore.errors import DeserializationError
from confstore.logger.logger import get_logger
from confstore.logger.types import Category, duration_ms, param
from confstore.repository.config_repository import ConfigRepository
from confstore.serialization.codec import Decoder, Encoder, JsonCodec
from confstore.serialization.streaming import StreamingSerializer

T = TypeVar("T")


class ConfigStore:
    """
    Append-only, versioned key/value store.

    Every ``set`` creates a new version of (domain, key); ``get`` returns the
    newest versions first, decoded into the type the caller asks for.
    """

    def __init__(
        self,
        repository: ConfigRepository,
        serializer: StreamingSerializer,
        codec: JsonCodec | None = None,
    ) -> None:
        """
        Initialize ConfigStore.

        Args:
            repository: Storage statements
            serializer: Worker pool that feeds values through a bounded pipe
            codec: Default codec shared by domains without their own
        """
        self.repository = repository
        self.serializer = serializer
        self.default_codec = codec or JsonCodec()
        self._codecs: dict[str, JsonCodec] = {}
        self._codecs_lock = threading.Lock()
        self.logger = get_logger().with_category(Category.STORE)

    # Codecs

    def codec_for(self, domain: str) -> JsonCodec:
        with self._codecs_lock:
            return self._codecs.get(domain, self.default_codec)

    def register_codec(self, domain: str, codec: JsonCodec) -> None:
        """Use ``codec`` for ``domain`` only."""
        with self._codecs_lock:
            self._codecs[domain] = codec
        self.logger.debug("Codec registered", param("domain", domain))

    def register_type(
        self,
        domain: str,
        type_: type,
        encoder: Encoder | None = None,
        decoder: Decoder | None = None,
    ) -> None:
        """Add encode/decode hooks for ``type_`` within ``domain``."""
        with self._codecs_lock:
            current = self._codecs.get(domain, self.default_codec)
            self._codecs[domain] = current.with_type(type_, encoder, decoder)
        self.logger.debug(
            "Type hooks registered",
            param("domain", domain),
            param("type", type_.__qualname__),
        )

    # Writes

    def put(self, domain: str, key: str, value: Any) -> ConfigEntry:
        """
        Store ``value`` as the next version of (domain, key).

        Returns:
            Stored entry with its version and creation time

        Raises:
            SerializationError: value is not encodable
            StorageError: database failure
        """
        started = time.monotonic()
        codec = self.codec_for(domain)
        entry = self.repository.insert(
            domain, key, lambda: self.serializer.start(value, codec)
        )
        self.logger.debug(
            "Config set",
            param("domain", domain),
            param("key", key),
            param("version", entry.version),
            duration_ms(int((time.monotonic() - started) * 1000)),
        )
        return ConfigEntry(
            domain=entry.domain,
            key=entry.key,
            version=entry.version,
            created=entry.created,
            value=value,
        )

    def set(self, domain: str, key: str, value: T) -> T:
        """Store ``value`` as a new version and return it unchanged."""
        self.put(domain, key, value)
        return value

    # Reads

    def get_entries(
        self,
        domain: str,
        key: str,
        count: int = 1,
        type_: Any = None,
    ) -> list[ConfigEntry]:
        """
        Get up to ``count`` newest stored entries of (domain, key).

        Args:
            domain: Configuration domain
            key: Configuration key
            count: Maximum number of versions
            type_: Decode values into this type; raw JSON text when None

        Returns:
            Entries ordered newest first, empty when nothing is stored

        Raises:
            ValueError: count is not positive
            DeserializationError: a stored value does not fit ``type_``
            StorageError: database failure
        """
        _check_count(count)
        entries = self.repository.latest(domain, key, count)
        if type_ is None:
            return entries

        codec = self.codec_for(domain)
        return [
            ConfigEntry(
                domain=entry.domain,
                key=entry.key,
                version=entry.version,
                created=entry.created,
                value=self._decode(codec, entry, type_),
            )
            for entry in entries
        ]

    def get_by_class(self, domain: str, key: str, type_: type[T], count: int = 1) -> list[T]:
        """Get up to ``count`` newest values of (domain, key) as ``type_``."""
        return [entry.value for entry in self.get_entries(domain, key, count, type_)]

    def get(self, domain: str, key: str, default: T, count: int = 1) -> list[T]:
        """
        Get up to ``count`` newest values typed like ``default``.

        Returns ``[default]`` when nothing is stored.
        """
        values = self.get_by_class(domain, key, type(default), count)
        if not values:
            self.logger.trace(
                "Config not stored, using default",
                param("domain", domain),
                param("key", key),
            )
            values.append(default)
        return values

    def _decode(self, codec: JsonCodec, entry: ConfigEntry, type_: Any) -> Any:
        try:
            return codec.decode(entry.value, type_)
        except DeserializationError as e:
            self.logger.warn(
                "Stored config does not match requested type",
                param("domain", entry.domain),
                param("key", entry.key),
                param("version", entry.version),
                param("type", e.target_type),
            )
            raise DeserializationError(
                e.message,
                domain=entry.domain,
                key=entry.key,
                version=entry.version,
                target_type=e.target_type,
            ) from e

    def close(self) -> None:
        self.serializer.shutdown()


def _check_count(count: int) -> None:
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise ValueError(f"count must be a positive integer, got {count!r}")
