"""JSON codec with per-type hooks and type-directed decoding."""

import json
import threading
from collections.abc import Callable, Iterator
from typing import Any

from pydantic import TypeAdapter
from pydantic_core import to_jsonable_python

from confstore.errors import DeserializationError, SerializationError

Encoder = Callable[[Any], Any]
Decoder = Callable[[Any], Any]


def _type_name(type_: Any) -> str:
    return getattr(type_, "__qualname__", None) or repr(type_)


class JsonCodec:
    """
    Encode values to compact single-line JSON and decode them into a
    caller-supplied type.

    Codecs are immutable after construction. ``with_type`` returns a new codec,
    so one instance can be shared by any number of threads.

    Encoding: registered encoders (matched along the value's MRO), then
    pydantic's ``to_jsonable_python`` (dataclasses, models, datetime, UUID,
    Enum, set ...).
    Decoding: a registered decoder for the exact target type, applied to the
    parsed JSON, otherwise a strict ``TypeAdapter(target)``.
    """

    def __init__(
        self,
        encoders: dict[type, Encoder] | None = None,
        decoders: dict[Any, Decoder] | None = None,
    ) -> None:
        self._encoders = dict(encoders or {})
        self._decoders = dict(decoders or {})
        self._adapters: dict[Any, TypeAdapter[Any]] = {}
        self._adapters_lock = threading.Lock()

    def with_type(
        self,
        type_: type,
        encoder: Encoder | None = None,
        decoder: Decoder | None = None,
    ) -> "JsonCodec":
        """Return a copy of this codec with hooks for ``type_``."""
        encoders = dict(self._encoders)
        decoders = dict(self._decoders)
        if encoder is not None:
            encoders[type_] = encoder
        if decoder is not None:
            decoders[type_] = decoder
        return JsonCodec(encoders, decoders)

    def _default(self, obj: Any) -> Any:
        for cls in type(obj).__mro__:
            encoder = self._encoders.get(cls)
            if encoder is not None:
                return encoder(obj)
        return to_jsonable_python(obj)

    def iterencode(self, value: Any) -> Iterator[bytes]:
        """Yield the encoded value chunk by chunk.

        Raises:
            SerializationError: value (or a nested part) is not encodable
        """
        encoder = json.JSONEncoder(
            default=self._default,
            ensure_ascii=True,
            allow_nan=False,
            separators=(",", ":"),
        )
        try:
            for chunk in encoder.iterencode(value):
                yield chunk.encode("ascii")
        except SerializationError:
            raise
        except Exception as e:
            # includes failures raised by registered encoders
            raise SerializationError(
                f"Cannot encode {type(value).__name__}: {e}",
                value_type=type(value).__name__,
            ) from e

    def encode(self, value: Any) -> bytes:
        return b"".join(self.iterencode(value))

    def decode(self, raw: str | bytes, type_: Any) -> Any:
        """
        Decode stored JSON into ``type_``.

        Args:
            raw: JSON text as stored
            type_: Target type (class, generic alias, Optional ...)

        Returns:
            Instance of ``type_``

        Raises:
            DeserializationError: payload does not fit ``type_``
        """
        try:
            decoder = self._lookup_decoder(type_)
            if decoder is not None:
                return decoder(json.loads(raw))
            return self._adapter(type_).validate_json(raw, strict=True)
        except Exception as e:
            # pydantic.ValidationError, JSONDecodeError and registered decoder failures
            raise DeserializationError(
                f"Stored value is not a valid {_type_name(type_)}: {e}",
                target_type=_type_name(type_),
            ) from e

    def _lookup_decoder(self, type_: Any) -> Decoder | None:
        try:
            return self._decoders.get(type_)
        except TypeError:
            return None

    def _adapter(self, type_: Any) -> TypeAdapter[Any]:
        try:
            hash(type_)
        except TypeError:
            return TypeAdapter(type_)
        with self._adapters_lock:
            adapter = self._adapters.get(type_)
            if adapter is None:
                adapter = TypeAdapter(type_)
                self._adapters[type_] = adapter
            return adapter
