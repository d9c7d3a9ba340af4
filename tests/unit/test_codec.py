"""
Unit tests for JsonCodec.

Tests cover:
- Compact single-line encoding
- Type-directed strict decoding
- Per-type hooks and copy-on-write registration
- Error mapping to SerializationError / DeserializationError
"""

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

import pytest

from confstore.errors import DeserializationError, SerializationError
from confstore.serialization.codec import JsonCodec


@dataclass
class Endpoint:
    host: str
    port: int


class Mode(str, Enum):
    FAST = "fast"
    SAFE = "safe"


class Money:
    def __init__(self, cents: int) -> None:
        self.cents = cents


class TestEncoding:
    """Tests for JsonCodec encoding."""

    def test_encodes_compact_single_line(self):
        codec = JsonCodec()
        data = codec.encode({"a": [1, 2], "text": "line1\nline2\té"})

        assert b"\n" not in data
        assert b" " not in data
        assert json.loads(data) == {"a": [1, 2], "text": "line1\nline2\té"}

    def test_iterencode_yields_multiple_chunks(self):
        chunks = list(JsonCodec().iterencode([{"i": i} for i in range(50)]))
        assert len(chunks) > 1

    def test_encodes_dataclass_datetime_uuid_enum(self):
        codec = JsonCodec()
        data = json.loads(
            codec.encode(
                {
                    "endpoint": Endpoint("db", 5432),
                    "at": datetime(2024, 1, 2, 3, 4, 5),
                    "id": UUID("12345678-1234-5678-1234-567812345678"),
                    "mode": Mode.FAST,
                }
            )
        )

        assert data["endpoint"] == {"host": "db", "port": 5432}
        assert data["at"] == "2024-01-02T03:04:05"
        assert data["id"] == "12345678-1234-5678-1234-567812345678"
        assert data["mode"] == "fast"

    def test_unencodable_value_raises_serialization_error(self):
        with pytest.raises(SerializationError) as exc_info:
            JsonCodec().encode({"handle": object()})
        assert exc_info.value.code == "SERIALIZATION_ERROR"

    def test_nan_is_rejected(self):
        with pytest.raises(SerializationError):
            JsonCodec().encode(float("nan"))

    def test_registered_encoder_is_used(self):
        codec = JsonCodec().with_type(Money, encoder=lambda m: {"cents": m.cents})
        assert json.loads(codec.encode(Money(250))) == {"cents": 250}


class TestDecoding:
    """Tests for JsonCodec decoding."""

    def test_decodes_builtin_types(self):
        codec = JsonCodec()
        assert codec.decode("42", int) == 42
        assert codec.decode('"x"', str) == "x"
        assert codec.decode("[1,2]", list[int]) == [1, 2]
        assert codec.decode('{"a":1}', dict) == {"a": 1}

    def test_decodes_dataclass(self):
        assert JsonCodec().decode('{"host":"db","port":5432}', Endpoint) == Endpoint("db", 5432)

    def test_type_mismatch_raises_deserialization_error(self):
        with pytest.raises(DeserializationError) as exc_info:
            JsonCodec().decode('{"host":"db"}', int)
        assert exc_info.value.target_type == "int"

    def test_strict_mode_does_not_coerce_strings(self):
        with pytest.raises(DeserializationError):
            JsonCodec().decode('"42"', int)

    def test_malformed_json_raises_deserialization_error(self):
        with pytest.raises(DeserializationError):
            JsonCodec().decode("{not json", dict)

    def test_registered_decoder_is_used(self):
        codec = JsonCodec().with_type(Money, decoder=lambda data: Money(data["cents"]))
        assert codec.decode('{"cents":99}', Money).cents == 99

    def test_failing_decoder_maps_to_deserialization_error(self):
        codec = JsonCodec().with_type(Money, decoder=lambda data: Money(data["cents"]))
        with pytest.raises(DeserializationError):
            codec.decode('{"dollars":1}', Money)

    def test_any_decoder_failure_maps_to_deserialization_error(self):
        codec = JsonCodec().with_type(Money, decoder=lambda data: Money(data.cents))
        with pytest.raises(DeserializationError):
            codec.decode('{"cents":1}', Money)

    def test_with_type_leaves_original_untouched(self):
        base = JsonCodec()
        base.with_type(Money, encoder=lambda m: m.cents)

        with pytest.raises(SerializationError):
            base.encode(Money(1))
