"""
Error types for confstore.

- ConfigStoreError: Base exception
- StorageError: Database connectivity or constraint failures
- SerializationError: Value could not be encoded to JSON
- DeserializationError: Stored payload does not match the requested type

"Nothing stored" is never an error: reads return an empty list.
"""

from typing import Any


class ConfigStoreError(Exception):
    """Base exception for all confstore errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "CONFSTORE_ERROR"
        self.details = details or {}


class StorageError(ConfigStoreError):
    """Storage collaborator failed.

    Raised when:
    - The pool cannot hand out a connection
    - A statement fails (connectivity, primary key violation, invalid JSON)
    """

    def __init__(
        self,
        message: str,
        domain: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(
            message,
            code="STORAGE_ERROR",
            details={"domain": domain, "key": key},
        )
        self.domain = domain
        self.key = key


class SerializationError(ConfigStoreError):
    """Value could not be encoded."""

    def __init__(self, message: str, value_type: str | None = None) -> None:
        super().__init__(
            message,
            code="SERIALIZATION_ERROR",
            details={"value_type": value_type},
        )
        self.value_type = value_type


class DeserializationError(ConfigStoreError):
    """Stored payload could not be read as the requested type.

    Raised per row; the remaining rows of the read are not decoded.
    """

    def __init__(
        self,
        message: str,
        domain: str | None = None,
        key: str | None = None,
        version: int | None = None,
        target_type: str | None = None,
    ) -> None:
        super().__init__(
            message,
            code="DESERIALIZATION_ERROR",
            details={
                "domain": domain,
                "key": key,
                "version": version,
                "target_type": target_type,
            },
        )
        self.domain = domain
        self.key = key
        self.version = version
        self.target_type = target_type
