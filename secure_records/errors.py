"""
Exception classes for secure record operations.

Every error raised by this package derives from SecureRecordError so callers
can catch the whole family at an API boundary.
"""

from __future__ import annotations


class SecureRecordError(Exception):
    """Base exception for all secure record operations."""

    pass


class ConfigurationError(SecureRecordError):
    """Master key or other required setting is missing or malformed."""

    pass


class MalformedFieldError(SecureRecordError):
    """A record field failed hex decoding or length validation."""

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"{field} is malformed")


class UnsupportedFormatError(SecureRecordError):
    """Record algorithm or master key version is not recognized."""

    pass


class DecryptionFailedError(SecureRecordError):
    """
    Authenticated decryption failed.

    Raised for a bad tag, a tampered ciphertext, a wrong master key or an
    unparseable plaintext alike. The message is always the same.
    """

    def __init__(self) -> None:
        super().__init__("Decryption failed")


class SerializationError(SecureRecordError):
    """Payload could not be serialized to JSON."""

    pass


class ValidationError(SecureRecordError):
    """Caller input does not have the required shape."""

    pass


class StorageError(SecureRecordError):
    """Storage backend error (database, in-memory, etc.)."""

    pass


class RecordNotFoundError(SecureRecordError):
    """Record not found in storage."""

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__("Record not found")
