"""
Cryptographic primitives for AES-256-GCM envelope encryption.

This module provides:
- SecureKey: Secure key wrapper with best-effort zeroization
- EncryptedData: Nonce, ciphertext and detached authentication tag
- AesGcmCipher: AES-256-GCM encryption/decryption operations
- encode_hex / decode_hex_field: Hex codec for record byte fields
"""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import DecryptionFailedError, MalformedFieldError

# Cryptographic constants
AES_256_KEY_SIZE: int = 32  # 256 bits
NONCE_SIZE: int = 12  # 96 bits (standard for AES-GCM)
TAG_SIZE: int = 16  # 128 bits (authentication tag)

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")


class SecureKey:
    """
    Secure key wrapper with automatic memory cleanup on deletion.

    Uses bytearray internally for mutable zeroing in __del__.
    Note: Python's garbage collector doesn't guarantee immediate cleanup,
    so this is best-effort zeroization.
    """

    __slots__ = ("_bytes",)

    def __init__(self, key_bytes: bytes | bytearray) -> None:
        if not isinstance(key_bytes, (bytes, bytearray)):
            raise TypeError("Key must be bytes or bytearray")
        if len(key_bytes) != AES_256_KEY_SIZE:
            raise ValueError(
                f"Invalid key size: expected {AES_256_KEY_SIZE}, got {len(key_bytes)}"
            )
        self._bytes = bytearray(key_bytes)

    @classmethod
    def generate(cls) -> SecureKey:
        """Generate a cryptographically secure random 32-byte key."""
        return cls(secrets.token_bytes(AES_256_KEY_SIZE))

    def as_bytes(self) -> bytes:
        """Return key as immutable bytes."""
        return bytes(self._bytes)

    def __len__(self) -> int:
        return len(self._bytes)

    def __repr__(self) -> str:
        """Redacted representation to prevent accidental key disclosure."""
        return "SecureKey([REDACTED])"

    def __del__(self) -> None:
        """Zero memory on deletion (best-effort)."""
        if hasattr(self, "_bytes"):
            for i in range(len(self._bytes)):
                self._bytes[i] = 0


@dataclass(frozen=True)
class EncryptedData:
    """
    AES-GCM output with the authentication tag kept apart from the ciphertext.

    len(ciphertext) equals the plaintext length; GCM adds no padding.
    """

    nonce: bytes  # 12 bytes
    ciphertext: bytes
    tag: bytes  # 16 bytes

    @classmethod
    def from_combined(cls, nonce: bytes, combined: bytes) -> EncryptedData:
        """Split AESGCM's ciphertext || tag output."""
        return cls(
            nonce=nonce,
            ciphertext=combined[:-TAG_SIZE],
            tag=combined[-TAG_SIZE:],
        )

    def combined(self) -> bytes:
        """Rejoin as ciphertext || tag, the layout AESGCM.decrypt expects."""
        return self.ciphertext + self.tag


class AesGcmCipher:
    """
    AES-256-GCM authenticated encryption.

    Every encrypt call draws a fresh random 96-bit nonce.
    """

    @staticmethod
    def encrypt(
        key: SecureKey,
        plaintext: bytes,
        aad: Optional[bytes] = None,
    ) -> EncryptedData:
        """
        Encrypt plaintext with AES-256-GCM.

        Args:
            key: 32-byte encryption key
            plaintext: Data to encrypt
            aad: Optional Additional Authenticated Data for binding

        Returns:
            EncryptedData with nonce, ciphertext and detached tag
        """
        nonce = secrets.token_bytes(NONCE_SIZE)
        aesgcm = AESGCM(key.as_bytes())
        combined = aesgcm.encrypt(nonce, plaintext, aad)
        return EncryptedData.from_combined(nonce, combined)

    @staticmethod
    def decrypt(
        key: SecureKey,
        encrypted: EncryptedData,
        aad: Optional[bytes] = None,
    ) -> bytes:
        """
        Decrypt and verify ciphertext with AES-256-GCM.

        Args:
            key: 32-byte decryption key
            encrypted: EncryptedData with nonce, ciphertext and tag
            aad: Optional Additional Authenticated Data (must match encryption)

        Returns:
            Decrypted plaintext bytes

        Raises:
            DecryptionFailedError: If the tag does not verify
        """
        aesgcm = AESGCM(key.as_bytes())

        try:
            return aesgcm.decrypt(encrypted.nonce, encrypted.combined(), aad)
        except InvalidTag:
            # Generic error to prevent oracle attacks
            raise DecryptionFailedError() from None


def generate_random_bytes(length: int) -> bytes:
    """Generate cryptographically secure random bytes."""
    return secrets.token_bytes(length)


def is_hex(value: object) -> bool:
    """True for a non-empty, even-length string of hex digits."""
    return (
        isinstance(value, str)
        and len(value) % 2 == 0
        and _HEX_RE.match(value) is not None
    )


def encode_hex(data: bytes) -> str:
    """Encode bytes as a lowercase hex string."""
    return data.hex()


def decode_hex_field(
    value: object, field: str, expected_size: Optional[int] = None
) -> bytes:
    """
    Decode a hex record field, optionally enforcing its byte length.

    Args:
        value: Field value taken from a record
        field: Wire name of the field, reported on failure
        expected_size: Required decoded length in bytes

    Raises:
        MalformedFieldError: If the value is not valid hex or has the wrong length
    """
    if not is_hex(value):
        raise MalformedFieldError(field, f"{field} must be valid hex")

    decoded = bytes.fromhex(value)  # type: ignore[arg-type]
    if expected_size is not None and len(decoded) != expected_size:
        raise MalformedFieldError(field, f"{field} must be {expected_size} bytes")
    return decoded
