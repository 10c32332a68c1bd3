"""
Master key resolution.

The master key is read from the MASTER_KEY environment variable as 64 hex
characters (32 bytes). It is never defaulted and never logged.
"""

from __future__ import annotations

import logging
import os
import secrets
from typing import Mapping, Optional

from .crypto import AES_256_KEY_SIZE, SecureKey, is_hex
from .errors import ConfigurationError, UnsupportedFormatError

logger = logging.getLogger("secure_records.keys")

MASTER_KEY_ENV = "MASTER_KEY"
CURRENT_MASTER_KEY_VERSION = 1


def resolve_master_key(environ: Optional[Mapping[str, str]] = None) -> SecureKey:
    """
    Resolve and validate the master key from configuration.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        The decoded 32-byte master key

    Raises:
        ConfigurationError: If the key is absent, not hex, or not 64 characters
    """
    env = os.environ if environ is None else environ
    key_hex = env.get(MASTER_KEY_ENV)
    if not key_hex:
        raise ConfigurationError(f"{MASTER_KEY_ENV} environment variable is required")

    if not is_hex(key_hex) or len(key_hex) != AES_256_KEY_SIZE * 2:
        raise ConfigurationError(
            f"{MASTER_KEY_ENV} must be {AES_256_KEY_SIZE} bytes of hex "
            f"({AES_256_KEY_SIZE * 2} hex characters)"
        )

    return SecureKey(bytes.fromhex(key_hex))


def generate_master_key() -> str:
    """Generate a new master key as 64 lowercase hex characters."""
    return secrets.token_hex(AES_256_KEY_SIZE)


class MasterKeyProvider:
    """
    Resolves master key material by version.

    Only version 1 exists. Records wrapped under any other version are
    rejected before key material is read.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self._environ = environ

    def resolve(self, version: int = CURRENT_MASTER_KEY_VERSION) -> SecureKey:
        """
        Resolve the master key for a given version.

        Raises:
            UnsupportedFormatError: If the version is unknown
            ConfigurationError: If the key is missing or malformed
        """
        if version != CURRENT_MASTER_KEY_VERSION:
            logger.warning("Rejected unknown master key version %r", version)
            raise UnsupportedFormatError("Unsupported master key version")
        return resolve_master_key(self._environ)

    def __call__(self) -> SecureKey:
        return self.resolve()
