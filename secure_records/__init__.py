"""
Secure Records

Envelope encryption of JSON payloads: every record gets a one-time data
encryption key (DEK), and the DEK is wrapped under a long-lived master key.

Quick Start
-----------
```python
import os
from secure_records import encrypt_payload, decrypt_payload, generate_master_key

os.environ["MASTER_KEY"] = generate_master_key()

record = encrypt_payload("party-1", {"hello": "world", "amount": 42})
stored = record.to_dict()  # JSON-safe, byte fields hex-encoded

assert decrypt_payload(stored) == {"hello": "world", "amount": 42}
```

Key Features
------------
- **AES-256-GCM**: Authenticated encryption for both payload and key wrap
- **One-time DEKs**: A fresh 256-bit key and fresh nonces for every record
- **Fail Closed**: Malformed fields, unknown formats and failed tags all raise
- **No Oracle**: Every authentication failure surfaces as the same error
- **Pluggable Storage**: In-memory or PostgreSQL (asyncpg) record storage
- **HTTP API**: FastAPI app exposing encrypt / fetch / decrypt

Modules
-------
- `crypto`: AES-256-GCM primitives and hex field codec
- `keys`: Master key resolution
- `envelope`: SecureRecord and the encrypt/decrypt scheme
- `errors`: Error types and exception classes
- `storage`: Storage interface and in-memory backend
- `postgres`: PostgreSQL storage backend
- `service`: Request validation and encrypt-and-store flow
- `api`: FastAPI application
- `config`: Settings and logging setup
- `cli`: `secure-records` command line
"""

__version__ = "0.1.0"

# =============================================================================
# Crypto Exports
# =============================================================================

from .crypto import (
    AES_256_KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    AesGcmCipher,
    EncryptedData,
    SecureKey,
    generate_random_bytes,
)

# =============================================================================
# Error Exports
# =============================================================================

from .errors import (
    ConfigurationError,
    DecryptionFailedError,
    MalformedFieldError,
    RecordNotFoundError,
    SecureRecordError,
    SerializationError,
    StorageError,
    UnsupportedFormatError,
    ValidationError,
)

# =============================================================================
# Envelope Exports (Primary API)
# =============================================================================

from .keys import (
    MASTER_KEY_ENV,
    MasterKeyProvider,
    generate_master_key,
    resolve_master_key,
)
from .envelope import (
    ALGORITHM_AES_256_GCM,
    SecureRecord,
    decrypt_payload,
    encrypt_payload,
)

# =============================================================================
# Storage & Service Exports
# =============================================================================

from .storage import InMemoryRecordStorage, RecordStorage
from .postgres import PostgresRecordStorage
from .service import SecureRecordService, validate_encrypt_request
from .config import Settings, configure_logging

# =============================================================================
# Public API
# =============================================================================

__all__ = [
    # Version
    "__version__",
    # Crypto
    "AES_256_KEY_SIZE",
    "NONCE_SIZE",
    "TAG_SIZE",
    "AesGcmCipher",
    "EncryptedData",
    "SecureKey",
    "generate_random_bytes",
    # Errors
    "SecureRecordError",
    "ConfigurationError",
    "MalformedFieldError",
    "UnsupportedFormatError",
    "DecryptionFailedError",
    "SerializationError",
    "ValidationError",
    "StorageError",
    "RecordNotFoundError",
    # Envelope (Primary API)
    "MASTER_KEY_ENV",
    "MasterKeyProvider",
    "generate_master_key",
    "resolve_master_key",
    "ALGORITHM_AES_256_GCM",
    "SecureRecord",
    "encrypt_payload",
    "decrypt_payload",
    # Storage & Service
    "RecordStorage",
    "InMemoryRecordStorage",
    "PostgresRecordStorage",
    "SecureRecordService",
    "validate_encrypt_request",
    "Settings",
    "configure_logging",
]
