"""
Envelope encryption of JSON payloads into SecureRecords.

Each record carries two AES-256-GCM layers:
- Payload layer: JSON payload encrypted under a one-time DEK
- Key-wrap layer: the DEK encrypted under the master key

Neither layer uses associated data. All byte fields are stored as lowercase
hex so a record can be written to JSON or a database as-is.

Security Note:
    Never log the DEK, the master key, plaintext or ciphertext.
    Only record ids and owner tags are safe to log.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Union
from uuid import uuid4

from .crypto import (
    AES_256_KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    AesGcmCipher,
    EncryptedData,
    SecureKey,
    decode_hex_field,
    encode_hex,
)
from .errors import (
    DecryptionFailedError,
    MalformedFieldError,
    SerializationError,
    UnsupportedFormatError,
    ValidationError,
)
from .keys import CURRENT_MASTER_KEY_VERSION, MasterKeyProvider

logger = logging.getLogger("secure_records.envelope")

ALGORITHM_AES_256_GCM = "AES-256-GCM"

KeyProvider = Callable[[], SecureKey]

# attribute name -> (wire key, expected JSON type)
_WIRE_FIELDS: Dict[str, tuple] = {
    "id": ("id", str),
    "owner_tag": ("clientId", str),
    "created_at": ("createdAt", str),
    "payload_nonce": ("payload_nonce", str),
    "payload_ciphertext": ("payload_ct", str),
    "payload_tag": ("payload_tag", str),
    "dek_wrap_nonce": ("dek_wrap_nonce", str),
    "wrapped_dek": ("dek_wrapped", str),
    "dek_wrap_tag": ("dek_wrap_tag", str),
    "algorithm": ("alg", str),
    "master_key_version": ("mk_version", int),
}

_FORMAT_FIELDS = ("algorithm", "master_key_version")


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


@dataclass(frozen=True)
class SecureRecord:
    """
    One encrypted payload with its wrapped DEK.

    Byte fields are lowercase hex strings. The DEK only ever appears here
    in wrapped form.
    """

    id: str
    owner_tag: str
    created_at: str
    payload_nonce: str
    payload_ciphertext: str
    payload_tag: str
    dek_wrap_nonce: str
    wrapped_dek: str
    dek_wrap_tag: str
    algorithm: str = ALGORITHM_AES_256_GCM
    master_key_version: int = CURRENT_MASTER_KEY_VERSION

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the wire/storage JSON object."""
        return {wire: getattr(self, attr) for attr, (wire, _) in _WIRE_FIELDS.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SecureRecord:
        """
        Rebuild a record from its wire JSON object.

        Byte fields are not decoded here; decrypt_payload validates them.
        alg and mk_version are kept as given so the format check in
        decrypt_payload rejects unknown values with UnsupportedFormatError.

        Raises:
            MalformedFieldError: If a key is missing or has the wrong JSON type
        """
        values: Dict[str, Any] = {}
        for attr, (wire, expected) in _WIRE_FIELDS.items():
            if attr in _FORMAT_FIELDS:
                values[attr] = data.get(wire)
                continue
            if wire not in data:
                raise MalformedFieldError(wire, f"{wire} is required")
            value = data[wire]
            if not isinstance(value, expected):
                raise MalformedFieldError(
                    wire, f"{wire} must be of type {expected.__name__}"
                )
            values[attr] = value
        return cls(**values)


def _serialize_payload(payload: Any) -> bytes:
    try:
        text = json.dumps(
            payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False
        )
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Payload is not JSON-serializable: {e}") from e
    return text.encode("utf-8")


def _default_provider() -> KeyProvider:
    return MasterKeyProvider()


def encrypt_payload(
    owner_tag: str,
    payload: Any,
    *,
    key_provider: Optional[KeyProvider] = None,
) -> SecureRecord:
    """
    Encrypt a JSON payload into a new SecureRecord.

    Crypto flow:
    1. Resolve master key
    2. Generate fresh DEK (random 32 bytes, one-time)
    3. Encrypt JSON payload under DEK with a fresh nonce
    4. Wrap DEK under master key with a second fresh nonce
    5. Return record (caller persists it)

    Args:
        owner_tag: Caller correlation label, trimmed before storing
        payload: Any JSON-serializable value
        key_provider: Callable returning the master key (defaults to MASTER_KEY env)

    Returns:
        SecureRecord with hex-encoded nonces, ciphertexts and tags

    Raises:
        ValidationError: If owner_tag is blank
        ConfigurationError: If the master key is missing or malformed
        SerializationError: If the payload cannot be encoded as JSON
    """
    if not isinstance(owner_tag, str) or not owner_tag.strip():
        raise ValidationError("owner tag must be a non-empty string")

    provider = key_provider or _default_provider()
    master_key = provider()

    plaintext = _serialize_payload(payload)

    dek = SecureKey.generate()
    sealed_payload = AesGcmCipher.encrypt(dek, plaintext)
    sealed_dek = AesGcmCipher.encrypt(master_key, dek.as_bytes())
    del dek

    record = SecureRecord(
        id=str(uuid4()),
        owner_tag=owner_tag.strip(),
        created_at=_utc_timestamp(),
        payload_nonce=encode_hex(sealed_payload.nonce),
        payload_ciphertext=encode_hex(sealed_payload.ciphertext),
        payload_tag=encode_hex(sealed_payload.tag),
        dek_wrap_nonce=encode_hex(sealed_dek.nonce),
        wrapped_dek=encode_hex(sealed_dek.ciphertext),
        dek_wrap_tag=encode_hex(sealed_dek.tag),
    )
    logger.debug("Encrypted record %s for owner %s", record.id, record.owner_tag)
    return record


def decrypt_payload(
    record: Union[SecureRecord, Mapping[str, Any]],
    *,
    key_provider: Optional[KeyProvider] = None,
) -> Any:
    """
    Decrypt a SecureRecord back to its JSON payload.

    Validation order:
    1. Algorithm and master key version
    2. Master key
    3. Key-wrap fields, then payload fields (hex, lengths)
    4. Unwrap the DEK, then decrypt the payload
    5. Parse plaintext as UTF-8 JSON

    Args:
        record: SecureRecord or its wire dict
        key_provider: Callable returning the master key (defaults to MASTER_KEY env)

    Returns:
        The decrypted JSON value

    Raises:
        UnsupportedFormatError: Unknown algorithm or master key version
        ConfigurationError: Master key missing or malformed
        MalformedFieldError: A byte field is not hex or has the wrong length
        DecryptionFailedError: Any authentication failure or unparseable plaintext
    """
    if not isinstance(record, SecureRecord):
        record = SecureRecord.from_dict(record)

    if record.algorithm != ALGORITHM_AES_256_GCM:
        raise UnsupportedFormatError("Unsupported algorithm")
    version = record.master_key_version
    # bool is an int subclass; a JSON true is not a version number
    if (
        not isinstance(version, int)
        or isinstance(version, bool)
        or version != CURRENT_MASTER_KEY_VERSION
    ):
        raise UnsupportedFormatError("Unsupported master key version")

    provider = key_provider or _default_provider()
    master_key = provider()

    # Every byte field is decoded before the first AEAD call
    wrapped = EncryptedData(
        nonce=decode_hex_field(record.dek_wrap_nonce, "dek_wrap_nonce", NONCE_SIZE),
        tag=decode_hex_field(record.dek_wrap_tag, "dek_wrap_tag", TAG_SIZE),
        ciphertext=decode_hex_field(record.wrapped_dek, "dek_wrapped", AES_256_KEY_SIZE),
    )
    sealed = EncryptedData(
        nonce=decode_hex_field(record.payload_nonce, "payload_nonce", NONCE_SIZE),
        tag=decode_hex_field(record.payload_tag, "payload_tag", TAG_SIZE),
        ciphertext=decode_hex_field(record.payload_ciphertext, "payload_ct"),
    )

    try:
        dek = SecureKey(AesGcmCipher.decrypt(master_key, wrapped))
        plaintext = AesGcmCipher.decrypt(dek, sealed)
        del dek
    except DecryptionFailedError:
        # Same message for both layers
        logger.warning("Decryption failed for record %s", record.id)
        raise

    try:
        return json.loads(plaintext.decode("utf-8"))
    except ValueError:
        raise DecryptionFailedError() from None
