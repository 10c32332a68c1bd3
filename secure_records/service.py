"""
Secure record service.

Validates caller input, runs the envelope cipher and persists records
through a RecordStorage backend. This is the layer the HTTP API calls.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from .envelope import KeyProvider, SecureRecord, decrypt_payload, encrypt_payload
from .errors import RecordNotFoundError, ValidationError
from .storage import RecordStorage

logger = logging.getLogger("secure_records.service")


def validate_encrypt_request(body: Any) -> Tuple[str, dict]:
    """
    Check an encrypt request body and return (party_id, payload).

    Raises:
        ValidationError: If the body is not {"partyId": str, "payload": object}
    """
    if not isinstance(body, dict):
        raise ValidationError("Body must be an object")

    party_id = body.get("partyId")
    if not isinstance(party_id, str) or not party_id.strip():
        raise ValidationError("partyId must be a non-empty string")

    payload = body.get("payload")
    if not isinstance(payload, dict):
        raise ValidationError("payload must be an object")

    return party_id.strip(), payload


class SecureRecordService:
    """
    Encrypt-and-store, fetch and decrypt operations over a storage backend.
    """

    def __init__(
        self,
        storage: RecordStorage,
        key_provider: Optional[KeyProvider] = None,
    ) -> None:
        """
        Initialize service.

        Args:
            storage: Record storage backend
            key_provider: Master key source (defaults to MASTER_KEY env)
        """
        self._storage = storage
        self._key_provider = key_provider

    @property
    def storage(self) -> RecordStorage:
        return self._storage

    async def encrypt(self, body: Any) -> SecureRecord:
        """
        Validate a request body, encrypt its payload and store the record.

        Returns:
            The stored SecureRecord
        """
        party_id, payload = validate_encrypt_request(body)
        record = encrypt_payload(party_id, payload, key_provider=self._key_provider)
        await self._storage.save(record)
        logger.info("Stored record %s for party %s", record.id, record.owner_tag)
        return record

    async def get_record(self, record_id: str) -> SecureRecord:
        """
        Fetch a stored record.

        Raises:
            RecordNotFoundError: If no record has this id
        """
        record = await self._storage.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    async def decrypt(self, record_id: str) -> Any:
        """Fetch a stored record and decrypt its payload."""
        record = await self.get_record(record_id)
        return decrypt_payload(record, key_provider=self._key_provider)

    async def list_records(self) -> List[SecureRecord]:
        """List stored records, newest first."""
        return await self._storage.list_records()
