"""
Storage abstractions for secure records.

This module provides:
- RecordStorage: Abstract interface for record storage backends
- InMemoryRecordStorage: asyncio-safe in-memory implementation for tests and local runs

Records are immutable, so storages only save, fetch and list.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .envelope import SecureRecord
from .errors import StorageError


class RecordStorage(ABC):
    """
    Abstract storage interface for secure records.

    All methods are async to support both in-memory and database backends.
    """

    @abstractmethod
    async def save(self, record: SecureRecord) -> None:
        """Store a new record."""
        ...

    @abstractmethod
    async def get(self, record_id: str) -> Optional[SecureRecord]:
        """Get a record by id."""
        ...

    @abstractmethod
    async def list_records(self) -> List[SecureRecord]:
        """List all records, newest first."""
        ...

    async def close(self) -> None:
        """Release backend resources."""
        return None

    async def __aenter__(self) -> RecordStorage:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


class InMemoryRecordStorage(RecordStorage):
    """
    In-memory storage implementation.

    Uses asyncio.Lock for safe concurrent access.
    """

    def __init__(self) -> None:
        self._records: Dict[str, SecureRecord] = {}
        self._lock = asyncio.Lock()

    async def save(self, record: SecureRecord) -> None:
        async with self._lock:
            if record.id in self._records:
                raise StorageError(f"Record {record.id} already exists")
            self._records[record.id] = record

    async def get(self, record_id: str) -> Optional[SecureRecord]:
        async with self._lock:
            return self._records.get(record_id)

    async def list_records(self) -> List[SecureRecord]:
        async with self._lock:
            # createdAt is fixed-width ISO-8601, so string order is time order
            return sorted(
                self._records.values(), key=lambda r: r.created_at, reverse=True
            )

    def __len__(self) -> int:
        return len(self._records)
