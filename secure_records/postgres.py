"""
PostgreSQL storage backend for secure records.

Records are stored one row per record with hex byte fields kept as TEXT,
exactly as they appear on the wire. The connection pool is owned by the
storage instance: open it with connect() (or ``async with``) and release it
with close().
"""

from __future__ import annotations

import logging
from typing import List, Optional

import asyncpg

from .envelope import SecureRecord
from .errors import StorageError
from .storage import RecordStorage

logger = logging.getLogger("secure_records.postgres")

SCHEMA = """
    CREATE TABLE IF NOT EXISTS secure_records (
        id              TEXT PRIMARY KEY,
        client_id       TEXT NOT NULL,
        created_at      TEXT NOT NULL,
        payload_nonce   TEXT NOT NULL,
        payload_ct      TEXT NOT NULL,
        payload_tag     TEXT NOT NULL,
        dek_wrap_nonce  TEXT NOT NULL,
        dek_wrapped     TEXT NOT NULL,
        dek_wrap_tag    TEXT NOT NULL,
        alg             TEXT NOT NULL,
        mk_version      INTEGER NOT NULL
    );
    CREATE INDEX IF NOT EXISTS secure_records_created_at_idx
        ON secure_records (created_at DESC);
"""

_COLUMNS = """
    id, client_id, created_at, payload_nonce, payload_ct, payload_tag,
    dek_wrap_nonce, dek_wrapped, dek_wrap_tag, alg, mk_version
"""


class PostgresRecordStorage(RecordStorage):
    """
    PostgreSQL storage backend for secure records.

    Runs on top of an asyncpg pool.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        """
        Initialize PostgreSQL storage.

        Args:
            pool: asyncpg connection pool, owned by this storage from now on
        """
        self._pool = pool

    @classmethod
    async def connect(
        cls, database_url: str, *, create_schema: bool = True
    ) -> PostgresRecordStorage:
        """
        Open a connection pool and return a storage that owns it.

        Args:
            database_url: PostgreSQL DSN
            create_schema: Create the records table if it does not exist

        Raises:
            StorageError: If the pool cannot be created
        """
        try:
            pool = await asyncpg.create_pool(database_url)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.error("Failed to connect to PostgreSQL: %s", e)
            raise StorageError("Database connection failed") from e
        if pool is None:
            raise StorageError("Database connection failed")

        storage = cls(pool)
        if create_schema:
            try:
                await storage.ensure_schema()
            except StorageError:
                await pool.close()
                raise
        return storage

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the connection pool."""
        return self._pool

    async def ensure_schema(self) -> None:
        """Create the records table and index if missing."""
        try:
            await self._pool.execute(SCHEMA)
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to create schema: {e}") from e

    async def save(self, record: SecureRecord) -> None:
        """
        Insert a record.

        Raises:
            StorageError: On duplicate id or database failure
        """
        query = f"""
            INSERT INTO secure_records ({_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
        """
        try:
            await self._pool.execute(
                query,
                record.id,
                record.owner_tag,
                record.created_at,
                record.payload_nonce,
                record.payload_ciphertext,
                record.payload_tag,
                record.dek_wrap_nonce,
                record.wrapped_dek,
                record.dek_wrap_tag,
                record.algorithm,
                record.master_key_version,
            )
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to store record: {e}") from e

    async def get(self, record_id: str) -> Optional[SecureRecord]:
        """Get a record by id, or None."""
        query = f"SELECT {_COLUMNS} FROM secure_records WHERE id = $1"
        try:
            row = await self._pool.fetchrow(query, record_id)
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to get record: {e}") from e
        if row is None:
            return None
        return self._row_to_record(row)

    async def list_records(self) -> List[SecureRecord]:
        """List all records, newest first."""
        query = f"SELECT {_COLUMNS} FROM secure_records ORDER BY created_at DESC"
        try:
            rows = await self._pool.fetch(query)
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to list records: {e}") from e
        return [self._row_to_record(row) for row in rows]

    async def close(self) -> None:
        """Close the connection pool."""
        await self._pool.close()

    @staticmethod
    def _row_to_record(row: asyncpg.Record) -> SecureRecord:
        """Convert database row to SecureRecord."""
        return SecureRecord(
            id=row["id"],
            owner_tag=row["client_id"],
            created_at=row["created_at"],
            payload_nonce=row["payload_nonce"],
            payload_ciphertext=row["payload_ct"],
            payload_tag=row["payload_tag"],
            dek_wrap_nonce=row["dek_wrap_nonce"],
            wrapped_dek=row["dek_wrapped"],
            dek_wrap_tag=row["dek_wrap_tag"],
            algorithm=row["alg"],
            master_key_version=row["mk_version"],
        )
