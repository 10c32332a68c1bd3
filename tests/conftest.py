"""
Pytest configuration and fixtures for secure records tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import AsyncGenerator

import pytest
from dotenv import load_dotenv

from secure_records import (
    InMemoryRecordStorage,
    MasterKeyProvider,
    PostgresRecordStorage,
)

MASTER_KEY = "ab" * 32  # 32 bytes hex
OTHER_MASTER_KEY = "cd" * 32


@pytest.fixture(autouse=True)
def master_key(monkeypatch: pytest.MonkeyPatch) -> str:
    """Set MASTER_KEY for every test; tests that need it absent delete it."""
    monkeypatch.setenv("MASTER_KEY", MASTER_KEY)
    return MASTER_KEY


@pytest.fixture
def other_key_provider() -> MasterKeyProvider:
    """Key provider for a master key different from MASTER_KEY."""
    return MasterKeyProvider({"MASTER_KEY": OTHER_MASTER_KEY})


@pytest.fixture
def memory_storage() -> InMemoryRecordStorage:
    """Create an in-memory storage instance for testing."""
    return InMemoryRecordStorage()


@pytest.fixture
async def postgres_storage() -> AsyncGenerator[PostgresRecordStorage, None]:
    """Create a PostgreSQL storage instance for testing."""
    # Load environment from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(env_path)

    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set, skipping PostgreSQL tests")

    storage = await PostgresRecordStorage.connect(database_url)
    await storage.pool.execute("TRUNCATE TABLE secure_records")

    yield storage

    await storage.close()
