"""
Tests for settings loading.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from secure_records import ConfigurationError, Settings

from .conftest import MASTER_KEY


def test_defaults() -> None:
    settings = Settings.from_env(environ={})

    assert settings.master_key_hex is None
    assert settings.database_url is None
    assert settings.host == "0.0.0.0"
    assert settings.port == 3001
    assert settings.log_level == "INFO"


def test_reads_values() -> None:
    settings = Settings.from_env(
        environ={
            "MASTER_KEY": MASTER_KEY,
            "DATABASE_URL": "postgresql://localhost/records",
            "HOST": "127.0.0.1",
            "PORT": "8080",
            "LOG_LEVEL": "debug",
        }
    )

    assert settings.master_key_hex == MASTER_KEY
    assert settings.database_url == "postgresql://localhost/records"
    assert settings.host == "127.0.0.1"
    assert settings.port == 8080
    assert settings.log_level == "DEBUG"


def test_invalid_port() -> None:
    with pytest.raises(ConfigurationError, match="PORT"):
        Settings.from_env(environ={"PORT": "eighty"})


def test_repr_hides_secrets() -> None:
    settings = Settings(master_key_hex=MASTER_KEY, database_url="postgresql://u:pw@h/db")

    assert MASTER_KEY not in repr(settings)
    assert "pw" not in repr(settings)


def test_key_provider() -> None:
    provider = Settings(master_key_hex=MASTER_KEY).key_provider()
    assert provider().as_bytes() == bytes.fromhex(MASTER_KEY)


def test_key_provider_without_key_fails_at_use() -> None:
    provider = Settings().key_provider()

    with pytest.raises(ConfigurationError):
        provider()


def test_env_file_does_not_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # Registered first so teardown removes whatever load_dotenv sets
    monkeypatch.setenv("HOST", "placeholder")
    monkeypatch.delenv("HOST")
    env_file = tmp_path / ".env"
    env_file.write_text(f"MASTER_KEY={'ef' * 32}\nHOST=10.0.0.5\n")

    settings = Settings.from_env(env_file=env_file)

    assert settings.host == "10.0.0.5"
    assert settings.master_key_hex == MASTER_KEY
