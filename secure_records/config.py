"""
Application settings loaded from the environment.

A .env file, when present, seeds variables that are not already set:

    MASTER_KEY=<64 hex chars>        required by the envelope cipher
    DATABASE_URL=postgresql://...    optional, selects PostgreSQL storage
    HOST=0.0.0.0
    PORT=3001
    LOG_LEVEL=INFO

Security Note:
    Settings.__repr__ never includes the master key.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Union

from dotenv import load_dotenv

from .errors import ConfigurationError
from .keys import MASTER_KEY_ENV, MasterKeyProvider

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3001
DEFAULT_LOG_LEVEL = "INFO"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass(frozen=True)
class Settings:
    """Process settings. Only the master key is required, and only at use time."""

    master_key_hex: Optional[str] = field(default=None, repr=False)
    database_url: Optional[str] = field(default=None, repr=False)
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Union[str, Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> Settings:
        """
        Build settings from environment variables.

        Args:
            env_file: Optional .env path; loaded without overriding real variables
            environ: Mapping to read from (defaults to os.environ)

        Raises:
            ConfigurationError: If PORT is not an integer
        """
        if environ is None:
            load_dotenv(env_file, override=False)
            environ = os.environ

        port_raw = environ.get("PORT") or str(DEFAULT_PORT)
        try:
            port = int(port_raw)
        except ValueError:
            raise ConfigurationError(f"PORT must be an integer, got {port_raw!r}")

        return cls(
            master_key_hex=environ.get(MASTER_KEY_ENV) or None,
            database_url=environ.get("DATABASE_URL") or None,
            host=environ.get("HOST") or DEFAULT_HOST,
            port=port,
            log_level=(environ.get("LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
        )

    def key_provider(self) -> MasterKeyProvider:
        """Key provider reading the master key captured in these settings."""
        environ = {MASTER_KEY_ENV: self.master_key_hex} if self.master_key_hex else {}
        return MasterKeyProvider(environ)


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Configure root logging with the package's format."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
