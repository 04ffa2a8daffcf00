"""
Database credentials returned by the database provisioner.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, SecretStr


class DbEngine(StrEnum):
    """Supported database engines."""

    MYSQL = "mysql"     # MySQL / MariaDB
    SQLITE = "sqlite"
    MONGO = "mongo"


class DbCredential(BaseModel):
    """Connection parameters for a provisioned database.

    ``secret`` is a SecretStr so it never shows up in reprs or logs;
    the sidecar file is its only durable copy.
    """

    engine: DbEngine
    database: str
    username: str | None = None
    secret: SecretStr | None = None
    host: str = "localhost"
    path: Path | None = None          # sqlite file
    sidecar_path: Path | None = None
    created: bool = True              # False: already provisioned, nothing ran
