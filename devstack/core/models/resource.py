"""
Managed resources — the durable record of what devstack did to this machine.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ResourceKind(StrEnum):
    """Kinds of artifacts the registry tracks."""

    HOSTS_ENTRY = "hosts-entry"
    CERTIFICATE = "certificate"
    APACHE_VHOST = "apache-vhost"
    NGINX_VHOST = "nginx-vhost"
    DATABASE = "database"


class ManagedResource(BaseModel):
    """One (kind, key) entry in the resource registry.

    ``details`` carries non-secret facts useful for status and removal
    (file paths, engine name). Secrets never go here.
    """

    kind: ResourceKind
    key: str
    materialized: bool = True
    created_at: str = Field(default_factory=_now_iso)
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def ref(self) -> str:
        """Compact ``kind:key`` reference used in reports."""
        return f"{self.kind.value}:{self.key}"
