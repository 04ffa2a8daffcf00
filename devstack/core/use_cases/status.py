"""
Status use case — what the registry says, and whether it is still true.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from devstack.core.config.loader import Settings
from devstack.core.models.certificate import CertificateBundle
from devstack.core.models.resource import ManagedResource, ResourceKind
from devstack.core.persistence.registry_store import ResourceRegistry
from devstack.core.services.capabilities import detect_web_servers
from devstack.core.services.hosts import parse_hosts

logger = logging.getLogger(__name__)


@dataclass
class ResourceStatus:
    """A registry entry plus an on-disk presence check."""

    resource: ManagedResource
    present: bool | None        # None: cannot be checked from here

    def to_dict(self) -> dict:
        return {
            "ref": self.resource.ref,
            "kind": self.resource.kind.value,
            "key": self.resource.key,
            "created_at": self.resource.created_at,
            "present": self.present,
            "details": dict(self.resource.details),
        }


@dataclass
class StatusResult:
    """Result of a status check."""

    registry_path: Path | None = None
    web_servers: list[str] = field(default_factory=list)
    resources: list[ResourceStatus] = field(default_factory=list)
    error: str | None = None

    @property
    def drifted(self) -> list[ResourceStatus]:
        return [r for r in self.resources if r.present is False]

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "registry": str(self.registry_path) if self.registry_path else None,
            "web_servers": list(self.web_servers),
            "resources": [r.to_dict() for r in self.resources],
            "drifted": len(self.drifted),
        }


def get_status(settings: Settings, which: Callable[[str], str | None] = shutil.which) -> StatusResult:
    """List managed resources and check each one still exists."""
    result = StatusResult(registry_path=settings.registry_file)
    try:
        registry = ResourceRegistry(settings.registry_file, persist=False)
    except (OSError, ValueError) as e:
        result.error = f"Cannot read resource registry: {e}"
        return result

    result.web_servers = [e.value for e in detect_web_servers(settings, which=which)]

    hosts: dict[str, list[str]] = {}
    if settings.hosts_file.is_file():
        hosts = parse_hosts(settings.hosts_file.read_text(encoding="utf-8"))

    for resource in registry.all():
        result.resources.append(
            ResourceStatus(resource=resource, present=_present(resource, settings, hosts))
        )
    return result


def _present(resource: ManagedResource, settings: Settings, hosts: dict[str, list[str]]) -> bool | None:
    details = resource.details
    if resource.kind == ResourceKind.HOSTS_ENTRY:
        return resource.key in hosts
    if resource.kind == ResourceKind.CERTIFICATE:
        if "cert_path" in details:
            return Path(details["cert_path"]).is_file() and Path(details["key_path"]).is_file()
        return CertificateBundle.for_domain(settings.ssl_dir, resource.key).on_disk()
    if resource.kind in (ResourceKind.APACHE_VHOST, ResourceKind.NGINX_VHOST):
        return Path(details["path"]).is_file() if "path" in details else None
    if resource.kind == ResourceKind.DATABASE:
        marker = details.get("sidecar") or details.get("path")
        return Path(marker).exists() if marker else None
    return None
