"""
Host resolution writer — loopback entries in the static hosts table.

The hosts table is a system file, so every change is preceded by a
timestamped backup copy. If the backup cannot be taken, nothing is
written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

from devstack.core.engine.executor import ActionExecutor
from devstack.core.errors import (
    BackupRequiredError,
    ExternalToolError,
    ResourceConflictError,
    ValidationError,
)
from devstack.core.models.project import is_valid_domain

logger = logging.getLogger(__name__)

LOOPBACK = "127.0.0.1"
_LOOPBACK_ADDRESSES = {"127.0.0.1", "127.0.1.1", "::1"}


@dataclass
class HostsOutcome:
    """Result of ensure_mapping / remove_mapping."""

    domain: str
    status: Literal["created", "exists", "removed", "absent"]
    backup_path: Path | None = None
    simulated: bool = False


def parse_hosts(content: str) -> dict[str, list[str]]:
    """Map every hostname in a hosts table to the addresses it is listed with."""
    mapping: dict[str, list[str]] = {}
    for raw in content.splitlines():
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        address, *names = line.split()
        for name in names:
            mapping.setdefault(name.lower(), []).append(address)
    return mapping


class HostsWriter:
    """Create-if-absent loopback mappings.

    Args:
        executor: Action executor.
        hosts_file: The static resolution table (``/etc/hosts``).
        backup_dir: Where timestamped copies are kept.
    """

    def __init__(self, executor: ActionExecutor, hosts_file: Path, backup_dir: Path):
        self._executor = executor
        self._hosts_file = hosts_file
        self._backup_dir = backup_dir

    def read(self) -> str:
        receipt = self._executor.fs(
            "hosts.read", f"Read {self._hosts_file}", "read", self._hosts_file
        )
        if receipt.failed:
            if not self._hosts_file.exists():
                return ""
            self._executor.require(receipt, tool="filesystem")
        return receipt.output

    def addresses_for(self, domain: str) -> list[str]:
        return parse_hosts(self.read()).get(domain.lower(), [])

    def ensure_mapping(self, domain: str) -> HostsOutcome:
        """Append ``127.0.0.1    <domain>`` unless the domain already resolves to loopback.

        Raises:
            ResourceConflictError: The domain is mapped only to other addresses.
            ValidationError: ``domain`` is not a valid hostname.
            BackupRequiredError: The pre-write backup failed.
            ExternalToolError: The append failed.
        """
        if not is_valid_domain(domain):
            raise ValidationError(f"Invalid domain '{domain}'", resource_key=domain)
        content = self.read()
        addresses = parse_hosts(content).get(domain.lower(), [])

        if any(a in _LOOPBACK_ADDRESSES for a in addresses):
            logger.info("Hosts entry for %s already exists", domain)
            return HostsOutcome(domain=domain, status="exists")
        if addresses:
            raise ResourceConflictError(
                f"{domain} is already mapped to {', '.join(addresses)} in {self._hosts_file}",
                resource_key=domain,
            )

        backup = self.backup()
        prefix = "" if not content or content.endswith("\n") else "\n"
        receipt = self._executor.fs(
            f"hosts.append.{domain}",
            f"Add {LOOPBACK} {domain} to {self._hosts_file}",
            "append",
            self._hosts_file,
            content=f"{prefix}{LOOPBACK}    {domain}\n",
        )
        self._executor.require(receipt, tool="filesystem", resource_key=domain)
        return HostsOutcome(
            domain=domain, status="created", backup_path=backup, simulated=receipt.simulated
        )

    def remove_mapping(self, domain: str) -> HostsOutcome:
        """Delete every line containing ``domain`` verbatim, after a backup."""
        content = self.read()
        if domain not in content:
            return HostsOutcome(domain=domain, status="absent")

        backup = self.backup()
        receipt = self._executor.fs(
            f"hosts.remove.{domain}",
            f"Remove {domain} from {self._hosts_file}",
            "remove_lines",
            self._hosts_file,
            match=domain,
        )
        self._executor.require(receipt, tool="filesystem", resource_key=domain)
        return HostsOutcome(
            domain=domain, status="removed", backup_path=backup, simulated=receipt.simulated
        )

    def backup(self) -> Path:
        """Copy the hosts table to ``backup_dir``.

        Raises:
            BackupRequiredError: If the copy fails for any reason.
        """
        stamp = datetime.now(UTC).strftime("%Y%m%d-%H%M%S-%f")
        target = self._backup_dir / f"{self._hosts_file.name}.{stamp}.bak"
        receipt = self._executor.fs(
            "hosts.backup",
            f"Back up {self._hosts_file} to {target}",
            "copy",
            target,
            source=str(self._hosts_file),
        )
        try:
            self._executor.require(receipt, tool="filesystem")
        except ExternalToolError as e:
            raise BackupRequiredError(
                f"Cannot back up {self._hosts_file}: {e}", resource_key=str(self._hosts_file)
            ) from e
        return target
