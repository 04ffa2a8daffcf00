"""
Remove use case — tear down what ``create`` wired up for a domain.

Vhost files (every engine) and hosts entries are removed and forgotten.
Certificates are kept unless ``purge_cert`` is set; databases and project
files are never touched.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass, field
from pathlib import Path

from devstack.core.errors import DevstackError, ValidationError
from devstack.core.models.project import is_valid_domain
from devstack.core.models.resource import ResourceKind
from devstack.core.models.state import EXIT_FAILED_CLEAN, EXIT_FAILED_PARTIAL, EXIT_OK
from devstack.core.persistence.lock import DomainLock
from devstack.core.use_cases.wiring import Toolkit

logger = logging.getLogger(__name__)


@dataclass
class RemoveResult:
    """Result of removing a domain."""

    domain: str
    dry_run: bool = False
    aborted: bool = False
    vhosts_removed: list[Path] = field(default_factory=list)
    hosts_removed: bool = False
    certificates_removed: list[Path] = field(default_factory=list)
    forgotten: list[str] = field(default_factory=list)
    error: str | None = None
    mutated: bool = False

    @property
    def exit_code(self) -> int:
        if self.error is None:
            return EXIT_OK
        return EXIT_FAILED_PARTIAL if self.mutated else EXIT_FAILED_CLEAN

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "dry_run": self.dry_run,
            "aborted": self.aborted,
            "vhosts_removed": [str(p) for p in self.vhosts_removed],
            "hosts_removed": self.hosts_removed,
            "certificates_removed": [str(p) for p in self.certificates_removed],
            "forgotten": list(self.forgotten),
            "error": self.error,
            "exit_code": self.exit_code,
        }


def remove_domain(toolkit: Toolkit, domain: str, purge_cert: bool = False) -> RemoveResult:
    """Remove vhosts, hosts entry and (optionally) certificate for ``domain``."""
    domain = domain.strip().lower()
    executor = toolkit.executor
    result = RemoveResult(domain=domain, dry_run=executor.dry_run)
    mutations_before = executor.mutation_count

    try:
        if not is_valid_domain(domain):
            raise ValidationError(f"Invalid domain '{domain}'")

        if not executor.confirm(f"Remove vhosts and hosts entry for {domain}?"):
            result.aborted = True
            return result

        lock = contextlib.nullcontext() if executor.dry_run else DomainLock(toolkit.settings.lock_dir, domain)
        with lock:
            result.vhosts_removed = toolkit.vhosts.uninstall(domain)
            _forget(toolkit, result, ResourceKind.APACHE_VHOST, domain)
            _forget(toolkit, result, ResourceKind.NGINX_VHOST, domain)

            outcome = toolkit.hosts.remove_mapping(domain)
            result.hosts_removed = outcome.status == "removed"
            _forget(toolkit, result, ResourceKind.HOSTS_ENTRY, domain)

            if purge_cert:
                result.certificates_removed = toolkit.certificates.remove(domain)
                _forget(toolkit, result, ResourceKind.CERTIFICATE, domain)

    except DevstackError as e:
        logger.error("Removing %s failed: %s", domain, e)
        result.error = str(e)
    finally:
        result.mutated = executor.mutation_count > mutations_before

    return result


def _forget(toolkit: Toolkit, result: RemoveResult, kind: ResourceKind, domain: str) -> None:
    if not toolkit.registry.exists(kind, domain):
        return
    if not toolkit.executor.dry_run:
        toolkit.registry.forget(kind, domain)
    result.forgotten.append(f"{kind.value}:{domain}")
