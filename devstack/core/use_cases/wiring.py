"""
Component wiring — build every service from Settings + ExecutionMode.

The CLI (and tests) call :func:`build_toolkit` once per invocation;
everything shares one ActionExecutor, so the execution mode is fixed
for the whole run.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from devstack.adapters.registry import AdapterRegistry
from devstack.core.config.loader import Settings
from devstack.core.engine.executor import ActionExecutor, build_default_registry
from devstack.core.errors import ConfigError
from devstack.core.models.mode import ExecutionMode
from devstack.core.models.vhost import WebServer
from devstack.core.orchestrator.provisioner import ProvisioningOrchestrator
from devstack.core.persistence.audit import AuditWriter
from devstack.core.persistence.registry_store import ResourceRegistry
from devstack.core.services.capabilities import (
    AptPackageManager,
    SystemdServiceManager,
    build_web_server_controls,
    detect_web_servers,
)
from devstack.core.services.certificates import CertificateProvisioner
from devstack.core.services.databases import DatabaseProvisioner
from devstack.core.services.hosts import HostsWriter
from devstack.core.services.php import PhpVersions
from devstack.core.services.ports import port_in_use
from devstack.core.services.repository import RepositoryBootstrapper
from devstack.core.services.scaffolders import ScaffoldDispatcher
from devstack.core.services.sftp import SftpAccounts
from devstack.core.services.vhosts import VhostWriter

logger = logging.getLogger(__name__)


@dataclass
class Toolkit:
    """All components for one invocation."""

    settings: Settings
    executor: ActionExecutor
    registry: ResourceRegistry
    scaffolds: ScaffoldDispatcher
    hosts: HostsWriter
    certificates: CertificateProvisioner
    vhosts: VhostWriter
    databases: DatabaseProvisioner
    repository: RepositoryBootstrapper
    sftp: SftpAccounts
    php: PhpVersions
    probe: Callable[[int], bool] = port_in_use

    @property
    def mode(self) -> ExecutionMode:
        return self.executor.mode

    def orchestrator(self) -> ProvisioningOrchestrator:
        return ProvisioningOrchestrator(
            executor=self.executor,
            settings=self.settings,
            registry=self.registry,
            scaffolds=self.scaffolds,
            hosts=self.hosts,
            certificates=self.certificates,
            vhosts=self.vhosts,
            databases=self.databases,
            probe=self.probe,
        )


def build_toolkit(
    settings: Settings,
    mode: ExecutionMode,
    adapters: AdapterRegistry | None = None,
    engines: list[WebServer] | None = None,
    which: Callable[[str], str | None] = shutil.which,
    probe: Callable[[int], bool] = port_in_use,
    prompt: Callable[[str], str] = input,
    environ: Mapping[str, str] | None = None,
) -> Toolkit:
    """Wire up components.

    Args:
        settings: Loaded settings.
        mode: Run-wide dry-run / assume-yes policy.
        adapters: Adapter registry (default: real shell + filesystem).
        engines: Web servers to target (default: configured or detected).
        which: Binary lookup, injectable for tests.
        probe: Port-in-use probe, injectable for tests.
        prompt: Operator input for confirmations.
        environ: Environment for the GitHub token lookup.

    Raises:
        ConfigError: The resource registry file is corrupt.
    """
    if adapters is None:
        adapters = build_default_registry(timeout=settings.command_timeout)

    executor = ActionExecutor(
        adapters,
        mode=mode,
        audit=AuditWriter(settings.log_file),
        timeout=settings.command_timeout,
        prompt=prompt,
    )

    try:
        registry = ResourceRegistry(settings.registry_file, persist=not mode.dry_run)
    except (OSError, ValueError) as e:
        raise ConfigError(str(e)) from e

    if engines is None:
        engines = detect_web_servers(settings, which=which)
    logger.debug("Web servers: %s", ", ".join(e.value for e in engines) or "none")

    services = SystemdServiceManager(executor)
    packages = AptPackageManager(executor, which=which)
    controls = build_web_server_controls(executor, settings, services, engines, which=which)

    return Toolkit(
        settings=settings,
        executor=executor,
        registry=registry,
        scaffolds=ScaffoldDispatcher(
            executor,
            packages=packages,
            php_fpm_socket=settings.php_fpm_socket,
            which=which,
        ),
        hosts=HostsWriter(executor, settings.hosts_file, settings.backup_dir),
        certificates=CertificateProvisioner(executor, settings.ssl_dir, which=which),
        vhosts=VhostWriter(executor, controls),
        databases=DatabaseProvisioner(
            executor,
            services=services,
            mongo_clients=settings.mongo_clients,
            which=which,
            registry=registry,
        ),
        repository=RepositoryBootstrapper(
            executor, environ=os.environ if environ is None else environ, which=which
        ),
        sftp=SftpAccounts(executor, packages, services, group=settings.sftp_group, which=which),
        php=PhpVersions(executor, packages, bin_dir=settings.php_bin_dir, which=which),
        probe=probe,
    )
