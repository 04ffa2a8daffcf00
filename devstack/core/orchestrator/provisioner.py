"""
Provisioning orchestrator — the state machine behind ``devstack create``.

    requested → scaffolding → network-wiring → [tls] → vhost-wiring
              → [database-wiring] → complete

Any step may end the run in ``failed``. Nothing is rolled back: the
result lists what was committed before the failure, and every step is
idempotent, so the operator fixes the cause and re-runs.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable, Iterator
from typing import Any, Literal

from devstack.core.config.loader import Settings
from devstack.core.engine.executor import ActionExecutor
from devstack.core.errors import (
    CertificateError,
    DevstackError,
    ExternalToolError,
    ResourceConflictError,
    ValidationError,
)
from devstack.core.models.certificate import CertificateBundle
from devstack.core.models.database import DbEngine
from devstack.core.models.project import ProjectRequest
from devstack.core.models.resource import ManagedResource, ResourceKind
from devstack.core.models.state import (
    TRANSITIONS,
    FailureReport,
    ProvisionResult,
    ProvisionState,
    StepRecord,
)
from devstack.core.models.vhost import VhostDescriptor, WebServer
from devstack.core.persistence.lock import DomainLock
from devstack.core.persistence.registry_store import ResourceRegistry
from devstack.core.services.certificates import CertificateProvisioner
from devstack.core.services.databases import DatabaseProvisioner
from devstack.core.services.hosts import HostsWriter
from devstack.core.services.ports import NO_PORT, find_available_port, port_in_use
from devstack.core.services.scaffolders import ScaffoldDispatcher, ScaffoldResult
from devstack.core.services.vhosts import VhostWriter

logger = logging.getLogger(__name__)

VHOST_KINDS = {
    WebServer.APACHE: ResourceKind.APACHE_VHOST,
    WebServer.NGINX: ResourceKind.NGINX_VHOST,
}


class _Run:
    """Mutable bookkeeping for one provisioning run."""

    def __init__(self, result: ProvisionResult):
        self.result = result
        self.state = ProvisionState.REQUESTED

    def advance(self, state: ProvisionState) -> None:
        if state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal transition {self.state.value} → {state.value}")
        logger.debug("State %s → %s", self.state.value, state.value)
        self.state = state
        self.result.state = state

    def step(
        self,
        status: Literal["ok", "noop", "skipped", "failed"],
        message: str,
        resources: list[str] | None = None,
    ) -> None:
        self.result.steps.append(
            StepRecord(
                step=self.state,
                status=status,
                message=message,
                resources=resources or [],
                simulated=self.result.dry_run,
            )
        )


class ProvisioningOrchestrator:
    """Sequence the components for one ProjectRequest.

    All components share one ActionExecutor (and therefore one
    ExecutionMode). ``probe`` decides whether a port is taken.
    """

    def __init__(
        self,
        executor: ActionExecutor,
        settings: Settings,
        registry: ResourceRegistry,
        scaffolds: ScaffoldDispatcher,
        hosts: HostsWriter,
        certificates: CertificateProvisioner,
        vhosts: VhostWriter,
        databases: DatabaseProvisioner,
        probe: Callable[[int], bool] = port_in_use,
    ):
        self._executor = executor
        self._settings = settings
        self._registry = registry
        self._scaffolds = scaffolds
        self._hosts = hosts
        self._certificates = certificates
        self._vhosts = vhosts
        self._databases = databases
        self._probe = probe

    def provision(self, request: ProjectRequest) -> ProvisionResult:
        """Run the state machine to ``complete`` or ``failed``. Never raises DevstackError."""
        result = ProvisionResult(
            domain=request.domain,
            project_path=request.project_path,
            dry_run=self._executor.dry_run,
        )
        run = _Run(result)
        mutations_before = self._executor.mutation_count
        logger.info("Provisioning %s (%s) at %s", request.domain, request.stack.label, request.project_path)

        try:
            engine = self._validate(request)
            result.port = self._allocate_port(request)
            run.step("ok", f"domain {request.domain}, port {result.port}")

            with self._lock(request.domain):
                scaffold = self._scaffold(run, request, result.port)
                self._network(run, request)
                bundle = self._tls(run, request) if self._wants_tls(request) else None
                self._vhost(run, request, scaffold, bundle)
                if engine is not None:
                    self._database(run, request, engine)
                run.advance(ProvisionState.COMPLETE)
        except DevstackError as e:
            self._fail(run, e)
        finally:
            result.mutated = self._executor.mutation_count > mutations_before

        if result.ok:
            logger.info("%s is ready", request.domain)
        return result

    # ── Steps ───────────────────────────────────────────────────

    def _validate(self, request: ProjectRequest) -> DbEngine | None:
        if request.database is None:
            return None
        try:
            engine = DbEngine(request.database)
        except ValueError:
            valid = ", ".join(e.value for e in DbEngine)
            raise ValidationError(f"Unknown database engine '{request.database}'. Valid: {valid}") from None
        self._databases.check_available(engine, request.name, request.project_path)
        return engine

    def _allocate_port(self, request: ProjectRequest) -> int:
        preferred = request.port or self._settings.default_port
        port = find_available_port(preferred, self._settings.port_ceiling, probe=self._probe)
        if port is NO_PORT:
            raise ResourceConflictError(
                f"No free TCP port in {preferred}..{self._settings.port_ceiling}",
                resource_key=request.domain,
            )
        return port

    def _scaffold(self, run: _Run, request: ProjectRequest, port: int | None) -> ScaffoldResult:
        run.advance(ProvisionState.SCAFFOLDING)
        scaffold = self._scaffolds.scaffold(request, port)
        run.result.document_root = scaffold.document_root
        if scaffold.created:
            run.step("ok", f"{request.stack.label} scaffolded, document root {scaffold.document_root}")
        else:
            run.step("noop", f"{request.project_path} already exists, document root {scaffold.document_root}")
        return scaffold

    def _network(self, run: _Run, request: ProjectRequest) -> None:
        run.advance(ProvisionState.NETWORK_WIRING)
        outcome = self._hosts.ensure_mapping(request.domain)
        ref = self._commit(run, ResourceKind.HOSTS_ENTRY, request.domain, hosts_file=str(self._settings.hosts_file))
        if outcome.status == "created":
            run.step("ok", f"hosts entry added (backup {outcome.backup_path})", [ref])
        else:
            run.step("noop", "hosts entry already exists", [ref])

    def _wants_tls(self, request: ProjectRequest) -> bool:
        return request.tls or self._settings.opportunistic_tls

    def _tls(self, run: _Run, request: ProjectRequest) -> CertificateBundle | None:
        run.advance(ProvisionState.TLS)
        try:
            bundle, created = self._certificates.obtain(request.domain)
        except CertificateError as e:
            if request.tls:
                raise
            logger.warning("TLS skipped for %s: %s", request.domain, e)
            run.step("skipped", f"certificate unavailable: {e}")
            return None

        ref = self._commit(
            run,
            ResourceKind.CERTIFICATE,
            request.domain,
            key_path=str(bundle.key_path),
            cert_path=str(bundle.cert_path),
            issuer=bundle.issuer,
        )
        if created:
            run.step("ok", f"{bundle.issuer} certificate {bundle.cert_path}", [ref])
        else:
            run.step("noop", f"reusing certificate {bundle.cert_path}", [ref])
        return bundle

    def _vhost(
        self,
        run: _Run,
        request: ProjectRequest,
        scaffold: ScaffoldResult,
        bundle: CertificateBundle | None,
    ) -> None:
        run.advance(ProvisionState.VHOST_WIRING)
        if not self._vhosts.engines:
            logger.warning("No web server detected; %s gets no vhost", request.domain)
            run.step("skipped", "no web server detected")
            return

        try:
            descriptor = VhostDescriptor(
                domain=request.domain,
                document_root=scaffold.document_root,
                tls=bundle is not None,
                certificate=bundle,
                backend=scaffold.backend,
                backend_protocol=scaffold.backend_protocol,
            )
        except ValueError as e:
            raise ValidationError(f"Cannot build vhost for {request.domain}: {e}") from e

        paths = self._vhosts.install(descriptor)
        run.result.installed_vhosts.extend(paths)
        refs = [
            self._commit(run, VHOST_KINDS[engine], request.domain, path=str(path))
            for engine, path in zip(self._vhosts.engines, paths, strict=True)
        ]
        run.step("ok", f"{len(paths)} vhost file(s) written", refs)

    def _database(self, run: _Run, request: ProjectRequest, engine: DbEngine) -> None:
        run.advance(ProvisionState.DATABASE_WIRING)
        credential = self._databases.provision(engine, request.name, request.project_path)
        details: dict[str, Any] = {"engine": engine.value, "project": str(request.project_path)}
        if credential.sidecar_path:
            details["sidecar"] = str(credential.sidecar_path)
        if credential.path:
            details["path"] = str(credential.path)
        ref = self._commit(run, ResourceKind.DATABASE, credential.database, **details)
        run.result.database = {"database": credential.database, "username": credential.username, **details}
        if credential.created:
            run.step("ok", f"{engine.value} database {credential.database}", [ref])
        else:
            run.step("noop", f"{engine.value} database {credential.database} already exists", [ref])

    # ── Bookkeeping ─────────────────────────────────────────────

    def _commit(self, run: _Run, kind: ResourceKind, key: str, **details: Any) -> str:
        if self._executor.dry_run:
            resource = ManagedResource(kind=kind, key=key, materialized=False, details=details)
        else:
            resource = self._registry.record(kind, key, **details)
        run.result.committed.append(resource)
        return resource.ref

    @contextlib.contextmanager
    def _lock(self, domain: str) -> Iterator[None]:
        if self._executor.dry_run:
            yield
            return
        with DomainLock(self._settings.lock_dir, domain):
            yield

    def _fail(self, run: _Run, error: DevstackError) -> None:
        output = error.output if isinstance(error, ExternalToolError) else ""
        run.result.failure = FailureReport(
            step=run.state,
            error_type=type(error).__name__,
            message=str(error),
            resource_key=error.resource_key,
            tool_output=output,
        )
        run.step("failed", str(error))
        logger.error("%s failed at %s: %s", run.result.domain, run.state.value, error)
        run.state = ProvisionState.FAILED
        run.result.state = ProvisionState.FAILED
