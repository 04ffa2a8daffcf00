"""
Scaffold dispatcher — route a stack to its generator.

Generators are registered by StackKind. The dispatcher checks the
generator's required binaries (offering to install missing packages),
runs it, and works out the backend the vhost should forward to.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from pathlib import Path

from devstack.core.engine.executor import ActionExecutor
from devstack.core.errors import CapabilityUnavailableError, ScaffoldError, ValidationError
from devstack.core.models.project import ProjectRequest, StackKind
from devstack.core.services.capabilities import PackageManager
from devstack.core.services.scaffolders.base import ScaffoldResult, Scaffolder
from devstack.core.services.scaffolders.dotnet import DotnetScaffolder
from devstack.core.services.scaffolders.node import NodeServerScaffolder, ViteScaffolder
from devstack.core.services.scaffolders.php import LaravelScaffolder, WordPressScaffolder
from devstack.core.services.scaffolders.static import BootstrapScaffolder, StaticScaffolder

logger = logging.getLogger(__name__)

DEFAULT_SCAFFOLDERS: tuple[type[Scaffolder], ...] = (
    LaravelScaffolder,
    WordPressScaffolder,
    StaticScaffolder,
    ViteScaffolder,
    NodeServerScaffolder,
    DotnetScaffolder,
    BootstrapScaffolder,
)


def _is_populated(path: Path) -> bool:
    return path.is_dir() and any(path.iterdir())


class ScaffoldDispatcher:
    """Registry of scaffolders keyed by StackKind."""

    def __init__(
        self,
        executor: ActionExecutor,
        packages: PackageManager | None = None,
        php_fpm_socket: str = "/run/php/php8.2-fpm.sock",
        which: Callable[[str], str | None] = shutil.which,
        scaffolders: tuple[type[Scaffolder], ...] = DEFAULT_SCAFFOLDERS,
    ):
        self._executor = executor
        self._packages = packages
        self._php_fpm_socket = php_fpm_socket
        self._which = which
        self._scaffolders: dict[StackKind, Scaffolder] = {}
        for cls in scaffolders:
            self.register(cls(executor, which=which))

    def register(self, scaffolder: Scaffolder) -> None:
        self._scaffolders[scaffolder.kind] = scaffolder

    def get(self, kind: StackKind) -> Scaffolder:
        scaffolder = self._scaffolders.get(kind)
        if scaffolder is None:
            raise ValidationError(f"No generator registered for stack '{kind.value}'")
        return scaffolder

    def backend_for(self, scaffolder: Scaffolder, port: int | None) -> str | None:
        if scaffolder.backend_protocol == "fastcgi":
            return self._php_fpm_socket
        if scaffolder.backend_protocol == "http":
            return f"http://127.0.0.1:{port}"
        return None

    def scaffold(self, request: ProjectRequest, port: int | None) -> ScaffoldResult:
        """Materialize ``request`` (or adopt an existing project directory).

        Raises:
            CapabilityUnavailableError: A required tool is missing and was not installed.
            ScaffoldError: The generator failed or left no document root.
        """
        scaffolder = self.get(request.stack.kind)
        target = request.project_path
        backend = self.backend_for(scaffolder, port)

        if _is_populated(target):
            logger.info("%s already exists — skipping generation", target)
            return ScaffoldResult(
                document_root=scaffolder.locate(target),
                backend=backend,
                backend_protocol=scaffolder.backend_protocol,
                created=False,
            )

        self._check_requirements(scaffolder)

        receipt = self._executor.fs(
            "scaffold.root", f"Create {request.root_dir}", "mkdir", request.root_dir
        )
        self._executor.require(receipt, tool="filesystem", resource_key=str(target), error_cls=ScaffoldError)

        options = dict(request.stack.options)
        if port is not None:
            options["port"] = str(port)
        document_root = scaffolder.generate(request.name, target, options)

        if not self._executor.dry_run and not document_root.is_dir():
            raise ScaffoldError(
                f"{request.stack.label} generator finished but {document_root} does not exist",
                tool=request.stack.kind.value,
                resource_key=str(target),
            )

        return ScaffoldResult(
            document_root=document_root,
            backend=backend,
            backend_protocol=scaffolder.backend_protocol,
        )

    def _check_requirements(self, scaffolder: Scaffolder) -> None:
        for requirement in scaffolder.requires:
            if self._which(requirement.binary):
                continue
            if requirement.package is None or self._packages is None:
                raise CapabilityUnavailableError(requirement.binary)
            if not self._executor.confirm(
                f"{requirement.binary} is required for {scaffolder.kind.value}. "
                f"Install package {requirement.package}?"
            ):
                raise CapabilityUnavailableError(
                    requirement.binary, f"{requirement.binary} is required and was not installed"
                )
            self._packages.ensure_installed(requirement.package)
