"""
Scaffolder contract — one generator per stack kind.

A scaffolder materializes a project skeleton into a target directory
and reports the document root. It knows nothing about hosts entries,
vhosts or databases.
"""

from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Literal

from devstack.core.engine.executor import ActionExecutor
from devstack.core.errors import ScaffoldError
from devstack.core.models.action import Receipt
from devstack.core.models.project import StackKind


@dataclass(frozen=True)
class Requirement:
    """A binary the generator needs, and the package that provides it (if any)."""

    binary: str
    package: str | None = None


@dataclass
class ScaffoldResult:
    """What the dispatcher hands back to the orchestrator."""

    document_root: Path
    backend: str | None = None
    backend_protocol: Literal["fastcgi", "http"] | None = None
    created: bool = True


class Scaffolder(ABC):
    """Base class for stack generators."""

    kind: ClassVar[StackKind]
    backend_protocol: ClassVar[Literal["fastcgi", "http"] | None] = None
    requires: ClassVar[tuple[Requirement, ...]] = ()

    def __init__(self, executor: ActionExecutor, which: Callable[[str], str | None] = shutil.which):
        self._executor = executor
        self._which = which

    @abstractmethod
    def generate(self, name: str, target_dir: Path, options: dict[str, str]) -> Path:
        """Create the skeleton and return its document root.

        Raises:
            ScaffoldError: The generator failed.
        """

    def locate(self, target_dir: Path) -> Path:
        """Document root of an already scaffolded project."""
        if not target_dir.is_dir():
            raise ScaffoldError(f"Project directory not found: {target_dir}", resource_key=str(target_dir))
        return target_dir

    # ── Helpers for subclasses ──────────────────────────────────

    def _check(self, receipt: Receipt, tool: str, target_dir: Path) -> Receipt:
        return self._executor.require(
            receipt, tool=tool, resource_key=str(target_dir), error_cls=ScaffoldError
        )

    def _mkdir(self, path: Path) -> None:
        receipt = self._executor.fs("scaffold.mkdir", f"Create {path}", "mkdir", path)
        self._check(receipt, "filesystem", path)

    def _write(self, path: Path, content: str) -> None:
        receipt = self._executor.fs("scaffold.write", f"Write {path}", "write", path, content=content)
        self._check(receipt, "filesystem", path)
