"""
Action executor — the single gateway between devstack and the host.

Every component builds Actions and hands them to the executor, which
applies the run's ExecutionMode (dry-run / assume-yes), dispatches
through the adapter registry, and appends one audit entry per call.

Flow:
    component → executor.execute(description, action) → registry → adapter → receipt
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from devstack.adapters.registry import AdapterRegistry
from devstack.adapters.shell.command import ShellCommandAdapter
from devstack.adapters.shell.filesystem import FilesystemAdapter
from devstack.core.errors import ExternalToolError
from devstack.core.models.action import Action, Receipt
from devstack.core.models.mode import ExecutionMode
from devstack.core.persistence.audit import AuditEntry, AuditWriter

logger = logging.getLogger(__name__)


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"op-{now}-{short}"


def build_default_registry(timeout: int = 600) -> AdapterRegistry:
    """Registry with the real shell and filesystem adapters."""
    registry = AdapterRegistry(default_timeout=timeout)
    registry.register(ShellCommandAdapter())
    registry.register(FilesystemAdapter())
    return registry


class ActionExecutor:
    """Runs or simulates actions under one ExecutionMode.

    Args:
        registry: Adapter registry used for dispatch.
        mode: The run-wide execution policy.
        audit: Log sink; in-memory when omitted.
        operation_id: Correlates every audit entry of one run.
        timeout: Default timeout for spawned commands, in seconds.
        prompt: Reads one line of operator input (``input`` by default).
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        mode: ExecutionMode | None = None,
        audit: AuditWriter | None = None,
        operation_id: str | None = None,
        timeout: int = 600,
        prompt: Callable[[str], str] = input,
    ):
        self._registry = registry
        self._mode = mode or ExecutionMode()
        self._audit = audit or AuditWriter()
        self._operation_id = operation_id or generate_operation_id()
        self._timeout = timeout
        self._prompt = prompt
        self._mutations = 0

    @property
    def mode(self) -> ExecutionMode:
        return self._mode

    @property
    def dry_run(self) -> bool:
        return self._mode.dry_run

    @property
    def operation_id(self) -> str:
        return self._operation_id

    @property
    def audit(self) -> AuditWriter:
        return self._audit

    @property
    def mutation_count(self) -> int:
        """Mutating actions that really ran (not simulated) and succeeded."""
        return self._mutations

    # ── Core contract ───────────────────────────────────────────

    def execute(self, description: str, action: Action) -> Receipt:
        """Perform ``action``, or under dry-run record ``description`` only.

        Never raises; inspect the receipt or pass it to :meth:`require`.
        """
        receipt = self._registry.execute_action(
            action,
            dry_run=self._mode.dry_run,
            timeout=self._timeout,
        )

        if receipt.ok and not action.read_only and not receipt.simulated:
            self._mutations += 1

        if receipt.simulated:
            logger.info("%s%s", self._mode.label, description)
        elif receipt.ok:
            logger.debug("✓ %s", description)
        else:
            logger.warning("✗ %s: %s", description, receipt.error)

        level = "ERROR" if receipt.failed else "DEBUG" if action.read_only else "INFO"
        self._audit.write(
            AuditEntry(
                level=level,
                message=description,
                operation_id=self._operation_id,
                action_id=action.id,
                status=receipt.status,
                dry_run=receipt.simulated,
                context={"adapter": action.adapter},
            )
        )
        return receipt

    def confirm(self, prompt: str) -> bool:
        """Ask the operator; true iff the answer is "y" (any case).

        Returns True at once when assume-yes is set, and under dry-run
        (nothing it guards is really performed).
        """
        if self._mode.assume_yes or self._mode.dry_run:
            answer = True
        else:
            try:
                answer = self._prompt(f"{prompt} [y/N]: ").strip().lower() == "y"
            except EOFError:
                answer = False

        self._audit.write(
            AuditEntry(
                level="INFO",
                message=prompt,
                operation_id=self._operation_id,
                action_id="confirm",
                status="confirmed" if answer else "declined",
                dry_run=self._mode.dry_run,
            )
        )
        return answer

    def require(
        self,
        receipt: Receipt,
        *,
        tool: str = "",
        resource_key: str | None = None,
        error_cls: type[ExternalToolError] = ExternalToolError,
    ) -> Receipt:
        """Return ``receipt`` if it succeeded, otherwise raise ``error_cls``."""
        if not receipt.failed:
            return receipt
        raise error_cls(
            receipt.error or f"{receipt.action_id} failed",
            tool=tool or receipt.adapter,
            returncode=receipt.returncode,
            output=receipt.tool_output,
            resource_key=resource_key,
        )

    # ── Action builders ─────────────────────────────────────────

    def run(
        self,
        action_id: str,
        description: str,
        argv: list[str],
        *,
        cwd: Path | None = None,
        stdin: str | None = None,
        env: dict[str, str] | None = None,
        read_only: bool = False,
        timeout: int | None = None,
    ) -> Receipt:
        """Run an external command through the shell adapter.

        ``stdin`` and ``env`` are always treated as secret.
        """
        params: dict[str, Any] = {"argv": [str(a) for a in argv]}
        if cwd is not None:
            params["cwd"] = str(cwd)
        if stdin is not None:
            params["stdin"] = stdin
        if env:
            params["env"] = env
        if timeout is not None:
            params["timeout"] = timeout
        action = Action(
            id=action_id,
            name=description,
            adapter="shell",
            params=params,
            read_only=read_only,
            secret_params=["stdin", "env"],
        )
        return self.execute(description, action)

    def fs(
        self,
        action_id: str,
        description: str,
        operation: str,
        path: Path,
        *,
        secret: bool = False,
        **params: Any,
    ) -> Receipt:
        """Run a filesystem operation through the filesystem adapter."""
        action = Action(
            id=action_id,
            name=description,
            adapter="filesystem",
            params={"operation": operation, "path": str(path), **params},
            read_only=operation in ("exists", "read"),
            secret_params=["content"] if secret else [],
        )
        return self.execute(description, action)
