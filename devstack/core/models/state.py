"""
Orchestration state — where a provisioning run is and what it committed.

The orchestrator moves strictly forward through ProvisionState. The
ProvisionResult is the answer to "what happened before the failure":
the step log, the resources committed so far, and the failure cause.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, Literal

from devstack.core.models.resource import ManagedResource

# Exit codes of the CLI boundary
EXIT_OK = 0
EXIT_FAILED_CLEAN = 1       # failed before any mutation
EXIT_FAILED_PARTIAL = 2     # failed after committing something
EXIT_CONFIG_ERROR = 3


class ProvisionState(StrEnum):
    """Orchestration states, in order."""

    REQUESTED = "requested"
    SCAFFOLDING = "scaffolding"
    NETWORK_WIRING = "network-wiring"
    TLS = "tls"
    VHOST_WIRING = "vhost-wiring"
    DATABASE_WIRING = "database-wiring"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (ProvisionState.COMPLETE, ProvisionState.FAILED)


# Legal forward transitions. FAILED is reachable from any non-terminal state.
TRANSITIONS: dict[ProvisionState, tuple[ProvisionState, ...]] = {
    ProvisionState.REQUESTED: (ProvisionState.SCAFFOLDING,),
    ProvisionState.SCAFFOLDING: (ProvisionState.NETWORK_WIRING,),
    ProvisionState.NETWORK_WIRING: (ProvisionState.TLS, ProvisionState.VHOST_WIRING),
    ProvisionState.TLS: (ProvisionState.VHOST_WIRING,),
    ProvisionState.VHOST_WIRING: (ProvisionState.DATABASE_WIRING, ProvisionState.COMPLETE),
    ProvisionState.DATABASE_WIRING: (ProvisionState.COMPLETE,),
    ProvisionState.COMPLETE: (),
    ProvisionState.FAILED: (),
}


@dataclass
class StepRecord:
    """Outcome of one orchestration step."""

    step: ProvisionState
    status: Literal["ok", "noop", "skipped", "failed"] = "ok"
    message: str = ""
    resources: list[str] = field(default_factory=list)
    simulated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step.value,
            "status": self.status,
            "message": self.message,
            "resources": list(self.resources),
            "simulated": self.simulated,
        }


@dataclass
class FailureReport:
    """Why and where a run stopped."""

    step: ProvisionState
    error_type: str
    message: str
    resource_key: str | None = None
    tool_output: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step.value,
            "error_type": self.error_type,
            "message": self.message,
            "resource_key": self.resource_key,
            "tool_output": self.tool_output,
        }


@dataclass
class ProvisionResult:
    """Structured result returned across the CLI boundary."""

    domain: str = ""
    project_path: Path | None = None
    document_root: Path | None = None
    port: int | None = None
    state: ProvisionState = ProvisionState.REQUESTED
    steps: list[StepRecord] = field(default_factory=list)
    committed: list[ManagedResource] = field(default_factory=list)
    failure: FailureReport | None = None
    dry_run: bool = False
    mutated: bool = False
    installed_vhosts: list[Path] = field(default_factory=list)
    database: dict[str, Any] | None = None     # non-secret connection facts

    @property
    def ok(self) -> bool:
        return self.state == ProvisionState.COMPLETE

    @property
    def exit_code(self) -> int:
        if self.ok:
            return EXIT_OK
        return EXIT_FAILED_PARTIAL if self.mutated else EXIT_FAILED_CLEAN

    @property
    def step_sequence(self) -> list[str]:
        return [s.step.value for s in self.steps]

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "ok": self.ok,
            "dry_run": self.dry_run,
            "domain": self.domain,
            "project_path": str(self.project_path) if self.project_path else None,
            "document_root": str(self.document_root) if self.document_root else None,
            "port": self.port,
            "steps": [s.to_dict() for s in self.steps],
            "committed": [r.ref for r in self.committed],
            "vhosts": [str(p) for p in self.installed_vhosts],
            "database": self.database,
            "failure": self.failure.to_dict() if self.failure else None,
            "exit_code": self.exit_code,
        }
