"""
Execution mode — the run-wide dry-run / assume-yes policy.

Created once by the entry point and passed into every component that
needs it. Frozen: nothing may flip it mid-run.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ExecutionMode(BaseModel):
    """Policy applied by the action executor to every action."""

    model_config = ConfigDict(frozen=True)

    dry_run: bool = False
    assume_yes: bool = False

    @property
    def label(self) -> str:
        """Short prefix for user-facing output."""
        if self.dry_run:
            return "[dry-run] "
        return ""
