"""
Adapter contract — the only code allowed to touch the host.

Two adapters exist: ``shell`` spawns processes (apt-get, systemctl,
nginx -t, mkcert, mysql, git) and ``filesystem`` reads and writes
files (hosts table, vhost files, keys). Services build Actions; the
AdapterRegistry hands each one to the adapter it names.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from devstack.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """An Action plus the run-wide settings it executes under."""

    action: Action
    working_dir: str | None = None
    dry_run: bool = False
    timeout: int = 600
    params: dict[str, Any] = Field(default_factory=dict)


class Adapter(ABC):
    """Base for the shell and filesystem adapters.

    ``validate`` and ``execute`` report problems through their return
    values; an exception escaping ``execute`` is a bug, and the registry
    converts it into a failed Receipt.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Key used in ``Action.adapter``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the host can run this adapter at all."""

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """``(True, "")`` or ``(False, reason)``; checked before dry-run simulation."""

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Perform the action."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
