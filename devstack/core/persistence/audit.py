"""
Audit sink — one NDJSON line per executed, simulated or confirmed action.

``<config_dir>/devstack.ndjson`` answers "what did devstack do to this
machine, and when": each line names the operation, the action id, its
status and whether it was a dry run. Lines hold the human description
of an action, never its argv, stdin or environment.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


class AuditEntry(BaseModel):
    timestamp: str = Field(default_factory=_timestamp)
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    message: str = ""
    operation_id: str = ""
    action_id: str = ""
    status: str = ""               # ok | failed | confirmed | declined
    dry_run: bool = False
    context: dict[str, Any] = Field(default_factory=dict)


class AuditWriter:
    """Appends entries to ``path``, or keeps them in memory when it is None.

    A failed write is logged and dropped: losing an audit line must not
    abort a half-finished provisioning run.
    """

    def __init__(self, path: Path | None = None):
        self._path = path
        self._memory: list[AuditEntry] = []

    @property
    def path(self) -> Path | None:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        if self._path is None:
            self._memory.append(entry)
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(entry.model_dump_json() + "\n")
        except OSError as e:
            logger.error("Cannot append to audit log %s: %s", self._path, e)

    def read_all(self) -> list[AuditEntry]:
        """Every readable entry, oldest first; corrupt lines are skipped."""
        if self._path is None:
            return list(self._memory)
        return list(self._iter_file())

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        if self._path is None:
            return self._memory[-n:]
        return list(deque(self._iter_file(), maxlen=n))

    def _iter_file(self):
        if not self._path.is_file():
            return
        try:
            with self._path.open(encoding="utf-8") as f:
                for number, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        yield AuditEntry.model_validate(json.loads(line))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("%s:%d: skipping corrupt entry (%s)", self._path, number, e)
        except OSError as e:
            logger.error("Cannot read audit log %s: %s", self._path, e)
