"""
Resource registry — which managed resources already exist.

Stored as JSON at ``registry_file``. Writes are atomic (write to temp
file, then rename) so a crash never leaves a half-written registry.
Each change is applied under an exclusive ``flock`` on a sibling
``.lock`` file to the document freshly re-read from disk, so concurrent
runs for different domains never drop each other's entries.

Under dry-run the registry still answers ``exists`` (including for
resources recorded earlier in the same run) but never writes to disk.
"""

from __future__ import annotations

import contextlib
import fcntl
import json
import logging
import os
import tempfile
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from devstack.core.models.resource import ManagedResource, ResourceKind

logger = logging.getLogger(__name__)


class RegistryDocument(BaseModel):
    """On-disk shape of the registry."""

    schema_version: int = 1
    resources: list[ManagedResource] = Field(default_factory=list)


def load_registry(path: Path) -> RegistryDocument:
    """Load the registry document; a missing file is an empty registry.

    A corrupt file is NOT silently replaced: losing the registry would
    make devstack forget what it owns.
    """
    if not path.is_file():
        logger.debug("No registry at %s — starting empty", path)
        return RegistryDocument()

    raw = path.read_text(encoding="utf-8")
    try:
        return RegistryDocument.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValueError) as e:
        raise ValueError(f"Corrupt resource registry {path}: {e}") from e


def save_registry(document: RegistryDocument, path: Path) -> None:
    """Save the registry document (atomic write)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(document.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"

    _fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".registry_", suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        with open(_fd, "w", encoding="utf-8") as f:
            f.write(content)
        tmp.replace(path)
        logger.debug("Registry saved to %s", path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise


@contextlib.contextmanager
def registry_lock(path: Path) -> Iterator[None]:
    """Exclusive ``flock`` on ``<registry>.lock``; blocks until it is free."""
    lock_path = path.with_name(f".{path.name}.lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o600)
    try:
        fcntl.flock(fd, fcntl.LOCK_EX)
        yield
    finally:
        fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)


class ResourceRegistry:
    """(kind, key) → ManagedResource, with at most one entry per pair."""

    def __init__(self, path: Path | None = None, persist: bool = True):
        self._path = path
        self._persist = persist and path is not None
        document = load_registry(path) if path is not None else RegistryDocument()
        self._entries = self._index(document)

    @staticmethod
    def _index(document: RegistryDocument) -> dict[tuple[ResourceKind, str], ManagedResource]:
        return {(r.kind, r.key): r for r in document.resources}

    @property
    def path(self) -> Path | None:
        return self._path

    def exists(self, kind: ResourceKind, key: str) -> bool:
        return (kind, key) in self._entries

    def get(self, kind: ResourceKind, key: str) -> ManagedResource | None:
        return self._entries.get((kind, key))

    def record(self, kind: ResourceKind, key: str, **details: Any) -> ManagedResource:
        """Mark a resource materialized.

        Re-recording an existing key keeps its original timestamp and
        merges ``details``; it never creates a second entry.
        """
        with self._transaction():
            existing = self._entries.get((kind, key))
            if existing is not None:
                existing.details.update(details)
                return existing

            resource = ManagedResource(kind=kind, key=key, details=details)
            self._entries[(kind, key)] = resource
            logger.info("Recorded %s", resource.ref)
            return resource

    def forget(self, kind: ResourceKind, key: str) -> bool:
        """Remove a resource entry. Returns whether one was removed."""
        with self._transaction():
            removed = self._entries.pop((kind, key), None)
            if removed is not None:
                logger.info("Forgot %s", removed.ref)
            return removed is not None

    def all(self, kind: ResourceKind | None = None) -> list[ManagedResource]:
        resources = sorted(self._entries.values(), key=lambda r: (r.kind.value, r.key))
        if kind is None:
            return resources
        return [r for r in resources if r.kind == kind]

    def for_domain(self, domain: str) -> list[ManagedResource]:
        """Entries keyed by ``domain`` (hosts, certificate, vhosts)."""
        return [r for r in self.all() if r.key == domain]

    @contextlib.contextmanager
    def _transaction(self) -> Iterator[None]:
        """Reload under the file lock, apply the caller's change, save.

        Without persistence the change only touches the in-memory view.
        """
        if not self._persist or self._path is None:
            yield
            return
        with registry_lock(self._path):
            self._entries = self._index(load_registry(self._path))
            yield
            save_registry(RegistryDocument(resources=list(self._entries.values())), self._path)
