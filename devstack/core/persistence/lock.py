"""
Per-domain exclusive lock.

Hosts, vhost and certificate writes for one domain must never run
concurrently. Each live run takes a non-blocking ``flock`` on
``<lock_dir>/<domain>.lock`` and holds it until the run ends.
"""

from __future__ import annotations

import fcntl
import logging
import os
from pathlib import Path
from types import TracebackType

from devstack.core.errors import LockUnavailableError

logger = logging.getLogger(__name__)


class DomainLock:
    """Context manager holding an exclusive lock for one domain."""

    def __init__(self, lock_dir: Path, domain: str):
        self._path = lock_dir / f"{domain}.lock"
        self._domain = domain
        self._fd: int | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o600)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            raise LockUnavailableError(
                f"Another devstack run holds the lock for {self._domain} ({self._path})",
                resource_key=self._domain,
            ) from None
        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        self._fd = fd
        logger.debug("Acquired lock %s", self._path)

    def release(self) -> None:
        if self._fd is None:
            return
        fcntl.flock(self._fd, fcntl.LOCK_UN)
        os.close(self._fd)
        self._fd = None
        logger.debug("Released lock %s", self._path)

    def __enter__(self) -> DomainLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
