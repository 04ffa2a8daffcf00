"""
Test doubles shared across test modules.
"""

from pathlib import Path

INITIAL_HOSTS = "127.0.0.1\tlocalhost\n::1\tlocalhost ip6-localhost\n"


class FakeWhich:
    """Stand-in for shutil.which: only the named binaries exist."""

    def __init__(self, *available: str):
        self.available = set(available)

    def __call__(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self.available else None


class BusyPorts:
    """Port probe reporting a fixed set of ports as taken."""

    def __init__(self, *busy: int):
        self.busy = set(busy)
        self.probed: list[int] = []

    def __call__(self, port: int) -> bool:
        self.probed.append(port)
        return port in self.busy


def snapshot(root: Path) -> dict[str, bytes]:
    """Every file (and symlink target) under root, for before/after comparisons."""
    state = {}
    if not root.exists():
        return state
    for path in sorted(root.rglob("*")):
        rel = str(path.relative_to(root))
        if path.is_symlink():
            state[rel] = str(path.readlink()).encode()
        elif path.is_file():
            state[rel] = path.read_bytes()
        else:
            state[rel] = b"<dir>"
    return state
