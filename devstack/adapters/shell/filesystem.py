"""
Filesystem adapter — file and directory operations.

Provides a receipt-returning interface for every filesystem mutation
devstack performs (hosts table, vhost files, certificates, scaffolded
files) so that the executor can audit and dry-run them.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from devstack.adapters.base import Adapter, ExecutionContext
from devstack.core.models.action import Receipt

logger = logging.getLogger(__name__)

_READ_ONLY_OPS = {"exists", "read"}
_VALID_OPS = _READ_ONLY_OPS | {
    "write",
    "append",
    "copy",
    "mkdir",
    "chmod",
    "symlink",
    "remove",
    "remove_lines",
}


class FilesystemAdapter(Adapter):
    """File and directory operations with receipts.

    Action params:
        operation (str): One of the operations in ``_VALID_OPS``.
        path (str): Target path (relative to working_dir or absolute).
        content (str): Content for 'write' and 'append'.
        mode (int): Permission bits for 'write', 'mkdir' and 'chmod'.
        source (str): Source path for 'copy' and link target for 'symlink'.
        match (str): Substring selecting lines for 'remove_lines'.
        missing_ok (bool): For 'remove' (default: True).
    """

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        operation = params.get("operation", "")
        if not operation:
            return False, "Missing required param: 'operation'"

        if operation not in _VALID_OPS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(_VALID_OPS))}"

        if not params.get("path"):
            return False, "Missing required param: 'path'"

        if operation in ("write", "append") and "content" not in params:
            return False, f"Missing required param: 'content' for {operation} operation"

        if operation in ("copy", "symlink") and not params.get("source"):
            return False, f"Missing required param: 'source' for {operation} operation"

        if operation == "chmod" and "mode" not in params:
            return False, "Missing required param: 'mode' for chmod operation"

        if operation == "remove_lines" and not params.get("match"):
            return False, "Missing required param: 'match' for remove_lines operation"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.action.params["operation"]
        target = self._resolve(context, context.action.params["path"])

        try:
            handler = getattr(self, f"_{operation}")
            return handler(context, target)
        except Exception as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Filesystem error: {e}",
                metadata={"operation": operation, "path": str(target)},
            )

    @staticmethod
    def _resolve(ctx: ExecutionContext, raw_path: str) -> Path:
        target = Path(raw_path)
        if not target.is_absolute() and ctx.working_dir:
            target = Path(ctx.working_dir) / target
        return target

    def _ok(self, ctx: ExecutionContext, output: str, **metadata) -> Receipt:
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=output,
            metadata=metadata,
        )

    # ── Read-only ───────────────────────────────────────────────

    def _exists(self, ctx: ExecutionContext, target: Path) -> Receipt:
        exists = target.exists()
        return self._ok(ctx, str(exists), exists=exists, is_dir=target.is_dir(), path=str(target))

    def _read(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if not target.is_file():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"File not found: {target}",
            )
        content = target.read_text(encoding="utf-8")
        return self._ok(ctx, content, path=str(target), size=len(content))

    # ── Mutations ───────────────────────────────────────────────

    def _write(self, ctx: ExecutionContext, target: Path) -> Receipt:
        content: str = ctx.action.params["content"]
        mode: int | None = ctx.action.params.get("mode")
        target.parent.mkdir(parents=True, exist_ok=True)

        if mode is None:
            target.write_text(content, encoding="utf-8")
        else:
            # Create with the final permissions so the file is never wider
            fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
            try:
                os.fchmod(fd, mode)
                os.write(fd, content.encode("utf-8"))
            finally:
                os.close(fd)

        return self._ok(
            ctx,
            f"Written {len(content)} bytes to {target}",
            path=str(target),
            size=len(content),
        )

    def _append(self, ctx: ExecutionContext, target: Path) -> Receipt:
        content: str = ctx.action.params["content"]
        with target.open("a", encoding="utf-8") as f:
            f.write(content)
        return self._ok(ctx, f"Appended {len(content)} bytes to {target}", path=str(target))

    def _copy(self, ctx: ExecutionContext, target: Path) -> Receipt:
        source = self._resolve(ctx, ctx.action.params["source"])
        target.parent.mkdir(parents=True, exist_ok=True)
        if source.is_dir():
            shutil.copytree(source, target, symlinks=True, dirs_exist_ok=True)
        else:
            shutil.copy2(source, target)
        return self._ok(ctx, f"Copied {source} -> {target}", source=str(source), path=str(target))

    def _mkdir(self, ctx: ExecutionContext, target: Path) -> Receipt:
        target.mkdir(parents=True, exist_ok=True)
        mode = ctx.action.params.get("mode")
        if mode is not None:
            target.chmod(mode)
        return self._ok(ctx, f"Directory created: {target}", path=str(target))

    def _chmod(self, ctx: ExecutionContext, target: Path) -> Receipt:
        mode: int = ctx.action.params["mode"]
        target.chmod(mode)
        return self._ok(ctx, f"Mode {oct(mode)} set on {target}", path=str(target), mode=mode)

    def _symlink(self, ctx: ExecutionContext, target: Path) -> Receipt:
        source = self._resolve(ctx, ctx.action.params["source"])
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.is_symlink() or target.exists():
            target.unlink()
        target.symlink_to(source)
        return self._ok(ctx, f"Linked {target} -> {source}", source=str(source), path=str(target))

    def _remove(self, ctx: ExecutionContext, target: Path) -> Receipt:
        missing_ok = ctx.action.params.get("missing_ok", True)
        if not target.exists() and not target.is_symlink():
            if missing_ok:
                return self._ok(ctx, f"Already absent: {target}", path=str(target), removed=False)
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Not found: {target}",
            )
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            target.unlink()
        return self._ok(ctx, f"Removed {target}", path=str(target), removed=True)

    def _remove_lines(self, ctx: ExecutionContext, target: Path) -> Receipt:
        match: str = ctx.action.params["match"]
        lines = target.read_text(encoding="utf-8").splitlines(keepends=True)
        kept = [line for line in lines if match not in line]
        removed = len(lines) - len(kept)
        if removed:
            target.write_text("".join(kept), encoding="utf-8")
        return self._ok(ctx, f"Removed {removed} line(s) from {target}", path=str(target), removed=removed)
