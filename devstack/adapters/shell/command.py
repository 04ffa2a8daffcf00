"""
Shell command adapter — spawn external tools.

This is the single place where devstack calls ``subprocess.run``.
Commands are argv lists (no shell interpolation). Secrets travel via
``stdin`` or ``env`` and are never echoed into receipts or logs.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import time
from pathlib import Path

from devstack.adapters.base import Adapter, ExecutionContext
from devstack.core.models.action import Receipt

logger = logging.getLogger(__name__)

# Tail kept from stdout/stderr in receipts
_OUTPUT_TAIL = 4000


class ShellCommandAdapter(Adapter):
    """Run a command and capture its output.

    Action params:
        argv (list[str]): The command and its arguments.
        stdin (str): Optional data piped to the process.
        env (dict[str, str]): Extra environment variables.
        cwd (str): Working directory (default: context.working_dir).
        timeout (int): Seconds before the command is killed
            (default: context.timeout).
    """

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        argv = context.action.params.get("argv")
        if not argv or not isinstance(argv, list):
            return False, "Missing required param: 'argv' (list)"

        cwd = context.action.params.get("cwd", context.working_dir)
        if cwd and not context.dry_run and not Path(cwd).is_dir():
            return False, f"Working directory does not exist: {cwd}"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.action.params
        argv: list[str] = [str(a) for a in params["argv"]]
        timeout = params.get("timeout", context.timeout)
        cwd = params.get("cwd", context.working_dir)
        display = shlex.join(argv)

        env = None
        if params.get("env"):
            env = os.environ.copy()
            env.update({k: str(v) for k, v in params["env"].items()})

        logger.debug("Executing: %s (cwd=%s)", display, cwd)
        start = time.monotonic()

        try:
            result = subprocess.run(
                argv,
                cwd=cwd,
                input=params.get("stdin"),
                env=env,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command timed out after {timeout}s",
                metadata={"command": display, "timeout": timeout},
            )
        except FileNotFoundError:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command not found: {argv[0]}",
                metadata={"command": display, "return_code": 127},
            )
        except Exception as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command execution error: {e}",
                metadata={"command": display},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        output = (result.stdout or "").strip()[-_OUTPUT_TAIL:]
        stderr = (result.stderr or "").strip()[-_OUTPUT_TAIL:]

        if result.returncode == 0:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=output,
                duration_ms=elapsed_ms,
                metadata={
                    "command": display,
                    "return_code": result.returncode,
                    "stderr": stderr,
                },
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=stderr or output or f"Command exited with code {result.returncode}",
            duration_ms=elapsed_ms,
            metadata={
                "command": display,
                "return_code": result.returncode,
                "stdout": output,
            },
        )
