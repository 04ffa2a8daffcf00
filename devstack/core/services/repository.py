"""
Repository bootstrap — ``git init`` a project and optionally create a GitHub remote.

The GitHub token is read from ``GITHUB_TOKEN`` and handed to ``gh``
through its environment as ``GH_TOKEN``. It never appears in argv,
logs, receipts or the audit sink.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from devstack.core.engine.executor import ActionExecutor
from devstack.core.errors import CapabilityUnavailableError

logger = logging.getLogger(__name__)

TOKEN_ENV = "GITHUB_TOKEN"
INITIAL_MESSAGE = "Initial commit"


@dataclass
class RepositoryResult:
    path: Path
    initialized: bool = False
    committed: bool = False
    remote: str | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "initialized": self.initialized,
            "committed": self.committed,
            "remote": self.remote,
            "warnings": list(self.warnings),
        }


class RepositoryBootstrapper:
    """git init + first commit + optional ``gh repo create``."""

    def __init__(
        self,
        executor: ActionExecutor,
        environ: Mapping[str, str] | None = None,
        which: Callable[[str], str | None] = shutil.which,
    ):
        self._executor = executor
        self._environ = os.environ if environ is None else environ
        self._which = which

    def init(self, project_dir: Path, github_name: str | None = None, private: bool = True) -> RepositoryResult:
        """Initialize ``project_dir`` as a git repository.

        Raises:
            CapabilityUnavailableError: git is not installed.
            ExternalToolError: A git command failed.
        """
        if self._which("git") is None:
            raise CapabilityUnavailableError("git")

        result = RepositoryResult(path=project_dir)
        if (project_dir / ".git").is_dir():
            logger.info("%s is already a git repository", project_dir)
        else:
            receipt = self._executor.run("git.init", f"git init {project_dir}", ["git", "init"], cwd=project_dir)
            self._executor.require(receipt, tool="git", resource_key=str(project_dir))
            result.initialized = True

        receipt = self._executor.run("git.add", "Stage project files", ["git", "add", "-A"], cwd=project_dir)
        self._executor.require(receipt, tool="git", resource_key=str(project_dir))

        receipt = self._executor.run(
            "git.commit",
            "Create initial commit",
            ["git", "commit", "-m", INITIAL_MESSAGE],
            cwd=project_dir,
        )
        if receipt.failed:
            # Nothing to commit is fine on re-runs
            result.warnings.append(f"git commit: {receipt.error}")
        else:
            result.committed = True

        if github_name:
            result.remote = self._create_remote(project_dir, github_name, private, result)
        return result

    def _create_remote(
        self, project_dir: Path, name: str, private: bool, result: RepositoryResult
    ) -> str | None:
        token = self._environ.get(TOKEN_ENV)
        if not token:
            result.warnings.append(f"{TOKEN_ENV} not set; skipping remote creation")
            logger.warning("%s not set; skipping GitHub repository creation", TOKEN_ENV)
            return None
        if self._which("gh") is None:
            result.warnings.append("gh CLI not found; skipping remote creation")
            logger.warning("gh CLI not found; skipping GitHub repository creation")
            return None

        receipt = self._executor.run(
            "git.remote.create",
            f"Create GitHub repository {name}",
            [
                "gh",
                "repo",
                "create",
                name,
                "--private" if private else "--public",
                "--source",
                str(project_dir),
                "--remote",
                "origin",
                "--push",
            ],
            cwd=project_dir,
            env={"GH_TOKEN": token},
        )
        self._executor.require(receipt, tool="gh", resource_key=name)
        return name
