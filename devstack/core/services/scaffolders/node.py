"""Node stacks: Vite single-page apps (run under PM2) and a bare npm server."""

from __future__ import annotations

import logging
from pathlib import Path

from devstack.core.models.project import NODE_SPA_VARIANTS, StackKind
from devstack.core.services.scaffolders.base import Requirement, Scaffolder

logger = logging.getLogger(__name__)

_PM2_ECOSYSTEM = """\
module.exports = {{
  apps: [
    {{
      name: "{name}",
      cwd: "{cwd}",
      script: "npm",
      args: "run dev -- --host 127.0.0.1 --port {port}",
      env: {{ PORT: "{port}" }}
    }}
  ]
}};
"""


def render_ecosystem(name: str, cwd: Path, port: str) -> str:
    """PM2 ecosystem file running the dev server on ``port``."""
    return _PM2_ECOSYSTEM.format(name=name, cwd=cwd, port=port)


class ViteScaffolder(Scaffolder):
    kind = StackKind.NODE_SPA
    backend_protocol = "http"
    requires = (Requirement("npm", "npm"),)

    def generate(self, name: str, target_dir: Path, options: dict[str, str]) -> Path:
        template = options.get("template", NODE_SPA_VARIANTS[0])
        port = options.get("port", "3000")

        receipt = self._executor.run(
            "scaffold.vite",
            f"Create Vite {template} app {name}",
            ["npm", "create", "--yes", "vite@latest", str(target_dir), "--", "--template", template],
            cwd=target_dir.parent,
        )
        self._check(receipt, "npm", target_dir)

        self._write(target_dir / "ecosystem.config.cjs", render_ecosystem(name, target_dir, port))

        receipt = self._executor.run(
            "scaffold.npm-install", f"Install dependencies for {name}", ["npm", "install"], cwd=target_dir
        )
        self._check(receipt, "npm", target_dir)

        if self._which("pm2") is None:
            logger.warning("pm2 not found; start the dev server with: pm2 start %s/ecosystem.config.cjs", target_dir)
        else:
            receipt = self._executor.run(
                "scaffold.pm2-start",
                f"Start {name} under PM2 on port {port}",
                ["pm2", "start", "ecosystem.config.cjs"],
                cwd=target_dir,
            )
            if receipt.failed:
                logger.warning("pm2 start failed for %s: %s", name, receipt.error)
        return target_dir


class NodeServerScaffolder(Scaffolder):
    kind = StackKind.NODE_SERVER
    backend_protocol = "http"
    requires = (Requirement("npm", "npm"),)

    def generate(self, name: str, target_dir: Path, options: dict[str, str]) -> Path:
        self._mkdir(target_dir)
        receipt = self._executor.run(
            "scaffold.npm-init", f"Initialize npm package {name}", ["npm", "init", "-y"], cwd=target_dir
        )
        self._check(receipt, "npm", target_dir)
        return target_dir
