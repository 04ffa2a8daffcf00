"""ASP.NET projects via ``dotnet new``."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from devstack.core.models.project import DEFAULT_DOTNET_TEMPLATE, StackKind
from devstack.core.services.scaffolders.base import Requirement, Scaffolder

logger = logging.getLogger(__name__)

LAUNCH_SETTINGS = Path("Properties") / "launchSettings.json"


def bind_launch_profiles(settings: dict[str, Any], name: str, url: str) -> dict[str, Any]:
    """Point every Kestrel ("Project") profile at ``url``.

    A document without one gets a single profile named after the project.
    """
    profiles = settings.setdefault("profiles", {})
    kestrel = [p for p in profiles.values() if isinstance(p, dict) and p.get("commandName") == "Project"]
    if not kestrel:
        profiles[name] = {"commandName": "Project", "launchBrowser": False}
        kestrel = [profiles[name]]
    for profile in kestrel:
        profile["applicationUrl"] = url
        profile.setdefault("environmentVariables", {})["ASPNETCORE_URLS"] = url
    return settings


class DotnetScaffolder(Scaffolder):
    kind = StackKind.DOTNET_APP
    backend_protocol = "http"
    # The SDK is not in the stock apt sources
    requires = (Requirement("dotnet"),)

    def generate(self, name: str, target_dir: Path, options: dict[str, str]) -> Path:
        template = options.get("template", DEFAULT_DOTNET_TEMPLATE)
        receipt = self._executor.run(
            "scaffold.dotnet",
            f"Create .NET {template} project {name}",
            ["dotnet", "new", template, "-n", name, "-o", str(target_dir)],
            cwd=target_dir.parent,
        )
        self._check(receipt, "dotnet", target_dir)

        port = options.get("port")
        if port is not None:
            self._bind_port(name, target_dir, port)
        return target_dir

    def _bind_port(self, name: str, target_dir: Path, port: str) -> None:
        """Make ``dotnet run`` listen where the vhost proxies to."""
        path = target_dir / LAUNCH_SETTINGS
        settings: dict[str, Any] = {}
        if path.is_file():
            receipt = self._executor.fs("scaffold.dotnet.launch.read", f"Read {path}", "read", path)
            self._check(receipt, "filesystem", target_dir)
            try:
                settings = json.loads(receipt.output)
            except json.JSONDecodeError as e:
                logger.warning("Replacing unreadable %s: %s", path, e)

        url = f"http://127.0.0.1:{port}"
        content = json.dumps(bind_launch_profiles(settings, name, url), indent=2) + "\n"
        self._write(path, content)
        logger.info("%s listens on %s", name, url)
