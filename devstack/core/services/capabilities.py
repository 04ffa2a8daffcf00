"""
Host capabilities — typed interfaces over package, service and web-server tools.

Components depend on these interfaces only. The concrete classes build
commands and run them through the ActionExecutor, so a MockAdapter-backed
registry is enough to test everything above this layer.
"""

from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

from devstack.core.config.loader import Settings
from devstack.core.engine.executor import ActionExecutor
from devstack.core.errors import CapabilityUnavailableError
from devstack.core.models.vhost import WebServer

logger = logging.getLogger(__name__)

Which = Callable[[str], str | None]


# ── Packages ────────────────────────────────────────────────────


class PackageManager(ABC):
    """Ensure-installed semantics over the host's package tool."""

    @abstractmethod
    def is_installed(self, package: str) -> bool: ...

    @abstractmethod
    def ensure_installed(self, package: str) -> bool:
        """Install ``package`` if missing. Returns True if it is (or will be) present."""


class AptPackageManager(PackageManager):
    """Debian/Ubuntu packages via dpkg and apt-get."""

    def __init__(self, executor: ActionExecutor, which: Which = shutil.which):
        self._executor = executor
        self._which = which
        self._updated = False

    def is_installed(self, package: str) -> bool:
        receipt = self._executor.run(
            f"pkg.query.{package}",
            f"Check package {package}",
            ["dpkg", "-s", package],
            read_only=True,
        )
        return receipt.ok

    def ensure_installed(self, package: str) -> bool:
        if self.is_installed(package):
            return True
        if self._which("apt-get") is None:
            raise CapabilityUnavailableError("apt-get", f"Cannot install {package}: apt-get not found")

        if not self._updated:
            receipt = self._executor.run("pkg.update", "Refresh package index", ["apt-get", "update"])
            self._executor.require(receipt, tool="apt-get")
            self._updated = True

        receipt = self._executor.run(
            f"pkg.install.{package}",
            f"Install package {package}",
            ["apt-get", "install", "-y", package],
            env={"DEBIAN_FRONTEND": "noninteractive"},
        )
        self._executor.require(receipt, tool="apt-get")
        logger.info("Installed package %s", package)
        return True


# ── Services ────────────────────────────────────────────────────


class ServiceManager(ABC):
    """Ensure-running / reload semantics over the host's init system."""

    @abstractmethod
    def is_active(self, unit: str) -> bool: ...

    @abstractmethod
    def ensure_running(self, unit: str) -> bool: ...

    @abstractmethod
    def reload(self, unit: str) -> bool: ...


class SystemdServiceManager(ServiceManager):
    """systemd units via systemctl."""

    def __init__(self, executor: ActionExecutor):
        self._executor = executor

    def is_active(self, unit: str) -> bool:
        receipt = self._executor.run(
            f"svc.status.{unit}",
            f"Check service {unit}",
            ["systemctl", "is-active", "--quiet", unit],
            read_only=True,
        )
        return receipt.ok

    def ensure_running(self, unit: str) -> bool:
        if self.is_active(unit):
            return True
        receipt = self._executor.run(f"svc.start.{unit}", f"Start service {unit}", ["systemctl", "start", unit])
        return receipt.ok

    def reload(self, unit: str) -> bool:
        """Reload, not restart. Failure is reported, not raised."""
        receipt = self._executor.run(f"svc.reload.{unit}", f"Reload {unit}", ["systemctl", "reload", unit])
        return receipt.ok


# ── Web servers ─────────────────────────────────────────────────


class WebServerControl(ABC):
    """Per-engine site placement, enabling, config test and reload."""

    engine: WebServer
    binary: str
    unit: str

    def __init__(
        self,
        executor: ActionExecutor,
        services: ServiceManager,
        sites_dir: Path,
        enabled_dir: Path,
        which: Which = shutil.which,
    ):
        self._executor = executor
        self._services = services
        self.sites_dir = sites_dir
        self.enabled_dir = enabled_dir
        self._which = which

    @abstractmethod
    def config_path(self, domain: str) -> Path:
        """Where the vhost file for ``domain`` lives."""

    def enabled_path(self, domain: str) -> Path:
        return self.enabled_dir / self.config_path(domain).name

    @abstractmethod
    def enable(self, domain: str) -> None:
        """Activate the site. Raises ExternalToolError on failure."""

    @abstractmethod
    def disable(self, domain: str) -> None: ...

    @abstractmethod
    def config_test(self) -> bool: ...

    def ensure_modules(self, modules: list[str]) -> None:
        """Load the server modules a vhost relies on. Nothing to load by default."""

    def reload(self) -> bool:
        return self._services.reload(self.unit)

    def _link(self, domain: str) -> None:
        receipt = self._executor.fs(
            f"vhost.{self.engine.value}.enable",
            f"Enable {self.engine.value} site {domain}",
            "symlink",
            self.enabled_path(domain),
            source=str(self.config_path(domain)),
        )
        self._executor.require(receipt, tool="filesystem", resource_key=domain)

    def _unlink(self, domain: str) -> None:
        receipt = self._executor.fs(
            f"vhost.{self.engine.value}.disable",
            f"Disable {self.engine.value} site {domain}",
            "remove",
            self.enabled_path(domain),
        )
        self._executor.require(receipt, tool="filesystem", resource_key=domain)


class ApacheControl(WebServerControl):
    engine = WebServer.APACHE
    binary = "apache2"
    unit = "apache2"

    def config_path(self, domain: str) -> Path:
        return self.sites_dir / f"{domain}.conf"

    def ensure_modules(self, modules: list[str]) -> None:
        """``a2enmod`` the modules; already enabled ones are left alone by a2enmod itself.

        Without a2enmod (non-Debian layouts) the operator has to load
        them, so only a warning is logged.
        """
        if not modules:
            return
        if self._which("a2enmod") is None:
            logger.warning("a2enmod not found; make sure apache loads %s", ", ".join(modules))
            return
        receipt = self._executor.run(
            "vhost.apache.modules",
            f"Enable apache modules {', '.join(modules)}",
            ["a2enmod", "-q", *modules],
        )
        self._executor.require(receipt, tool="a2enmod")

    def enable(self, domain: str) -> None:
        if self._which("a2ensite") is None:
            self._link(domain)
            return
        receipt = self._executor.run(
            "vhost.apache.enable",
            f"Enable apache site {domain}",
            ["a2ensite", f"{domain}.conf"],
        )
        self._executor.require(receipt, tool="a2ensite", resource_key=domain)

    def disable(self, domain: str) -> None:
        if self._which("a2dissite") is None:
            self._unlink(domain)
            return
        receipt = self._executor.run(
            "vhost.apache.disable",
            f"Disable apache site {domain}",
            ["a2dissite", f"{domain}.conf"],
        )
        if receipt.failed:
            # Already disabled sites make a2dissite fail; the link is what matters
            self._unlink(domain)

    def config_test(self) -> bool:
        receipt = self._executor.run(
            "vhost.apache.configtest", "Test apache configuration", ["apachectl", "configtest"]
        )
        return receipt.ok


class NginxControl(WebServerControl):
    engine = WebServer.NGINX
    binary = "nginx"
    unit = "nginx"

    def config_path(self, domain: str) -> Path:
        return self.sites_dir / domain

    def enable(self, domain: str) -> None:
        self._link(domain)

    def disable(self, domain: str) -> None:
        self._unlink(domain)

    def config_test(self) -> bool:
        receipt = self._executor.run("vhost.nginx.configtest", "Test nginx configuration", ["nginx", "-t"])
        return receipt.ok


_CONTROLS: dict[WebServer, type[WebServerControl]] = {
    WebServer.APACHE: ApacheControl,
    WebServer.NGINX: NginxControl,
}


def detect_web_servers(settings: Settings, which: Which = shutil.which) -> list[WebServer]:
    """Engines to install vhosts for: configured, or whichever binaries exist."""
    if settings.web_servers != "auto":
        return list(settings.web_servers)
    return [engine for engine, control in _CONTROLS.items() if which(control.binary)]


def build_web_server_controls(
    executor: ActionExecutor,
    settings: Settings,
    services: ServiceManager,
    engines: list[WebServer],
    which: Which = shutil.which,
) -> dict[WebServer, WebServerControl]:
    dirs = {
        WebServer.APACHE: (settings.apache_sites_dir, settings.apache_enabled_dir),
        WebServer.NGINX: (settings.nginx_sites_dir, settings.nginx_enabled_dir),
    }
    return {
        engine: _CONTROLS[engine](executor, services, *dirs[engine], which=which)
        for engine in engines
    }
