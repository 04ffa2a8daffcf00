"""
PHP versions — list, install (Ondřej Surý's PPA) and switch the CLI default.

Installed versions are the ``php<major>.<minor>`` binaries in the bin
directory. Switching goes through ``update-alternatives``; vhosts keep
using the FPM socket named in the settings.
"""

from __future__ import annotations

import logging
import re
import shutil
from collections.abc import Callable
from pathlib import Path

from devstack.core.engine.executor import ActionExecutor
from devstack.core.errors import ValidationError
from devstack.core.services.capabilities import PackageManager

logger = logging.getLogger(__name__)

PPA = "ppa:ondrej/php"
EXTENSIONS = ("fpm", "cli", "gd", "mbstring", "xml", "curl", "zip", "mysql")

_VERSION_RE = re.compile(r"^\d+\.\d+$")
_BINARY_RE = re.compile(r"^php(\d+\.\d+)$")


def check_version(version: str) -> str:
    version = version.strip()
    if not _VERSION_RE.match(version):
        raise ValidationError(f"Invalid PHP version '{version}' (expected e.g. 8.2)")
    return version


def fpm_socket(version: str) -> str:
    return f"/run/php/php{version}-fpm.sock"


def version_packages(version: str) -> list[str]:
    return [f"php{version}", *(f"php{version}-{ext}" for ext in EXTENSIONS)]


class PhpVersions:
    def __init__(
        self,
        executor: ActionExecutor,
        packages: PackageManager,
        bin_dir: Path = Path("/usr/bin"),
        which: Callable[[str], str | None] = shutil.which,
    ):
        self._executor = executor
        self._packages = packages
        self._bin_dir = bin_dir
        self._which = which

    def installed(self) -> list[str]:
        """Versions with a ``php<version>`` binary, oldest first."""
        if not self._bin_dir.is_dir():
            return []
        matches = (_BINARY_RE.match(p.name) for p in self._bin_dir.iterdir())
        found = [m.group(1) for m in matches if m]
        return sorted(found, key=lambda v: tuple(int(part) for part in v.split(".")))

    def binary(self, version: str) -> Path:
        return self._bin_dir / f"php{version}"

    def install(self, version: str) -> list[str]:
        """Install PHP ``version`` with the usual extensions. Returns the packages that were missing.

        Raises:
            ValidationError: ``version`` is not ``<major>.<minor>``.
            CapabilityUnavailableError: apt-get is missing.
            ExternalToolError: The PPA or a package could not be installed.
        """
        version = check_version(version)
        missing = [p for p in version_packages(version) if not self._packages.is_installed(p)]
        if not missing:
            logger.info("PHP %s is already installed", version)
            return []

        if self._which("add-apt-repository") is None:
            logger.warning("add-apt-repository not found; relying on the configured apt sources for PHP %s", version)
        else:
            receipt = self._executor.run(
                "php.ppa", f"Add {PPA}", ["add-apt-repository", "-y", PPA], env={"DEBIAN_FRONTEND": "noninteractive"}
            )
            self._executor.require(receipt, tool="add-apt-repository")

        for package in missing:
            self._packages.ensure_installed(package)
        return missing

    def use(self, version: str) -> Path:
        """Make ``php<version>`` the default ``php``.

        Raises:
            ValidationError: Bad version string, or that version is not installed.
            ExternalToolError: update-alternatives refused.
        """
        version = check_version(version)
        binary = self.binary(version)
        if not binary.exists():
            raise ValidationError(f"php{version} is not installed; run: devstack php install {version}")
        receipt = self._executor.run(
            f"php.use.{version}",
            f"Switch php CLI to {version}",
            ["update-alternatives", "--set", "php", str(binary)],
        )
        self._executor.require(receipt, tool="update-alternatives")
        return binary
