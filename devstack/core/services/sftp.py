"""
SFTP accounts — a login-less system user per project folder.

The account's home is the project folder, its shell is ``nologin`` and
it joins the web server's group so uploads stay readable by the site.
The optional password reaches ``chpasswd`` on stdin only.

Restricting the account to SFTP (``Match User`` / ``ChrootDirectory``
in sshd_config) is left to the operator.
"""

from __future__ import annotations

import logging
import re
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from devstack.core.engine.executor import ActionExecutor
from devstack.core.errors import CapabilityUnavailableError, ValidationError
from devstack.core.services.capabilities import PackageManager, ServiceManager

logger = logging.getLogger(__name__)

_USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_-]{0,31}$")

FTP_PACKAGE = "vsftpd"
NOLOGIN_SHELL = "/usr/sbin/nologin"


@dataclass
class SftpAccount:
    username: str
    home: Path
    group: str
    created: bool = True
    password_set: bool = False

    def to_dict(self) -> dict:
        return {
            "username": self.username,
            "home": str(self.home),
            "group": self.group,
            "created": self.created,
            "password_set": self.password_set,
        }


class SftpAccounts:
    """useradd / usermod / chpasswd through the executor."""

    def __init__(
        self,
        executor: ActionExecutor,
        packages: PackageManager,
        services: ServiceManager,
        group: str = "www-data",
        which: Callable[[str], str | None] = shutil.which,
    ):
        self._executor = executor
        self._packages = packages
        self._services = services
        self._group = group
        self._which = which

    def install_server(self) -> bool:
        """Install vsftpd and make sure it runs. Returns whether the service is up."""
        self._packages.ensure_installed(FTP_PACKAGE)
        return self._services.ensure_running(FTP_PACKAGE)

    def exists(self, username: str) -> bool:
        receipt = self._executor.run(
            f"sftp.query.{username}", f"Look up user {username}", ["id", "-u", username], read_only=True
        )
        return receipt.ok

    def add_user(self, username: str, folder: Path, password: str | None = None) -> SftpAccount:
        """Create ``username`` with ``folder`` as its home; an existing user is kept.

        Raises:
            ValidationError: Bad username or relative folder.
            CapabilityUnavailableError: useradd is missing.
            ExternalToolError: A user-management command failed.
        """
        if not _USERNAME_RE.match(username):
            raise ValidationError(f"Invalid username '{username}'", resource_key=username)
        if not folder.is_absolute():
            raise ValidationError(f"Folder must be an absolute path: {folder}", resource_key=username)
        if self._which("useradd") is None:
            raise CapabilityUnavailableError("useradd")

        receipt = self._executor.fs(f"sftp.mkdir.{username}", f"Create {folder}", "mkdir", folder)
        self._executor.require(receipt, tool="filesystem", resource_key=username)

        account = SftpAccount(username=username, home=folder, group=self._group)
        if self.exists(username):
            logger.info("User %s already exists", username)
            account.created = False
        else:
            receipt = self._executor.run(
                f"sftp.useradd.{username}",
                f"Create user {username} (home {folder})",
                ["useradd", "-M", "-s", NOLOGIN_SHELL, "-d", str(folder), username],
            )
            self._executor.require(receipt, tool="useradd", resource_key=username)

        receipt = self._executor.run(
            f"sftp.group.{username}",
            f"Add {username} to group {self._group}",
            ["usermod", "-a", "-G", self._group, username],
        )
        self._executor.require(receipt, tool="usermod", resource_key=username)

        if password:
            receipt = self._executor.run(
                f"sftp.password.{username}",
                f"Set password for {username}",
                ["chpasswd"],
                stdin=f"{username}:{password}\n",
            )
            self._executor.require(receipt, tool="chpasswd", resource_key=username)
            account.password_set = True

        logger.info("SFTP user %s ready (home %s)", username, folder)
        return account
