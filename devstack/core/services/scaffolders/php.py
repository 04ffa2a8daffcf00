"""PHP stacks: Laravel (framework-php) and WordPress (cms)."""

from __future__ import annotations

import logging
from pathlib import Path

from devstack.core.errors import ScaffoldError
from devstack.core.models.project import StackKind
from devstack.core.services.scaffolders.base import Requirement, Scaffolder

logger = logging.getLogger(__name__)

WORDPRESS_URL = "https://wordpress.org/latest.zip"


class LaravelScaffolder(Scaffolder):
    kind = StackKind.FRAMEWORK_PHP
    backend_protocol = "fastcgi"
    requires = (Requirement("php", "php-cli"), Requirement("composer", "composer"))

    def generate(self, name: str, target_dir: Path, options: dict[str, str]) -> Path:
        receipt = self._executor.run(
            "scaffold.composer",
            f"Create Laravel project {name}",
            ["composer", "create-project", "--prefer-dist", "laravel/laravel", str(target_dir)],
            cwd=target_dir.parent,
        )
        self._check(receipt, "composer", target_dir)
        return target_dir / "public"

    def locate(self, target_dir: Path) -> Path:
        public = target_dir / "public"
        if not public.is_dir():
            raise ScaffoldError(
                f"{target_dir} exists but has no public/ directory; not a Laravel project?",
                resource_key=str(target_dir),
            )
        return public


class WordPressScaffolder(Scaffolder):
    kind = StackKind.CMS
    backend_protocol = "fastcgi"
    requires = (Requirement("curl", "curl"), Requirement("unzip", "unzip"))

    def generate(self, name: str, target_dir: Path, options: dict[str, str]) -> Path:
        staging = target_dir.parent / f".{target_dir.name}.download"
        archive = staging / "latest.zip"
        self._mkdir(staging)

        receipt = self._executor.run(
            "scaffold.wordpress.download",
            f"Download {WORDPRESS_URL}",
            ["curl", "-fsSL", "-o", str(archive), WORDPRESS_URL],
        )
        self._check(receipt, "curl", target_dir)

        receipt = self._executor.run(
            "scaffold.wordpress.unzip",
            f"Unpack {archive}",
            ["unzip", "-oq", str(archive), "-d", str(staging)],
        )
        self._check(receipt, "unzip", target_dir)

        receipt = self._executor.fs(
            "scaffold.wordpress.copy",
            f"Copy WordPress into {target_dir}",
            "copy",
            target_dir,
            source=str(staging / "wordpress"),
        )
        self._check(receipt, "filesystem", target_dir)

        receipt = self._executor.fs("scaffold.wordpress.cleanup", f"Remove {staging}", "remove", staging)
        if receipt.failed:
            logger.warning("Could not remove %s: %s", staging, receipt.error)
        return target_dir
