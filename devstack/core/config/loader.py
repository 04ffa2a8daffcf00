"""
Configuration loader — reads devstack.yml into a Settings model.

Search order:
    explicit path  >  $DEVSTACK_CONFIG  >  /etc/devstack/devstack.yml

A missing file means "all defaults". A file that exists but cannot be
parsed or validated raises ConfigError.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from devstack.core.errors import ConfigError
from devstack.core.models.vhost import WebServer

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path("/etc/devstack")
CONFIG_FILE_NAME = "devstack.yml"
CONFIG_ENV_VAR = "DEVSTACK_CONFIG"


class Settings(BaseModel):
    """Host paths and tunables.

    Relative paths are resolved against ``config_dir``.
    """

    config_dir: Path = DEFAULT_CONFIG_DIR
    projects_dir: Path = Path("/var/www/html")
    hosts_file: Path = Path("/etc/hosts")
    backup_dir: Path = Path("backups")
    ssl_dir: Path = Path("/etc/ssl/devstack")
    apache_sites_dir: Path = Path("/etc/apache2/sites-available")
    apache_enabled_dir: Path = Path("/etc/apache2/sites-enabled")
    nginx_sites_dir: Path = Path("/etc/nginx/sites-available")
    nginx_enabled_dir: Path = Path("/etc/nginx/sites-enabled")
    registry_file: Path = Path("registry.json")
    log_file: Path = Path("devstack.ndjson")
    lock_dir: Path = Path("locks")

    php_fpm_socket: str = "/run/php/php8.2-fpm.sock"
    php_bin_dir: Path = Path("/usr/bin")
    sftp_group: str = "www-data"
    default_port: int = 3000
    port_ceiling: int = 65000
    command_timeout: int = 600

    web_servers: Literal["auto"] | list[WebServer] = "auto"
    opportunistic_tls: bool = False
    mongo_clients: list[str] = Field(default_factory=lambda: ["mongosh", "mongo"])

    @field_validator("default_port", "port_ceiling")
    @classmethod
    def _check_port(cls, value: int) -> int:
        if not 1 <= value <= 65535:
            raise ValueError(f"Port {value} is outside 1-65535")
        return value

    @model_validator(mode="after")
    def _resolve_relative(self) -> Settings:
        for name in (
            "projects_dir",
            "hosts_file",
            "backup_dir",
            "ssl_dir",
            "apache_sites_dir",
            "apache_enabled_dir",
            "nginx_sites_dir",
            "nginx_enabled_dir",
            "registry_file",
            "log_file",
            "lock_dir",
        ):
            value: Path = getattr(self, name)
            if not value.is_absolute():
                setattr(self, name, self.config_dir / value)
        if self.default_port > self.port_ceiling:
            raise ValueError("default_port must not exceed port_ceiling")
        return self


def find_config_file(explicit: Path | None = None) -> Path | None:
    """Locate the settings file, or None if there isn't one."""
    if explicit is not None:
        return explicit
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    candidate = DEFAULT_CONFIG_DIR / CONFIG_FILE_NAME
    return candidate if candidate.is_file() else None


def load_settings(path: Path | None = None) -> Settings:
    """Load and validate settings.

    Args:
        path: Explicit settings file. If None, searches the default locations.

    Raises:
        ConfigError: If the file is unreadable or invalid.
    """
    path = find_config_file(path)
    if path is None:
        logger.debug("No %s found — using defaults", CONFIG_FILE_NAME)
        return Settings()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "devstack" key or be flat
    data = data.get("devstack", data)

    try:
        return Settings.model_validate(data)
    except ValueError as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from e
