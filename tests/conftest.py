"""
Shared test fixtures and configuration.

Every system file (hosts table, vhost dirs, ssl dir, registry) lives
under ``tmp_path``. External commands go to a MockAdapter registered
as "shell"; filesystem actions use the real FilesystemAdapter.
"""

import logging
from pathlib import Path

import pytest
from helpers import INITIAL_HOSTS, BusyPorts, FakeWhich

from devstack.adapters.mock import MockAdapter
from devstack.adapters.registry import AdapterRegistry
from devstack.adapters.shell.filesystem import FilesystemAdapter
from devstack.core.config.loader import Settings
from devstack.core.engine.executor import ActionExecutor
from devstack.core.models.mode import ExecutionMode
from devstack.core.observability.logging_config import SecretMaskFilter
from devstack.core.use_cases.wiring import build_toolkit


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with every path under tmp_path and both web servers configured."""
    hosts_file = tmp_path / "hosts"
    hosts_file.write_text(INITIAL_HOSTS)
    return Settings(
        config_dir=tmp_path / "etc",
        projects_dir=tmp_path / "www",
        hosts_file=hosts_file,
        ssl_dir=tmp_path / "ssl",
        apache_sites_dir=tmp_path / "apache" / "sites-available",
        apache_enabled_dir=tmp_path / "apache" / "sites-enabled",
        nginx_sites_dir=tmp_path / "nginx" / "sites-available",
        nginx_enabled_dir=tmp_path / "nginx" / "sites-enabled",
        web_servers=["apache", "nginx"],
    )


@pytest.fixture
def shell() -> MockAdapter:
    """Mock standing in for every external command."""
    return MockAdapter(adapter_name="shell")


@pytest.fixture
def adapters(shell: MockAdapter) -> AdapterRegistry:
    registry = AdapterRegistry()
    registry.register(shell)
    registry.register(FilesystemAdapter())
    return registry


@pytest.fixture
def executor(adapters: AdapterRegistry) -> ActionExecutor:
    return ActionExecutor(adapters, mode=ExecutionMode(assume_yes=True))


@pytest.fixture
def dry_executor(adapters: AdapterRegistry) -> ActionExecutor:
    return ActionExecutor(adapters, mode=ExecutionMode(dry_run=True, assume_yes=True))


@pytest.fixture
def make_toolkit(settings: Settings, adapters: AdapterRegistry):
    """Factory: build_toolkit with fake tool lookup and port probe."""

    def _make(
        dry_run: bool = False,
        tools: tuple[str, ...] = (),
        busy: tuple[int, ...] = (),
        engines=None,
        environ=None,
    ):
        return build_toolkit(
            settings,
            ExecutionMode(dry_run=dry_run, assume_yes=True),
            adapters=adapters,
            engines=engines,
            which=FakeWhich(*tools),
            probe=BusyPorts(*busy),
            environ=environ or {},
        )

    return _make


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """CLI invocations install handlers on the root logger; drop them afterwards."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if any(isinstance(f, SecretMaskFilter) for f in handler.filters):
            root.removeHandler(handler)
    root.setLevel(level)
