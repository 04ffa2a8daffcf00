"""
Tests for the CLI — invoked through click's CliRunner with a pre-seeded ctx.obj.
"""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner
from helpers import INITIAL_HOSTS, BusyPorts, FakeWhich

from devstack.adapters.registry import AdapterRegistry
from devstack.core.config.loader import Settings
from devstack.core.models.resource import ResourceKind
from devstack.core.persistence.lock import DomainLock
from devstack.core.persistence.registry_store import ResourceRegistry
from devstack.main import cli


@pytest.fixture
def invoke(settings: Settings, adapters: AdapterRegistry):
    """Run the CLI against tmp settings, the mocked shell and no real tools."""

    def _invoke(*args: str, input: str | None = None, **overrides):
        obj = {
            "settings": settings,
            "adapters": adapters,
            "which": FakeWhich(),
            "probe": BusyPorts(),
            "environ": {},
        }
        obj.update(overrides)
        return CliRunner().invoke(cli, list(args), obj=obj, input=input)

    return _invoke


class TestCLI:
    """Basic CLI invocation tests."""

    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "local web development" in result.output
        for command in ("create", "remove", "status", "hosts", "vhost", "db"):
            assert command in result.output

    def test_version(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_missing_config_exits_3(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(tmp_path / "nope.yml"), "status"])
        assert result.exit_code == 3
        assert "Config file not found" in result.output

    def test_invalid_config_exits_3(self, tmp_path: Path):
        config = tmp_path / "devstack.yml"
        config.write_text("default_port: 99999\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config), "status"])
        assert result.exit_code == 3


class TestCreateCommand:
    def test_create_json(self, invoke, settings: Settings):
        result = invoke("--quiet", "create", "blog", "--stack", "static", "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["state"] == "complete"
        assert data["domain"] == "blog.local"
        assert data["exit_code"] == 0
        assert "blog.local" in settings.hosts_file.read_text()

    def test_create_human(self, invoke):
        result = invoke("create", "blog", "--stack", "static")
        assert result.exit_code == 0
        assert "Complete" in result.output
        assert "http://blog.local/" in result.output

    def test_dry_run_writes_nothing(self, invoke, settings: Settings):
        result = invoke("--dry-run", "create", "blog", "--stack", "static")
        assert result.exit_code == 0
        assert "[dry-run]" in result.output
        assert settings.hosts_file.read_text() == INITIAL_HOSTS
        assert not settings.projects_dir.exists()
        assert not settings.registry_file.exists()

    def test_bad_stack_exits_1(self, invoke):
        result = invoke("create", "blog", "--stack", "cobol")
        assert result.exit_code == 1
        assert "Failed at requested" in result.output


class TestStatusAndRemove:
    def test_status_after_create(self, invoke):
        invoke("create", "blog", "--stack", "static")
        result = invoke("--quiet", "status", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        refs = {r["ref"] for r in data["resources"]}
        assert "hosts-entry:blog.local" in refs
        assert data["drifted"] == 0

    def test_status_empty(self, invoke):
        result = invoke("status")
        assert result.exit_code == 0
        assert "No managed resources" in result.output

    def test_remove_with_yes(self, invoke, settings: Settings):
        invoke("create", "blog", "--stack", "static")
        result = invoke("--yes", "remove", "blog.local")
        assert result.exit_code == 0
        assert "Removed blog.local" in result.output
        assert settings.hosts_file.read_text() == INITIAL_HOSTS

    def test_remove_declined(self, invoke, settings: Settings):
        invoke("create", "blog", "--stack", "static")
        result = invoke("remove", "blog.local", input="n\n")
        assert "Aborted." in result.output
        assert "blog.local" in settings.hosts_file.read_text()


class TestSubcommands:
    def test_hosts_add_and_list(self, invoke, settings: Settings):
        result = invoke("hosts", "add", "shop.local")
        assert result.exit_code == 0
        assert "Added shop.local" in result.output
        assert ResourceRegistry(settings.registry_file).exists(ResourceKind.HOSTS_ENTRY, "shop.local")

        listed = invoke("--quiet", "hosts", "list", "--json")
        assert json.loads(listed.output)["shop.local"] == ["127.0.0.1"]

    def test_port_find_skips_busy(self, invoke):
        result = invoke("port", "find", probe=BusyPorts(3000, 3001))
        assert result.exit_code == 0
        assert result.output.strip() == "3002"

    def test_port_check_busy(self, invoke):
        result = invoke("port", "check", "8080", probe=BusyPorts(8080))
        assert result.exit_code == 1
        assert "in use" in result.output

    def test_registry_list(self, invoke):
        invoke("create", "blog", "--stack", "static")
        result = invoke("--quiet", "registry", "list", "--json")
        assert result.exit_code == 0
        refs = [r["kind"] + ":" + r["key"] for r in json.loads(result.output)]
        assert "nginx-vhost:blog.local" in refs

    def test_db_create_sqlite(self, invoke, tmp_path: Path):
        result = invoke("--quiet", "db", "create", "notes", "--engine", "sqlite", "--project-dir", str(tmp_path), "--json")
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["database"] == "notes"
        assert (tmp_path / "database.sqlite").is_file()

    def test_db_create_twice_reuses(self, invoke, tmp_path: Path):
        args = ("--quiet", "db", "create", "notes", "--engine", "sqlite", "--project-dir", str(tmp_path), "--json")
        assert json.loads(invoke(*args).output)["created"] is True
        again = invoke(*args)
        assert again.exit_code == 0, again.output
        assert json.loads(again.output)["created"] is False

    def test_db_create_identifier_taken(self, invoke, tmp_path: Path):
        first = invoke("db", "create", "My App", "--engine", "sqlite", "--project-dir", str(tmp_path / "a"))
        assert first.exit_code == 0, first.output
        result = invoke("db", "create", "my-app", "--engine", "sqlite", "--project-dir", str(tmp_path / "b"))
        assert result.exit_code == 1
        assert "ResourceConflictError" in result.output
        assert not (tmp_path / "b" / "database.sqlite").exists()

    def test_db_create_mysql_missing_client(self, invoke, tmp_path: Path):
        result = invoke("db", "create", "notes", "--project-dir", str(tmp_path))
        assert result.exit_code == 1
        assert "DatabaseProvisionError" in result.output

    def test_git_init_without_token(self, invoke, tmp_path: Path):
        project = tmp_path / "proj"
        project.mkdir()
        result = invoke("git", "init", str(project), "--github", "proj", which=FakeWhich("git", "gh"))
        assert result.exit_code == 0, result.output
        assert "Committed: yes" in result.output
        assert "GITHUB_TOKEN" in result.output


class TestDomainLocking:
    """Commands that write hosts, certificate or vhost files take the per-domain lock."""

    @pytest.mark.parametrize(
        "args",
        [
            ("hosts", "add", "blog.local"),
            ("--yes", "hosts", "remove", "blog.local"),
            ("cert", "obtain", "blog.local"),
            ("--yes", "cert", "remove", "blog.local"),
            ("vhost", "install", "blog.local", "{root}"),
            ("--yes", "vhost", "remove", "blog.local"),
        ],
    )
    def test_held_lock_exits_1(self, invoke, settings: Settings, tmp_path: Path, args: tuple[str, ...]):
        before = settings.hosts_file.read_text()
        argv = [a.format(root=tmp_path / "site") for a in args]
        with DomainLock(settings.lock_dir, "blog.local"):
            result = invoke(*argv)
        assert result.exit_code == 1
        assert "LockUnavailableError" in result.output
        assert settings.hosts_file.read_text() == before
        assert not settings.registry_file.exists()

    def test_lock_released_after_command(self, invoke, settings: Settings):
        assert invoke("hosts", "add", "blog.local").exit_code == 0
        with DomainLock(settings.lock_dir, "blog.local") as lock:
            assert lock.held

    def test_dry_run_ignores_held_lock(self, invoke, settings: Settings):
        with DomainLock(settings.lock_dir, "blog.local"):
            result = invoke("--dry-run", "hosts", "add", "blog.local")
        assert result.exit_code == 0
        assert settings.hosts_file.read_text() == INITIAL_HOSTS


class TestSftpAndPhpCommands:
    def test_sftp_add_user_json(self, invoke, adapters, tmp_path: Path):
        adapters.get("shell").set_failure("sftp.query.uploader")
        result = invoke(
            "--quiet", "sftp", "add-user", "uploader", str(tmp_path / "blog"), "--json", which=FakeWhich("useradd")
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["created"] is True
        assert data["home"] == str(tmp_path / "blog")

    def test_sftp_password_prompt_not_echoed(self, invoke, adapters, tmp_path: Path):
        result = invoke(
            "sftp", "add-user", "uploader", str(tmp_path), "--set-password",
            input="pa55-word\npa55-word\n",
            which=FakeWhich("useradd"),
        )
        assert result.exit_code == 0, result.output
        assert "Password: set" in result.output
        assert "pa55-word" not in result.output
        assert adapters.get("shell").call_log[-1].action.params["stdin"] == "uploader:pa55-word\n"

    def test_php_list(self, invoke, settings: Settings, tmp_path: Path):
        settings.php_bin_dir = tmp_path / "bin"
        settings.php_bin_dir.mkdir()
        (settings.php_bin_dir / "php8.2").write_text("")
        result = invoke("--quiet", "php", "list", "--json")
        assert result.exit_code == 0
        assert json.loads(result.output) == ["8.2"]

    def test_php_use_missing_version(self, invoke, settings: Settings, tmp_path: Path):
        settings.php_bin_dir = tmp_path / "bin"
        result = invoke("php", "use", "8.3")
        assert result.exit_code == 1
        assert "not installed" in result.output

    def test_php_use_hints_socket(self, invoke, settings: Settings, tmp_path: Path):
        settings.php_bin_dir = tmp_path / "bin"
        settings.php_bin_dir.mkdir()
        (settings.php_bin_dir / "php8.3").write_text("")
        result = invoke("php", "use", "8.3")
        assert result.exit_code == 0, result.output
        assert "php_fpm_socket: /run/php/php8.3-fpm.sock" in result.output
