"""
Tests for the adapter layer — registry dispatch, dry-run, shell and filesystem adapters.
"""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

from devstack.adapters.base import ExecutionContext
from devstack.adapters.mock import MockAdapter
from devstack.adapters.registry import AdapterRegistry
from devstack.adapters.shell.command import ShellCommandAdapter
from devstack.adapters.shell.filesystem import FilesystemAdapter
from devstack.core.models.action import Action, Receipt


def _fs(operation: str, path: Path, **params) -> Action:
    return Action(
        id=f"test.{operation}",
        adapter="filesystem",
        params={"operation": operation, "path": str(path), **params},
        read_only=operation in ("exists", "read"),
    )


class TestRegistry:
    """Dispatch through AdapterRegistry."""

    def test_unknown_adapter_fails(self):
        registry = AdapterRegistry()
        receipt = registry.execute_action(Action(id="x", adapter="nope"))
        assert receipt.failed
        assert "No adapter registered" in receipt.error

    def test_dispatches_to_registered(self):
        registry = AdapterRegistry()
        mock = MockAdapter(adapter_name="shell")
        registry.register(mock)
        receipt = registry.execute_action(Action(id="cmd", adapter="shell", params={"argv": ["true"]}))
        assert receipt.ok
        assert mock.action_ids == ["cmd"]

    def test_dry_run_simulates_mutations(self):
        registry = AdapterRegistry()
        mock = MockAdapter(adapter_name="shell")
        registry.register(mock)
        receipt = registry.execute_action(Action(id="cmd", adapter="shell"), dry_run=True)
        assert receipt.ok
        assert receipt.simulated
        assert mock.call_count == 0

    def test_dry_run_still_runs_read_only(self):
        registry = AdapterRegistry()
        mock = MockAdapter(adapter_name="shell")
        registry.register(mock)
        receipt = registry.execute_action(Action(id="probe", adapter="shell", read_only=True), dry_run=True)
        assert receipt.ok
        assert not receipt.simulated
        assert mock.action_ids == ["probe"]

    def test_validation_failure_reported(self):
        registry = AdapterRegistry()
        registry.register(FilesystemAdapter())
        receipt = registry.execute_action(Action(id="bad", adapter="filesystem", params={}))
        assert receipt.failed
        assert "Validation failed" in receipt.error

    def test_raising_adapter_becomes_failure(self):
        registry = AdapterRegistry()
        mock = MockAdapter(adapter_name="shell")
        mock.execute = MagicMock(side_effect=RuntimeError("boom"))
        registry.register(mock)
        receipt = registry.execute_action(Action(id="cmd", adapter="shell"))
        assert receipt.failed
        assert "boom" in receipt.error

    def test_mock_prefix_failure(self):
        mock = MockAdapter(adapter_name="shell")
        mock.set_failure("svc.", prefix=True)
        ctx = ExecutionContext(action=Action(id="svc.reload.nginx", adapter="shell"))
        assert mock.execute(ctx).failed


class TestShellCommandAdapter:
    """Tests for ShellCommandAdapter with subprocess patched."""

    def _ctx(self, **params) -> ExecutionContext:
        action = Action(id="cmd", adapter="shell", params=params)
        return ExecutionContext(action=action, params=params)

    def test_validate_requires_argv(self):
        ok, error = ShellCommandAdapter().validate(self._ctx())
        assert not ok
        assert "argv" in error

    def test_validate_rejects_missing_cwd(self, tmp_path: Path):
        ok, _ = ShellCommandAdapter().validate(self._ctx(argv=["ls"], cwd=str(tmp_path / "nope")))
        assert not ok

    @patch("devstack.adapters.shell.command.subprocess.run")
    def test_success(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess(["echo"], 0, stdout="hello\n", stderr="")
        receipt = ShellCommandAdapter().execute(self._ctx(argv=["echo", "hello"]))
        assert receipt.ok
        assert receipt.output == "hello"
        assert receipt.metadata["return_code"] == 0

    @patch("devstack.adapters.shell.command.subprocess.run")
    def test_stdin_and_env_passed_through(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess(["mysql"], 0, stdout="", stderr="")
        ShellCommandAdapter().execute(self._ctx(argv=["mysql"], stdin="SELECT 1;", env={"A": "b"}))
        kwargs = mock_run.call_args.kwargs
        assert kwargs["input"] == "SELECT 1;"
        assert kwargs["env"]["A"] == "b"
        assert mock_run.call_args.args[0] == ["mysql"]

    @patch("devstack.adapters.shell.command.subprocess.run")
    def test_nonzero_exit_is_failure(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess(["false"], 3, stdout="", stderr="bad thing")
        receipt = ShellCommandAdapter().execute(self._ctx(argv=["false"]))
        assert receipt.failed
        assert receipt.error == "bad thing"
        assert receipt.metadata["return_code"] == 3

    @patch("devstack.adapters.shell.command.subprocess.run", side_effect=FileNotFoundError())
    def test_missing_binary(self, _mock_run):
        receipt = ShellCommandAdapter().execute(self._ctx(argv=["nonexistent-tool"]))
        assert receipt.failed
        assert "Command not found" in receipt.error

    @patch(
        "devstack.adapters.shell.command.subprocess.run",
        side_effect=subprocess.TimeoutExpired(["sleep"], 5),
    )
    def test_timeout(self, _mock_run):
        receipt = ShellCommandAdapter().execute(self._ctx(argv=["sleep", "100"], timeout=5))
        assert receipt.failed
        assert "timed out" in receipt.error


class TestFilesystemAdapter:
    """Tests for FilesystemAdapter against tmp_path."""

    def _run(self, action: Action) -> Receipt:
        registry = AdapterRegistry()
        registry.register(FilesystemAdapter())
        return registry.execute_action(action)

    def test_write_and_read(self, tmp_path: Path):
        target = tmp_path / "sub" / "file.txt"
        assert self._run(_fs("write", target, content="hello")).ok
        receipt = self._run(_fs("read", target))
        assert receipt.output == "hello"

    def test_write_with_mode(self, tmp_path: Path):
        target = tmp_path / "secret.key"
        assert self._run(_fs("write", target, content="k", mode=0o600)).ok
        assert target.stat().st_mode & 0o777 == 0o600

    def test_read_missing_fails(self, tmp_path: Path):
        assert self._run(_fs("read", tmp_path / "nope")).failed

    def test_append(self, tmp_path: Path):
        target = tmp_path / "hosts"
        target.write_text("a\n")
        self._run(_fs("append", target, content="b\n"))
        assert target.read_text() == "a\nb\n"

    def test_copy(self, tmp_path: Path):
        source = tmp_path / "src.txt"
        source.write_text("data")
        target = tmp_path / "backup" / "copy.txt"
        assert self._run(_fs("copy", target, source=str(source))).ok
        assert target.read_text() == "data"

    def test_copy_missing_source_fails(self, tmp_path: Path):
        receipt = self._run(_fs("copy", tmp_path / "x", source=str(tmp_path / "missing")))
        assert receipt.failed

    def test_symlink_replaces_existing(self, tmp_path: Path):
        first = tmp_path / "a"
        second = tmp_path / "b"
        first.write_text("1")
        second.write_text("2")
        link = tmp_path / "enabled" / "site"
        self._run(_fs("symlink", link, source=str(first)))
        self._run(_fs("symlink", link, source=str(second)))
        assert link.is_symlink()
        assert link.read_text() == "2"

    def test_remove_missing_ok(self, tmp_path: Path):
        receipt = self._run(_fs("remove", tmp_path / "nope"))
        assert receipt.ok
        assert receipt.metadata["removed"] is False

    def test_remove_directory(self, tmp_path: Path):
        folder = tmp_path / "dir"
        (folder / "nested").mkdir(parents=True)
        assert self._run(_fs("remove", folder)).ok
        assert not folder.exists()

    def test_remove_lines(self, tmp_path: Path):
        target = tmp_path / "hosts"
        target.write_text("127.0.0.1 localhost\n127.0.0.1    blog.local\n")
        receipt = self._run(_fs("remove_lines", target, match="blog.local"))
        assert receipt.metadata["removed"] == 1
        assert target.read_text() == "127.0.0.1 localhost\n"

    def test_unknown_operation(self, tmp_path: Path):
        receipt = self._run(_fs("explode", tmp_path))
        assert receipt.failed
        assert "Unknown operation" in receipt.error
