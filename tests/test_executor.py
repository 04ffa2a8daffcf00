"""
Tests for the action executor — audit sink, confirmation, require, mutation counting.
"""

from pathlib import Path

import pytest

from devstack.adapters.mock import MockAdapter
from devstack.adapters.registry import AdapterRegistry
from devstack.core.engine.executor import ActionExecutor, generate_operation_id
from devstack.core.errors import DatabaseProvisionError, ExternalToolError
from devstack.core.models.action import Action, Receipt
from devstack.core.models.mode import ExecutionMode
from devstack.core.persistence.audit import AuditWriter


class TestExecute:
    """Tests for ActionExecutor.execute and its builders."""

    def test_operation_id_format(self):
        assert generate_operation_id().startswith("op-")
        assert generate_operation_id() != generate_operation_id()

    def test_audit_entry_per_action(self, executor: ActionExecutor):
        executor.run("cmd.one", "First command", ["true"])
        executor.run("cmd.two", "Second command", ["true"], read_only=True)

        entries = executor.audit.read_all()
        assert [e.action_id for e in entries] == ["cmd.one", "cmd.two"]
        assert entries[0].level == "INFO"
        assert entries[1].level == "DEBUG"
        assert all(e.operation_id == executor.operation_id for e in entries)

    def test_failed_action_logged_as_error(self, executor: ActionExecutor, shell: MockAdapter):
        shell.set_failure("cmd.bad", error="exit 1")
        receipt = executor.run("cmd.bad", "Bad command", ["false"])
        assert receipt.failed
        assert executor.audit.read_all()[-1].level == "ERROR"
        assert executor.audit.read_all()[-1].status == "failed"

    def test_audit_written_to_file(self, adapters: AdapterRegistry, tmp_path: Path):
        audit = AuditWriter(tmp_path / "log" / "devstack.ndjson")
        executor = ActionExecutor(adapters, audit=audit)
        executor.run("cmd", "A command", ["true"])
        assert len(audit.read_all()) == 1
        assert audit.path.is_file()

    def test_dry_run_entries_marked(self, dry_executor: ActionExecutor, shell: MockAdapter):
        receipt = dry_executor.run("cmd", "Would run", ["rm", "-rf", "/"])
        assert receipt.simulated
        assert shell.call_count == 0
        assert dry_executor.audit.read_all()[0].dry_run is True

    def test_secret_params_redacted(self, executor: ActionExecutor, shell: MockAdapter):
        executor.run("db", "Create user", ["mysql"], stdin="IDENTIFIED BY 'hunter2'", env={"TOKEN": "t0k"})
        action = shell.call_log[0].action
        assert action.redacted()["stdin"] == "***"
        assert action.redacted()["env"] == "***"
        dumped = [e.model_dump_json() for e in executor.audit.read_all()]
        assert not any("hunter2" in d or "t0k" in d for d in dumped)

    def test_fs_read_is_read_only(self, executor: ActionExecutor, tmp_path: Path):
        target = tmp_path / "file"
        target.write_text("x")
        executor.fs("r", "Read", "read", target)
        assert executor.mutation_count == 0

    def test_fs_secret_content_masked(self, executor: ActionExecutor, tmp_path: Path):
        executor.fs("w", "Write key", "write", tmp_path / "k", content="PRIVATE", secret=True)
        assert (tmp_path / "k").read_text() == "PRIVATE"
        assert "PRIVATE" not in executor.audit.read_all()[0].model_dump_json()


class TestMutationCount:
    """mutation_count counts only real, successful mutations."""

    def test_counts_mutations(self, executor: ActionExecutor):
        executor.run("a", "a", ["true"])
        executor.run("b", "b", ["true"])
        assert executor.mutation_count == 2

    def test_ignores_read_only_and_failures(self, executor: ActionExecutor, shell: MockAdapter):
        shell.set_failure("bad")
        executor.run("probe", "probe", ["true"], read_only=True)
        executor.run("bad", "bad", ["false"])
        assert executor.mutation_count == 0

    def test_ignores_simulated(self, dry_executor: ActionExecutor):
        dry_executor.run("a", "a", ["true"])
        assert dry_executor.mutation_count == 0


class TestConfirm:
    """Tests for ActionExecutor.confirm."""

    def _executor(self, adapters, answer=None, **mode) -> ActionExecutor:
        def prompt(_text: str) -> str:
            if answer is None:
                raise EOFError
            return answer

        return ActionExecutor(adapters, mode=ExecutionMode(**mode), prompt=prompt)

    def test_assume_yes(self, adapters):
        assert self._executor(adapters, answer="n", assume_yes=True).confirm("Go?")

    def test_dry_run_confirms(self, adapters):
        assert self._executor(adapters, answer="n", dry_run=True).confirm("Go?")

    @pytest.mark.parametrize("answer,expected", [("y", True), ("Y", True), (" y ", True), ("yes", False), ("n", False), ("", False)])
    def test_answers(self, adapters, answer, expected):
        assert self._executor(adapters, answer=answer).confirm("Go?") is expected

    def test_eof_declines(self, adapters):
        assert self._executor(adapters).confirm("Go?") is False

    def test_decision_audited(self, adapters):
        executor = self._executor(adapters, answer="n")
        executor.confirm("Delete everything?")
        entry = executor.audit.read_all()[0]
        assert entry.action_id == "confirm"
        assert entry.status == "declined"
        assert entry.message == "Delete everything?"


class TestRequire:
    """Tests for ActionExecutor.require."""

    def test_passes_success_through(self, executor: ActionExecutor):
        receipt = Receipt.success(adapter="shell", action_id="x")
        assert executor.require(receipt) is receipt

    def test_raises_on_failure(self, executor: ActionExecutor):
        receipt = Receipt.failure(
            adapter="shell",
            action_id="x",
            error="denied",
            metadata={"return_code": 1, "stdout": "ERROR 1045"},
        )
        with pytest.raises(ExternalToolError) as exc_info:
            executor.require(receipt, tool="mysql", resource_key="blog")
        assert exc_info.value.tool == "mysql"
        assert exc_info.value.returncode == 1
        assert exc_info.value.output == "ERROR 1045"
        assert exc_info.value.resource_key == "blog"

    def test_custom_error_class(self, executor: ActionExecutor):
        receipt = Receipt.failure(adapter="shell", action_id="x", error="nope")
        with pytest.raises(DatabaseProvisionError):
            executor.require(receipt, error_cls=DatabaseProvisionError)

    def test_unregistered_adapter_is_failure(self, executor: ActionExecutor):
        receipt = executor.execute("Ghost", Action(id="g", adapter="ghost"))
        assert receipt.failed
