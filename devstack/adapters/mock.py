"""
Mock adapter — records every action and answers from a script.

Stands in for the shell in tests. Each call is logged, and the receipt
comes from the first scripted rule whose action-id (exact or prefix)
matches, or a plain success.
"""

from __future__ import annotations

from dataclasses import dataclass

from devstack.adapters.base import Adapter, ExecutionContext
from devstack.core.models.action import Receipt


@dataclass
class _Rule:
    pattern: str
    receipt: Receipt
    prefix: bool = False

    def matches(self, action_id: str) -> bool:
        return action_id.startswith(self.pattern) if self.prefix else action_id == self.pattern


class MockAdapter(Adapter):
    """Scriptable adapter double; succeeds unless told otherwise."""

    def __init__(self, adapter_name: str = "mock", default_output: str = "[mock] executed"):
        self._name = adapter_name
        self._default_output = default_output
        self._rules: list[_Rule] = []
        self.call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_count(self) -> int:
        return len(self.call_log)

    @property
    def action_ids(self) -> list[str]:
        return [ctx.action.id for ctx in self.call_log]

    def is_available(self) -> bool:
        return True

    def set_response(self, action_id: str, receipt: Receipt) -> None:
        # Exact rules win over prefix rules
        self._rules.insert(0, _Rule(action_id, receipt))

    def set_failure(self, action_id: str, error: str = "Mock failure", prefix: bool = False) -> None:
        """Fail ``action_id``, or every id starting with it when ``prefix``."""
        receipt = Receipt.failure(adapter=self._name, action_id=action_id, error=error)
        if prefix:
            self._rules.append(_Rule(action_id, receipt, prefix=True))
        else:
            self.set_response(action_id, receipt)

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self.call_log.append(context)
        action_id = context.action.id
        for rule in self._rules:
            if rule.matches(action_id):
                return rule.receipt.model_copy(update={"action_id": action_id})
        return Receipt.success(
            adapter=self._name,
            action_id=action_id,
            output=self._default_output,
            metadata={"mock": True},
        )

    def reset(self) -> None:
        self.call_log.clear()
        self._rules.clear()
