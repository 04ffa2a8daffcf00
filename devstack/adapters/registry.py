"""
Adapter registry — routes each Action to the adapter named in it.

Dry-run is decided here rather than in every adapter: a mutating
action is validated and then answered with a simulated receipt, while
read-only probes (``dpkg -s``, ``nginx -t`` lookups, file reads) still
run so a preview sees the real state of the machine.
"""

from __future__ import annotations

import logging
import time

from devstack.adapters.base import Adapter, ExecutionContext
from devstack.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Name → adapter table plus the single dispatch entry point.

    Args:
        default_timeout: Seconds a spawned command may run when the
            caller does not pass one.
    """

    def __init__(self, default_timeout: int = 600):
        self._adapters: dict[str, Adapter] = {}
        self._default_timeout = default_timeout

    def register(self, adapter: Adapter) -> None:
        if adapter.name in self._adapters:
            logger.warning("Replacing adapter %r", adapter.name)
        self._adapters[adapter.name] = adapter

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def execute_action(
        self,
        action: Action,
        working_dir: str | None = None,
        dry_run: bool = False,
        timeout: int | None = None,
    ) -> Receipt:
        """Validate, then run or simulate ``action``. Never raises."""
        adapter = self._adapters.get(action.adapter)
        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        context = ExecutionContext(
            action=action,
            working_dir=working_dir,
            dry_run=dry_run,
            timeout=timeout or self._default_timeout,
            params=action.params,
        )
        logger.debug("→ %s %s %s", action.adapter, action.id, action.redacted())

        problem = self._validate(adapter, context)
        if problem:
            return Receipt.failure(adapter=action.adapter, action_id=action.id, error=problem)

        if dry_run and not action.read_only:
            return Receipt.success(
                adapter=action.adapter,
                action_id=action.id,
                output=f"[dry-run] {action.name or action.id}",
                metadata={"dry_run": True},
            )

        started = time.monotonic()
        try:
            receipt = adapter.execute(context)
        except Exception as e:
            logger.error("Adapter %s raised on %s: %s", action.adapter, action.id, e)
            receipt = Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )
        receipt.duration_ms = int((time.monotonic() - started) * 1000)
        return receipt

    @staticmethod
    def _validate(adapter: Adapter, context: ExecutionContext) -> str:
        """Empty string when the action is acceptable, else the reason."""
        try:
            ok, reason = adapter.validate(context)
        except Exception as e:
            return f"Validation error: {e}"
        return "" if ok else f"Validation failed: {reason}"
