"""
Action and Receipt — what the executor asks for and what it gets back.

Components describe a side effect as an Action (run this argv, write this
file) and the adapter answers with a Receipt. A failing command is a
failed Receipt, not an exception; ``ActionExecutor.require`` turns it
into one of the error kinds when the caller cannot continue.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

REDACTED = "***"


class Action(BaseModel):
    """One side effect, addressed to a named adapter.

    ``read_only`` probes (``dpkg -s``, ``systemctl is-active``, file
    reads) run even under dry-run. Params named in ``secret_params``
    (SQL on stdin, a token in env, key material) are masked by
    :meth:`redacted` wherever the action is shown or logged.
    """

    id: str                         # dotted id, e.g. "vhost.nginx.configtest"
    name: str = ""                  # human description
    adapter: str                    # "shell" or "filesystem"
    params: dict[str, Any] = Field(default_factory=dict)
    read_only: bool = False
    secret_params: list[str] = Field(default_factory=list)

    def redacted(self) -> dict[str, Any]:
        return {key: REDACTED if key in self.secret_params else value for key, value in self.params.items()}


class Receipt(BaseModel):
    """Outcome of one Action.

    ``metadata`` carries adapter detail: ``return_code`` and ``stdout``
    for commands, ``dry_run`` when the registry simulated the action.
    """

    adapter: str
    action_id: str
    status: Literal["ok", "failed"] = "ok"
    output: str = ""
    error: str | None = None
    duration_ms: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def simulated(self) -> bool:
        return bool(self.metadata.get("dry_run"))

    @property
    def returncode(self) -> int | None:
        return self.metadata.get("return_code")

    @property
    def tool_output(self) -> str:
        """What the tool printed, for failure reports."""
        return self.metadata.get("stdout", "") or self.error or ""

    @classmethod
    def success(cls, adapter: str, action_id: str, output: str = "", **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, output=output, **kwargs)

    @classmethod
    def failure(cls, adapter: str, action_id: str, error: str, **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="failed", error=error, **kwargs)
