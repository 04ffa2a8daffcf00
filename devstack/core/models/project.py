"""
Project request — what the operator asked the orchestrator to build.

A ProjectRequest is immutable once constructed. Construction from raw
input goes through :meth:`ProjectRequest.from_input`, which converts
pydantic validation failures into the domain ``ValidationError`` so
that nothing downstream has to know about pydantic.
"""

from __future__ import annotations

import re
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from devstack.core.errors import ValidationError

# RFC 1123 hostname, at least two labels (e.g. blog.local)
_DOMAIN_RE = re.compile(
    r"^(?=.{1,253}$)([a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?)(\.[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?)+$"
)

NODE_SPA_VARIANTS = ("react", "vue", "svelte", "solid")
DEFAULT_DOTNET_TEMPLATE = "webapi"


class StackKind(StrEnum):
    """Supported project stacks."""

    FRAMEWORK_PHP = "framework-php"
    CMS = "cms"
    STATIC = "static"
    NODE_SPA = "node-spa"
    NODE_SERVER = "node-server"
    DOTNET_APP = "dotnet-app"
    STATIC_BOOTSTRAP = "static-bootstrap"


class StackSpec(BaseModel):
    """Tagged stack variant: the kind plus its generator options.

    Options understood today:
        node-spa:   ``template`` (react | vue | svelte | solid)
        dotnet-app: ``template`` (any ``dotnet new`` short name)
    """

    model_config = ConfigDict(frozen=True)

    kind: StackKind
    options: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _default_template(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        options = dict(data.get("options") or {})
        if "template" not in options:
            kind = data.get("kind")
            if kind == StackKind.NODE_SPA:
                options["template"] = NODE_SPA_VARIANTS[0]
            elif kind == StackKind.DOTNET_APP:
                options["template"] = DEFAULT_DOTNET_TEMPLATE
        return {**data, "options": options}

    @model_validator(mode="after")
    def _check_options(self) -> StackSpec:
        template = self.options.get("template")
        if self.kind == StackKind.NODE_SPA and template not in NODE_SPA_VARIANTS:
            raise ValueError(
                f"Unknown node-spa template '{template}'. "
                f"Valid: {', '.join(NODE_SPA_VARIANTS)}"
            )
        return self

    @classmethod
    def parse(cls, value: str) -> StackSpec:
        """Parse CLI shorthand such as ``node-spa:vue`` or ``dotnet-app:mvc``."""
        kind, _, template = value.partition(":")
        options = {"template": template} if template else {}
        return cls(kind=StackKind(kind), options=options)

    @property
    def label(self) -> str:
        template = self.options.get("template")
        return f"{self.kind.value}:{template}" if template else self.kind.value


def domain_label(name: str) -> str:
    """Turn a project name into a DNS label (``My Blog`` → ``my-blog``)."""
    label = re.sub(r"[^a-z0-9-]+", "-", name.strip().lower())
    label = re.sub(r"-{2,}", "-", label).strip("-")
    return label[:63].rstrip("-")


def is_valid_domain(domain: str) -> bool:
    return bool(_DOMAIN_RE.match(domain))


class ProjectRequest(BaseModel):
    """A fully populated project creation request."""

    model_config = ConfigDict(frozen=True)

    name: str
    root_dir: Path
    stack: StackSpec
    port: int | None = None
    domain: str = Field(default="", validate_default=True)
    tls: bool = False
    database: str | None = None   # DbEngine value; validated by the provisioner

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Project name is required")
        if "/" in value or "\\" in value or value in {".", ".."} or "\x00" in value:
            raise ValueError(f"Project name '{value}' is not a valid directory name")
        return value

    @field_validator("port")
    @classmethod
    def _check_port(cls, value: int | None) -> int | None:
        if value is not None and not 1 <= value <= 65535:
            raise ValueError(f"Port {value} is outside 1-65535")
        return value

    @model_validator(mode="before")
    @classmethod
    def _default_domain(cls, data: Any) -> Any:
        if isinstance(data, dict) and not str(data.get("domain") or "").strip():
            label = domain_label(str(data.get("name") or ""))
            if label:
                data = {**data, "domain": f"{label}.local"}
        return data

    @field_validator("domain")
    @classmethod
    def _check_domain(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("Cannot derive a domain from the project name; pass one explicitly")
        if not is_valid_domain(value):
            raise ValueError(f"Invalid domain '{value}'")
        return value

    @property
    def project_path(self) -> Path:
        """Directory the project is scaffolded into."""
        return self.root_dir / self.name

    @classmethod
    def from_input(cls, **fields: Any) -> ProjectRequest:
        """Build a request, raising the domain ValidationError on bad input."""
        stack = fields.get("stack")
        try:
            if isinstance(stack, str):
                fields["stack"] = StackSpec.parse(stack)
            return cls(**fields)
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}"
                for err in e.errors()
            )
            raise ValidationError(problems) from e
        except ValueError as e:
            raise ValidationError(str(e)) from e
