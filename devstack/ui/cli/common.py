"""
Shared CLI plumbing — settings, execution mode and component wiring from ctx.obj.

``ctx.obj`` may be pre-seeded (tests do this) with ``adapters``,
``which``, ``probe``, ``prompt`` and ``environ`` overrides.
"""

from __future__ import annotations

import shutil
import sys
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager, nullcontext

import click

from devstack.core.config.loader import Settings, load_settings
from devstack.core.errors import ConfigError, DevstackError
from devstack.core.models.mode import ExecutionMode
from devstack.core.models.resource import ResourceKind
from devstack.core.models.state import EXIT_CONFIG_ERROR, EXIT_FAILED_CLEAN
from devstack.core.models.vhost import WebServer
from devstack.core.persistence.lock import DomainLock
from devstack.core.services.ports import port_in_use
from devstack.core.use_cases.wiring import Toolkit, build_toolkit


def fail(message: str, code: int = EXIT_FAILED_CLEAN) -> None:
    click.secho(f"❌ {message}", fg="red", err=True)
    sys.exit(code)


def get_settings(ctx: click.Context) -> Settings:
    """Load settings once per invocation; exit 3 if they are invalid."""
    settings = ctx.obj.get("settings")
    if settings is None:
        try:
            settings = load_settings(ctx.obj.get("config_path"))
        except ConfigError as e:
            fail(str(e), EXIT_CONFIG_ERROR)
        ctx.obj["settings"] = settings
    return settings


def get_mode(ctx: click.Context) -> ExecutionMode:
    return ctx.obj.get("mode") or ExecutionMode()


def get_toolkit(ctx: click.Context, engines: list[WebServer] | None = None) -> Toolkit:
    settings = get_settings(ctx)
    try:
        return build_toolkit(
            settings,
            get_mode(ctx),
            adapters=ctx.obj.get("adapters"),
            engines=engines,
            which=ctx.obj.get("which", shutil.which),
            probe=ctx.obj.get("probe", port_in_use),
            prompt=ctx.obj.get("prompt", input),
            environ=ctx.obj.get("environ"),
        )
    except ConfigError as e:
        fail(str(e), EXIT_CONFIG_ERROR)
        raise


@contextmanager
def reported_errors() -> Iterator[None]:
    """Turn a DevstackError into a red message and exit code 1."""
    try:
        yield
    except DevstackError as e:
        fail(f"{type(e).__name__}: {e}")


def domain_lock(toolkit: Toolkit, domain: str) -> AbstractContextManager:
    """Per-domain lock for hosts, certificate and vhost writes; none under dry-run."""
    if toolkit.mode.dry_run:
        return nullcontext()
    return DomainLock(toolkit.settings.lock_dir, domain)


def record(toolkit: Toolkit, kind: ResourceKind, key: str, **details) -> None:
    """Registry write that respects dry-run."""
    if not toolkit.mode.dry_run:
        toolkit.registry.record(kind, key, **details)


def forget(toolkit: Toolkit, kind: ResourceKind, key: str) -> None:
    if not toolkit.mode.dry_run:
        toolkit.registry.forget(kind, key)


def mode_label(ctx: click.Context) -> str:
    return get_mode(ctx).label
