"""
CLI commands for the resource registry.
"""

from __future__ import annotations

import json

import click

from devstack.core.models.resource import ResourceKind
from devstack.ui.cli.common import forget, get_toolkit, mode_label

_KINDS = click.Choice([k.value for k in ResourceKind])


@click.group()
def registry() -> None:
    """Resource registry — what devstack has created on this machine."""


@registry.command("list")
@click.option("--kind", "-k", type=_KINDS, default=None, help="Only this kind.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_resources(ctx: click.Context, kind: str | None, as_json: bool) -> None:
    """List registry entries."""
    toolkit = get_toolkit(ctx, engines=[])
    resources = toolkit.registry.all(ResourceKind(kind) if kind else None)

    if as_json:
        click.echo(json.dumps([r.model_dump(mode="json") for r in resources], indent=2))
        return

    if not resources:
        click.echo("No managed resources.")
        return
    for resource in resources:
        click.echo(f"{resource.ref:<48} {resource.created_at[:19]}")


@registry.command("forget")
@click.argument("kind", type=_KINDS)
@click.argument("key")
@click.pass_context
def forget_resource(ctx: click.Context, kind: str, key: str) -> None:
    """Drop an entry without touching the resource itself."""
    toolkit = get_toolkit(ctx, engines=[])
    resource_kind = ResourceKind(kind)
    if not toolkit.registry.exists(resource_kind, key):
        click.secho(f"= {kind}:{key} is not registered", fg="cyan")
        return
    forget(toolkit, resource_kind, key)
    click.secho(f"🗑️  {mode_label(ctx)}Forgot {kind}:{key}", fg="green")
