"""
CLI commands for port allocation.
"""

from __future__ import annotations

import click

from devstack.core.models.state import EXIT_FAILED_CLEAN
from devstack.core.services.ports import NO_PORT, find_available_port, port_in_use
from devstack.ui.cli.common import fail, get_settings


@click.group()
def port() -> None:
    """Ports — find a free one, check one."""


@port.command()
@click.option("--from", "start", type=int, default=None, help="First port to try (default: default_port).")
@click.pass_context
def find(ctx: click.Context, start: int | None) -> None:
    """Print the first free TCP port."""
    settings = get_settings(ctx)
    probe = ctx.obj.get("probe", port_in_use)
    found = find_available_port(start or settings.default_port, settings.port_ceiling, probe=probe)
    if found is NO_PORT:
        fail(f"No free port in {start or settings.default_port}..{settings.port_ceiling}", EXIT_FAILED_CLEAN)
    click.echo(found)


@port.command()
@click.argument("number", type=click.IntRange(1, 65535))
@click.pass_context
def check(ctx: click.Context, number: int) -> None:
    """Exit 0 if port NUMBER is free, 1 if it is in use."""
    probe = ctx.obj.get("probe", port_in_use)
    if probe(number):
        click.secho(f"✗ {number} in use", fg="red")
        ctx.exit(1)
    click.secho(f"✓ {number} free", fg="green")
