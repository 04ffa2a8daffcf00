"""
CLI commands for PHP versions.

Thin wrappers over ``devstack.core.services.php``.
"""

from __future__ import annotations

import json

import click

from devstack.core.services.php import fpm_socket
from devstack.ui.cli.common import get_settings, get_toolkit, mode_label, reported_errors


@click.group()
def php() -> None:
    """PHP — list, install and switch versions."""


@php.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_versions(ctx: click.Context, as_json: bool) -> None:
    """List installed PHP versions."""
    versions = get_toolkit(ctx, engines=[]).php.installed()
    if as_json:
        click.echo(json.dumps(versions))
        return
    if not versions:
        click.secho("No php binaries found", fg="yellow")
        return
    for version in versions:
        click.echo(f"   php{version}")


@php.command()
@click.argument("version")
@click.pass_context
def install(ctx: click.Context, version: str) -> None:
    """Install PHP VERSION (e.g. 8.3) with FPM and the common extensions."""
    toolkit = get_toolkit(ctx, engines=[])
    with reported_errors():
        installed = toolkit.php.install(version)
    if not installed:
        click.secho(f"= PHP {version} already installed", fg="cyan")
        return
    click.secho(f"✅ {mode_label(ctx)}PHP {version}: {', '.join(installed)}", fg="green")


@php.command()
@click.argument("version")
@click.pass_context
def use(ctx: click.Context, version: str) -> None:
    """Make PHP VERSION the default php CLI."""
    toolkit = get_toolkit(ctx, engines=[])
    with reported_errors():
        binary = toolkit.php.use(version)
    click.secho(f"✅ {mode_label(ctx)}php → {binary}", fg="green")
    socket = fpm_socket(version.strip())
    if get_settings(ctx).php_fpm_socket != socket:
        click.echo(f"   New vhosts still use {get_settings(ctx).php_fpm_socket}; set php_fpm_socket: {socket} to switch them.")
