"""
CLI commands for SFTP accounts.

Thin wrappers over ``devstack.core.services.sftp``.
"""

from __future__ import annotations

import json
from pathlib import Path

import click

from devstack.ui.cli.common import get_toolkit, mode_label, reported_errors


@click.group()
def sftp() -> None:
    """SFTP / FTP — upload accounts for project folders."""


@sftp.command("install-server")
@click.pass_context
def install_server(ctx: click.Context) -> None:
    """Install and start vsftpd."""
    toolkit = get_toolkit(ctx, engines=[])
    with reported_errors():
        running = toolkit.sftp.install_server()
    if running:
        click.secho(f"✅ {mode_label(ctx)}vsftpd installed and running", fg="green")
    else:
        click.secho("⚠️  vsftpd installed but not running; check: systemctl status vsftpd", fg="yellow")


@sftp.command("add-user")
@click.argument("username")
@click.argument("folder", type=click.Path(file_okay=False))
@click.option("--set-password", is_flag=True, help="Prompt for a password (otherwise key-only login).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def add_user(ctx: click.Context, username: str, folder: str, set_password: bool, as_json: bool) -> None:
    """Create USERNAME with FOLDER as its home and no login shell."""
    toolkit = get_toolkit(ctx, engines=[])
    password = None
    if set_password:
        password = click.prompt("Password", hide_input=True, confirmation_prompt=True, err=True)

    with reported_errors():
        account = toolkit.sftp.add_user(username, Path(folder).expanduser().resolve(), password=password)

    if as_json:
        click.echo(json.dumps(account.to_dict(), indent=2))
        return

    if account.created:
        click.secho(f"👤 {mode_label(ctx)}Created {account.username}", fg="green")
    else:
        click.secho(f"= {account.username} already exists", fg="cyan")
    click.echo(f"   Home: {account.home}")
    click.echo(f"   Group: {account.group}")
    if account.password_set:
        click.echo("   Password: set")
    click.echo("   Restrict to SFTP with a Match User block (ChrootDirectory, ForceCommand internal-sftp) in sshd_config.")
