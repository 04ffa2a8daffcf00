"""
CLI commands for project databases.

Thin wrappers over ``devstack.core.services.databases``.
"""

from __future__ import annotations

import json
from pathlib import Path

import click

from devstack.core.models.database import DbEngine
from devstack.core.models.resource import ResourceKind
from devstack.ui.cli.common import get_settings, get_toolkit, mode_label, record, reported_errors

_ENGINES = click.Choice([e.value for e in DbEngine])


@click.group()
def db() -> None:
    """Databases — create, backup, restore."""


@db.command()
@click.argument("project_name")
@click.option("--engine", "-e", type=_ENGINES, default=DbEngine.MYSQL.value, show_default=True)
@click.option("--project-dir", type=click.Path(file_okay=False), default=None, help="Where the sidecar / sqlite file goes (default: projects_dir/<name>).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def create(ctx: click.Context, project_name: str, engine: str, project_dir: str | None, as_json: bool) -> None:
    """Create a database (and user) for PROJECT_NAME."""
    toolkit = get_toolkit(ctx, engines=[])
    directory = Path(project_dir) if project_dir else toolkit.settings.projects_dir / project_name

    with reported_errors():
        credential = toolkit.databases.provision(engine, project_name, directory)

    details = {"engine": engine, "project": str(directory)}
    if credential.sidecar_path:
        details["sidecar"] = str(credential.sidecar_path)
    if credential.path:
        details["path"] = str(credential.path)
    record(toolkit, ResourceKind.DATABASE, credential.database, **details)

    if as_json:
        payload = {"database": credential.database, "username": credential.username, "created": credential.created}
        click.echo(json.dumps({**payload, **details}, indent=2))
        return

    if credential.created:
        click.secho(f"🗄️  {mode_label(ctx)}{engine} database {credential.database}", fg="green")
    else:
        click.secho(f"= {engine} database {credential.database} already exists", fg="cyan")
    if credential.username:
        click.echo(f"   User: {credential.username}")
    if credential.sidecar_path:
        click.echo(f"   Credentials: {credential.sidecar_path}")
    if credential.path:
        click.echo(f"   File: {credential.path}")


@db.command()
@click.argument("database")
@click.option("--engine", "-e", type=click.Choice(["mysql", "mongo"]), default="mysql", show_default=True)
@click.pass_context
def backup(ctx: click.Context, database: str, engine: str) -> None:
    """Dump DATABASE into the backup directory."""
    toolkit = get_toolkit(ctx, engines=[])
    with reported_errors():
        target = toolkit.databases.backup(engine, database, get_settings(ctx).backup_dir)
    click.secho(f"💾 {mode_label(ctx)}{target}", fg="green")


@db.command()
@click.argument("database")
@click.argument("source", type=click.Path(dir_okay=False))
@click.option("--engine", "-e", type=click.Choice(["mysql", "mongo"]), default="mysql", show_default=True)
@click.pass_context
def restore(ctx: click.Context, database: str, source: str, engine: str) -> None:
    """Restore DATABASE from a SOURCE dump."""
    toolkit = get_toolkit(ctx, engines=[])
    if not toolkit.executor.confirm(f"Restore {database} from {source}? Existing data may be overwritten."):
        click.secho("Aborted.", fg="yellow")
        return
    with reported_errors():
        toolkit.databases.restore(engine, database, Path(source))
    click.secho(f"✅ {mode_label(ctx)}Restored {database}", fg="green")
