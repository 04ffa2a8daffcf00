"""
devstack — CLI entrypoint.

Usage:
    devstack --help
    devstack create blog --stack static
    devstack --dry-run create shop --stack framework-php --tls --db mysql
    devstack remove blog.local
    devstack status
"""

from __future__ import annotations

import json
import os
import shutil
import sys
from pathlib import Path

import click

from devstack import __version__
from devstack.core.models.mode import ExecutionMode
from devstack.core.models.project import NODE_SPA_VARIANTS, StackKind
from devstack.core.models.resource import ResourceKind
from devstack.core.models.state import FailureReport, ProvisionResult
from devstack.core.models.vhost import WebServer
from devstack.core.observability.logging_config import setup_logging
from devstack.ui.cli.common import get_settings, get_toolkit, mode_label

_STEP_MARKERS = {
    "ok": ("✓", "green"),
    "noop": ("=", "cyan"),
    "skipped": ("⊘", "yellow"),
    "failed": ("✗", "red"),
}


@click.group()
@click.version_option(version=__version__, prog_name="devstack")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to devstack.yml (default: $DEVSTACK_CONFIG or /etc/devstack/devstack.yml).",
)
@click.option("--dry-run", is_flag=True, help="Show what would be done without changing anything.")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Answer yes to every confirmation.")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    dry_run: bool,
    assume_yes: bool,
) -> None:
    """devstack — local web development environments, wired end to end."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["mode"] = ExecutionMode(dry_run=dry_run, assume_yes=assume_yes)

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("DEVSTACK_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("DEVSTACK_LOG_FILE"),
        log_file_level=os.environ.get("DEVSTACK_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


# ── create ──────────────────────────────────────────────────────


_STACK_HELP = (
    f"Stack kind: {', '.join(k.value for k in StackKind)}. "
    f"Variants: node-spa:{{{','.join(NODE_SPA_VARIANTS)}}}, dotnet-app:<template>."
)


@cli.command()
@click.argument("name")
@click.option("--stack", "-s", required=True, help=_STACK_HELP)
@click.option("--root", "root_dir", type=click.Path(file_okay=False), default=None, help="Parent directory (default: projects_dir).")
@click.option("--port", "-p", type=int, default=None, help="Preferred port (default: first free from 3000).")
@click.option("--domain", "-d", default=None, help="Local domain (default: <name>.local).")
@click.option("--tls", is_flag=True, help="Provision a certificate and serve over HTTPS.")
@click.option("--db", "database", type=click.Choice(["mysql", "mongo", "sqlite"]), default=None, help="Provision a database.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def create(
    ctx: click.Context,
    name: str,
    stack: str,
    root_dir: str | None,
    port: int | None,
    domain: str | None,
    tls: bool,
    database: str | None,
    as_json: bool,
) -> None:
    """Scaffold a project and wire hosts, TLS, vhosts and database for it.

    Examples:

        devstack create blog --stack static

        devstack create shop --stack framework-php --tls --db mysql

        devstack --dry-run create app --stack node-spa:vue --port 5173
    """
    from devstack.core.use_cases.create import create_project

    toolkit = get_toolkit(ctx)
    result = create_project(
        toolkit,
        name=name,
        stack=stack,
        root_dir=Path(root_dir) if root_dir else None,
        port=port,
        domain=domain,
        tls=tls,
        database=database,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    _print_provision(ctx, result, name)
    sys.exit(result.exit_code)


def _print_provision(ctx: click.Context, result: ProvisionResult, name: str) -> None:
    label = mode_label(ctx)
    click.secho(f"\n⚡ {label}{name} → {result.domain or '?'}", fg="cyan", bold=True)
    if result.project_path:
        click.echo(f"   Path: {result.project_path}")
    if result.port:
        click.echo(f"   Port: {result.port}")
    click.echo()

    for step in result.steps:
        marker, color = _STEP_MARKERS[step.status]
        click.secho(f"   {marker} {step.step.value:<16}", fg=color, nl=False)
        click.echo(f" {step.message}")

    click.echo()
    if result.ok:
        click.secho(f"   ✅ {label}Complete — http{'s' if _has_tls(result) else ''}://{result.domain}/", fg="green", bold=True)
    elif result.failure is not None:
        _print_failure(ctx, result, result.failure)

    if result.database and result.database.get("sidecar"):
        click.echo(f"   🔑 Credentials: {result.database['sidecar']}")
    click.echo()


def _print_failure(ctx: click.Context, result: ProvisionResult, failure: FailureReport) -> None:
    click.secho(f"   ❌ Failed at {failure.step.value}: {failure.error_type}", fg="red", bold=True)
    if failure.resource_key:
        click.echo(f"      Resource: {failure.resource_key}")
    if failure.tool_output and ctx.obj.get("verbose"):
        for line in failure.tool_output.splitlines()[-10:]:
            click.echo(f"      │ {line}")
    if result.committed:
        click.echo("      Already committed (safe to re-run):")
        for resource in result.committed:
            click.echo(f"        • {resource.ref}")


def _has_tls(result: ProvisionResult) -> bool:
    return any(r.kind == ResourceKind.CERTIFICATE for r in result.committed)


# ── remove ──────────────────────────────────────────────────────


@cli.command()
@click.argument("domain")
@click.option("--purge-cert", is_flag=True, help="Also delete the domain's certificate.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def remove(ctx: click.Context, domain: str, purge_cert: bool, as_json: bool) -> None:
    """Remove vhosts and hosts entry for DOMAIN (project files and databases are kept)."""
    from devstack.core.use_cases.remove import remove_domain

    toolkit = get_toolkit(ctx, engines=list(WebServer))
    result = remove_domain(toolkit, domain, purge_cert=purge_cert)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    label = mode_label(ctx)
    if result.aborted:
        click.secho("Aborted.", fg="yellow")
        return
    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(result.exit_code)

    click.secho(f"🗑️  {label}Removed {result.domain}", fg="green", bold=True)
    for path in result.vhosts_removed:
        click.echo(f"   • vhost {path}")
    if result.hosts_removed:
        click.echo("   • hosts entry")
    for path in result.certificates_removed:
        click.echo(f"   • {path}")
    click.echo()


# ── status ──────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show managed resources and whether they still exist."""
    from devstack.core.use_cases.status import get_status

    result = get_status(get_settings(ctx), which=ctx.obj.get("which", shutil.which))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    click.secho("\n📋 devstack", fg="cyan", bold=True)
    click.echo(f"   Registry: {result.registry_path}")
    click.echo(f"   Web servers: {', '.join(result.web_servers) or 'none detected'}")
    click.echo()

    if not result.resources:
        click.echo("   No managed resources.")
        click.echo()
        return

    for item in result.resources:
        if item.present is None:
            click.secho("   ? ", fg="white", nl=False)
        elif item.present:
            click.secho("   ✓ ", fg="green", nl=False)
        else:
            click.secho("   ✗ ", fg="red", nl=False)
        click.echo(f"{item.resource.ref}  ({item.resource.created_at[:19]})")

    if result.drifted:
        click.echo()
        click.secho(f"   ⚠️  {len(result.drifted)} resource(s) missing on disk", fg="yellow")
    click.echo()


# ── Register sub-command groups from devstack/ui/cli/ ─────────────

from devstack.ui.cli.cert import cert
from devstack.ui.cli.db import db
from devstack.ui.cli.git import git
from devstack.ui.cli.hosts import hosts
from devstack.ui.cli.php import php
from devstack.ui.cli.port import port
from devstack.ui.cli.registry import registry
from devstack.ui.cli.sftp import sftp
from devstack.ui.cli.vhost import vhost

cli.add_command(hosts)
cli.add_command(cert)
cli.add_command(vhost)
cli.add_command(db)
cli.add_command(port)
cli.add_command(registry)
cli.add_command(git)
cli.add_command(sftp)
cli.add_command(php)


if __name__ == "__main__":
    cli()
