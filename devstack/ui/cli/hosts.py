"""
CLI commands for the static hosts table.

Thin wrappers over ``devstack.core.services.hosts``.
"""

from __future__ import annotations

import json

import click

from devstack.core.models.resource import ResourceKind
from devstack.ui.cli.common import (
    domain_lock,
    forget,
    get_settings,
    get_toolkit,
    mode_label,
    record,
    reported_errors,
)


@click.group()
def hosts() -> None:
    """Hosts table — add, remove and list loopback entries."""


@hosts.command("add")
@click.argument("domain")
@click.pass_context
def add(ctx: click.Context, domain: str) -> None:
    """Map DOMAIN to 127.0.0.1 (backup first, never duplicated)."""
    toolkit = get_toolkit(ctx, engines=[])
    domain = domain.lower()
    with reported_errors(), domain_lock(toolkit, domain):
        outcome = toolkit.hosts.ensure_mapping(domain)
        record(toolkit, ResourceKind.HOSTS_ENTRY, outcome.domain, hosts_file=str(toolkit.settings.hosts_file))

    if outcome.status == "exists":
        click.secho(f"= {outcome.domain} already resolves to loopback", fg="cyan")
        return
    click.secho(f"✅ {mode_label(ctx)}Added {outcome.domain}", fg="green")
    click.echo(f"   Backup: {outcome.backup_path}")


@hosts.command("remove")
@click.argument("domain")
@click.pass_context
def remove(ctx: click.Context, domain: str) -> None:
    """Delete every hosts line containing DOMAIN (backup first)."""
    toolkit = get_toolkit(ctx, engines=[])
    if not toolkit.executor.confirm(f"Remove hosts lines containing {domain}?"):
        click.secho("Aborted.", fg="yellow")
        return
    domain = domain.lower()
    with reported_errors(), domain_lock(toolkit, domain):
        outcome = toolkit.hosts.remove_mapping(domain)
        forget(toolkit, ResourceKind.HOSTS_ENTRY, outcome.domain)

    if outcome.status == "absent":
        click.secho(f"= {outcome.domain} not present", fg="cyan")
        return
    click.secho(f"🗑️  {mode_label(ctx)}Removed {outcome.domain}", fg="green")
    click.echo(f"   Backup: {outcome.backup_path}")


@hosts.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_entries(ctx: click.Context, as_json: bool) -> None:
    """List hostnames in the hosts table with their addresses."""
    from devstack.core.services.hosts import parse_hosts

    hosts_file = get_settings(ctx).hosts_file
    mapping = parse_hosts(hosts_file.read_text(encoding="utf-8")) if hosts_file.is_file() else {}

    if as_json:
        click.echo(json.dumps(mapping, indent=2))
        return

    click.secho(f"📄 {hosts_file}", fg="cyan", bold=True)
    for name, addresses in sorted(mapping.items()):
        click.echo(f"   {name:<40} {', '.join(addresses)}")
