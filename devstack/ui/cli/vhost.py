"""
CLI commands for web-server virtual hosts.

Thin wrappers over ``devstack.core.services.vhosts``.
"""

from __future__ import annotations

from pathlib import Path

import click

from devstack.core.errors import ValidationError
from devstack.core.models.resource import ResourceKind
from devstack.core.models.vhost import VhostDescriptor, WebServer
from devstack.core.orchestrator.provisioner import VHOST_KINDS
from devstack.ui.cli.common import (
    domain_lock,
    forget,
    get_settings,
    get_toolkit,
    mode_label,
    record,
    reported_errors,
)


def _engines(selected: tuple[str, ...]) -> list[WebServer] | None:
    return [WebServer(e) for e in selected] or None


@click.group()
def vhost() -> None:
    """Virtual hosts — install, remove and list."""


@vhost.command()
@click.argument("domain")
@click.argument("document_root", type=click.Path(file_okay=False))
@click.option("--tls", is_flag=True, help="Serve over HTTPS (obtains a certificate if needed).")
@click.option("--php", "php", is_flag=True, help="Pass .php requests to PHP-FPM.")
@click.option("--proxy", default=None, help="Reverse-proxy to this URL (e.g. http://127.0.0.1:3000).")
@click.option("--engine", "-e", "engines", multiple=True, type=click.Choice([e.value for e in WebServer]), help="Target engine (default: detected).")
@click.pass_context
def install(
    ctx: click.Context,
    domain: str,
    document_root: str,
    tls: bool,
    php: bool,
    proxy: str | None,
    engines: tuple[str, ...],
) -> None:
    """Write (or overwrite) the vhost for DOMAIN and add its hosts entry."""
    toolkit = get_toolkit(ctx, engines=_engines(engines))
    domain = domain.lower()

    if php and proxy:
        raise click.UsageError("--php and --proxy are mutually exclusive")
    if not toolkit.vhosts.engines:
        click.secho("⚠️  No web server detected; use --engine to choose one", fg="yellow")
        return

    with reported_errors(), domain_lock(toolkit, domain):
        bundle = None
        if tls:
            bundle, _ = toolkit.certificates.obtain(domain)
            record(
                toolkit,
                ResourceKind.CERTIFICATE,
                domain,
                key_path=str(bundle.key_path),
                cert_path=str(bundle.cert_path),
                issuer=bundle.issuer,
            )
        try:
            descriptor = VhostDescriptor(
                domain=domain,
                document_root=Path(document_root).expanduser().resolve(),
                tls=tls,
                certificate=bundle,
                backend=get_settings(ctx).php_fpm_socket if php else proxy,
                backend_protocol="fastcgi" if php else "http" if proxy else None,
            )
        except ValueError as e:
            raise ValidationError(str(e)) from e

        paths = toolkit.vhosts.install(descriptor)
        for engine, path in zip(toolkit.vhosts.engines, paths, strict=True):
            record(toolkit, VHOST_KINDS[engine], domain, path=str(path))

        toolkit.hosts.ensure_mapping(domain)
        record(toolkit, ResourceKind.HOSTS_ENTRY, domain, hosts_file=str(toolkit.settings.hosts_file))

    click.secho(f"✅ {mode_label(ctx)}vhost for {domain}", fg="green")
    for path in paths:
        click.echo(f"   • {path}")


@vhost.command()
@click.argument("domain")
@click.pass_context
def remove(ctx: click.Context, domain: str) -> None:
    """Disable and delete the vhost files for DOMAIN."""
    toolkit = get_toolkit(ctx, engines=list(WebServer))
    domain = domain.lower()
    if not toolkit.executor.confirm(f"Remove vhost {domain}?"):
        click.secho("Aborted.", fg="yellow")
        return
    with reported_errors(), domain_lock(toolkit, domain):
        removed = toolkit.vhosts.uninstall(domain)
        for kind in VHOST_KINDS.values():
            forget(toolkit, kind, domain)

    if not removed:
        click.secho(f"= No vhost files for {domain}", fg="cyan")
        return
    for path in removed:
        click.echo(f"🗑️  {mode_label(ctx)}{path}")


@vhost.command("list")
@click.pass_context
def list_sites(ctx: click.Context) -> None:
    """List files in each engine's sites directory."""
    settings = get_settings(ctx)
    for label, sites_dir in (("Apache", settings.apache_sites_dir), ("Nginx", settings.nginx_sites_dir)):
        click.secho(f"{label}: {sites_dir}", fg="cyan", bold=True)
        if not sites_dir.is_dir():
            click.echo("   (missing)")
            continue
        for path in sorted(sites_dir.iterdir()):
            click.echo(f"   • {path.name}")
