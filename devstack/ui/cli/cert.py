"""
CLI commands for TLS certificates.

Thin wrappers over ``devstack.core.services.certificates``.
"""

from __future__ import annotations

import click

from devstack.core.models.resource import ResourceKind
from devstack.ui.cli.common import domain_lock, forget, get_toolkit, mode_label, record, reported_errors


@click.group()
def cert() -> None:
    """Certificates — obtain (mkcert or self-signed) and remove."""


@cert.command()
@click.argument("domain")
@click.pass_context
def obtain(ctx: click.Context, domain: str) -> None:
    """Obtain a certificate for DOMAIN, reusing one that exists."""
    toolkit = get_toolkit(ctx, engines=[])
    domain = domain.lower()
    with reported_errors(), domain_lock(toolkit, domain):
        bundle, created = toolkit.certificates.obtain(domain)
        record(
            toolkit,
            ResourceKind.CERTIFICATE,
            bundle.domain,
            key_path=str(bundle.key_path),
            cert_path=str(bundle.cert_path),
            issuer=bundle.issuer,
        )

    if created:
        click.secho(f"🔐 {mode_label(ctx)}Issued {bundle.issuer} certificate for {bundle.domain}", fg="green")
    else:
        click.secho(f"= Reusing certificate for {bundle.domain}", fg="cyan")
    click.echo(f"   Key:  {bundle.key_path}")
    click.echo(f"   Cert: {bundle.cert_path}")


@cert.command()
@click.argument("domain")
@click.pass_context
def remove(ctx: click.Context, domain: str) -> None:
    """Delete the key and certificate for DOMAIN."""
    toolkit = get_toolkit(ctx, engines=[])
    if not toolkit.executor.confirm(f"Delete the certificate for {domain}?"):
        click.secho("Aborted.", fg="yellow")
        return
    domain = domain.lower()
    with reported_errors(), domain_lock(toolkit, domain):
        removed = toolkit.certificates.remove(domain)
        forget(toolkit, ResourceKind.CERTIFICATE, domain)

    if not removed:
        click.secho(f"= No certificate files for {domain}", fg="cyan")
        return
    for path in removed:
        click.echo(f"🗑️  {mode_label(ctx)}{path}")
