"""
CLI commands for project repositories.

Thin wrappers over ``devstack.core.services.repository``.
"""

from __future__ import annotations

import json
from pathlib import Path

import click

from devstack.ui.cli.common import get_toolkit, mode_label, reported_errors


@click.group()
def git() -> None:
    """Git — initialize a project repository, optionally on GitHub."""


@git.command("init")
@click.argument("project_dir", type=click.Path(exists=True, file_okay=False))
@click.option("--github", "github_name", default=None, help="Create this GitHub repository (needs GITHUB_TOKEN).")
@click.option("--public", is_flag=True, help="Make the GitHub repository public (default: private).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def init(ctx: click.Context, project_dir: str, github_name: str | None, public: bool, as_json: bool) -> None:
    """git init PROJECT_DIR, commit everything, and optionally push to GitHub."""
    toolkit = get_toolkit(ctx, engines=[])
    with reported_errors():
        result = toolkit.repository.init(Path(project_dir).resolve(), github_name=github_name, private=not public)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    label = mode_label(ctx)
    click.secho(f"🌿 {label}{result.path}", fg="cyan", bold=True)
    click.echo(f"   Initialized: {'yes' if result.initialized else 'already a repository'}")
    click.echo(f"   Committed: {'yes' if result.committed else 'no'}")
    if result.remote:
        click.echo(f"   Remote: {result.remote}")
    for warning in result.warnings:
        click.secho(f"   ⚠️  {warning}", fg="yellow")
