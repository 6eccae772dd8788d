"""
CLI command for environment bootstrap.

Usage::

    nebula bootstrap
    nebula bootstrap --workdir infra/ --ci
    eval "$(nebula bootstrap -q)"
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click


@click.command()
@click.option(
    "--workdir", "-w", "work_dir", type=click.Path(file_okay=False), default=None,
    help="Directory to bootstrap (default: current directory).",
)
@click.option("--ci", is_flag=True, help="Non-interactive mode; skip credential exports.")
@click.option("--debug", is_flag=True, help="Forward engine debug env vars.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def bootstrap(ctx: click.Context, work_dir: str | None, ci: bool, debug: bool, as_json: bool) -> None:
    """Create the environment stack described by nebula.yml."""
    from nebula.core.use_cases.bootstrap import bootstrap as run_bootstrap

    result = run_bootstrap(Path(work_dir) if work_dir else None, ci=ci, debug=debug)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error:
            sys.exit(1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red", err=True)
        sys.exit(1)

    quiet = ctx.obj.get("quiet", False)
    if not quiet:
        click.secho("\n🚀 Nebula Bootstrap", fg="cyan", bold=True, err=True)
        click.echo(f"   📁 Working directory: {result.work_dir}", err=True)
        click.echo(f"   Config:   {result.config_path}", err=True)
        click.echo(f"   Env:      {result.stack_name}", err=True)
        if result.config:
            click.echo(f"   Backend:  {result.config.backend_url}", err=True)
            if result.config.secrets_provider:
                click.echo(f"   Secrets:  {result.config.secrets_provider}", err=True)
        if result.gcp_project:
            click.echo(f"   GCP:      {result.gcp_project} ({result.gcp_region or 'no region'})", err=True)

    for warning in result.warnings:
        click.secho(f"⚠️  {warning}", fg="yellow", err=True)

    if not quiet:
        marker = "✅ Stack ready" if result.stack_created else "⚠️  Stack not created"
        click.echo(f"   {marker}: {result.stack_name}", err=True)
        for path in result.files:
            click.echo(f"   📝 {path.name}", err=True)
        click.echo(f"\n📋 Next steps:\n   pulumi up --stack {result.stack_name}\n", err=True)

    # stdout carries only the export lines, for eval
    for line in result.export_lines():
        click.echo(line)
