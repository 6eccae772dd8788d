"""
Nebula: CLI entrypoint.

Usage:
    nebula --help
    nebula preview --select dev:network
    nebula run
    nebula bootstrap
"""

from __future__ import annotations

from pathlib import Path

import click

from nebula import __version__
from nebula.core.observability.logging_config import LogSettings, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="nebula")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Path to nebula_config.py (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    config_path: str | None,
) -> None:
    """Nebula: capability-ordered Pulumi stacks."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(LogSettings.resolve(verbose=verbose, quiet=quiet))


# ── Register commands from nebula/ui/cli/ ──────────────────────

from nebula.ui.cli.bootstrap import bootstrap  # noqa: E402
from nebula.ui.cli.stacks import COMMANDS  # noqa: E402

for _command in COMMANDS:
    cli.add_command(_command)
cli.add_command(bootstrap)


if __name__ == "__main__":
    cli()
