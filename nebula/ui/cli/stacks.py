"""
CLI commands for stack operations.

Thin wrappers over ``nebula.core.use_cases.run`` and ``generate``.

Usage::

    nebula preview --select dev:network
    nebula up --all --target urn:pulumi:dev-network::proj::nebula:component::network
    nebula destroy --env dev
    nebula run --op refresh --debug trace
    nebula generate --workdir infra/
    nebula graph
"""

from __future__ import annotations

import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from nebula.core.errors import NebulaError


def _load(ctx: click.Context) -> Any:
    from nebula.core.config.loader import load_project

    return load_project(ctx.obj.get("config_path"))


def _fail(message: str) -> None:
    click.secho(f"❌ {message}", fg="red", err=True)
    sys.exit(1)


def _split_csv(values: tuple[str, ...]) -> list[str]:
    out: list[str] = []
    for value in values:
        out.extend(v.strip() for v in value.split(",") if v.strip())
    return list(dict.fromkeys(out))


def _prompt(question: str) -> str:
    return click.prompt(question, default="", show_default=False)


def run_options(fn: Callable) -> Callable:
    """Options shared by every stack operation command."""
    options = [
        click.option(
            "--target", "targets", multiple=True,
            help="Resource URN(s) to target, comma-separated. Repeatable.",
        ),
        click.option(
            "--target-dependents", is_flag=True,
            help="Also operate on resources that depend on the targets.",
        ),
        click.option("--select", default=None, help="Stacks to use: 'env:name,name' or 'all'."),
        click.option("--all", "all_", is_flag=True, help="Use every stack (same as --select all)."),
        click.option("--env", "env_id", default=None, help="Only consider stacks of this environment."),
        click.option(
            "--workdir", "-w", "work_dir", type=click.Path(file_okay=False), default=None,
            help="Working directory for the Pulumi workspace.",
        ),
        click.option(
            "--debug", "debug_level", type=click.Choice(["debug", "trace"], case_sensitive=False),
            default=None, help="Raise engine log verbosity and keep temp dirs.",
        ),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


def _run(
    ctx: click.Context,
    op: str | None,
    targets: tuple[str, ...],
    target_dependents: bool,
    select: str | None,
    all_: bool,
    env_id: str | None,
    work_dir: str | None,
    debug_level: str | None,
) -> None:
    from nebula.core.models.operation import Operation
    from nebula.core.observability.logging_config import LogSettings, setup_logging
    from nebula.core.use_cases.run import RunOptions, run_project

    if debug_level:
        setup_logging(LogSettings.resolve(debug=True))

    options = RunOptions(
        op=Operation.parse(op),
        targets=_split_csv(targets),
        target_dependents=target_dependents,
        select=select,
        all=all_,
        env=env_id,
        work_dir=work_dir,
        debug_level=debug_level,
    )

    try:
        project = _load(ctx)
        result = run_project(project, options, ask=_prompt)
    except NebulaError as e:
        _fail(str(e))
        return

    quiet = ctx.obj.get("quiet", False)
    for receipt in result.receipts:
        if receipt.ok and not quiet:
            click.secho(f"✅ {receipt.stack}: {receipt.summary} ({receipt.duration_ms}ms)", fg="green")
        elif receipt.failed:
            click.secho(f"❌ {receipt.stack}: {receipt.operation.value} failed", fg="red", err=True)

    if result.error:
        _fail(result.error)


# ── Lifecycle commands ─────────────────────────────────────────


@click.command()
@run_options
@click.pass_context
def preview(ctx: click.Context, **kwargs: Any) -> None:
    """Preview changes for the selected stacks."""
    _run(ctx, "preview", **kwargs)


@click.command()
@run_options
@click.pass_context
def up(ctx: click.Context, **kwargs: Any) -> None:
    """Deploy the selected stacks."""
    _run(ctx, "up", **kwargs)


@click.command()
@run_options
@click.pass_context
def destroy(ctx: click.Context, **kwargs: Any) -> None:
    """Destroy the selected stacks (last discovered first)."""
    _run(ctx, "destroy", **kwargs)


@click.command()
@run_options
@click.pass_context
def refresh(ctx: click.Context, **kwargs: Any) -> None:
    """Refresh state of the selected stacks."""
    _run(ctx, "refresh", **kwargs)


@click.command("run")
@click.option(
    "--op", type=click.Choice(["preview", "up", "destroy", "refresh"], case_sensitive=False),
    default=None, help="Operation to run (prompted if omitted).",
)
@run_options
@click.pass_context
def run_cmd(ctx: click.Context, op: str | None, **kwargs: Any) -> None:
    """Interactive runner: choose operation, stacks and targets."""
    _run(ctx, op, **kwargs)


# ── Settings & inspection ──────────────────────────────────────


@click.command()
@click.option(
    "--workdir", "-w", "work_dir", type=click.Path(file_okay=False), default=None,
    help="Where to write the files (default: current directory).",
)
@click.option("--env", "env_id", default=None, help="Only generate stacks of this environment.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def generate(ctx: click.Context, work_dir: str | None, env_id: str | None, as_json: bool) -> None:
    """Write Pulumi.yaml and Pulumi.<stack>.yaml without running stacks."""
    from nebula.core.use_cases.generate import generate_settings

    try:
        project = _load(ctx)
        result = generate_settings(project, Path(work_dir) if work_dir else None, env_filter=env_id)
    except NebulaError as e:
        _fail(str(e))
        return

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error:
            sys.exit(1)
        return

    if result.error:
        _fail(result.error)
        return

    click.secho(f"📝 Generated Pulumi project and stack YAML in: {result.work_dir}", fg="green")
    if not ctx.obj.get("quiet", False):
        for path in result.files:
            click.echo(f"   • {path.name}")


@click.command()
@click.option("--env", "env_id", default=None, help="Only show this environment.")
@click.pass_context
def graph(ctx: click.Context, env_id: str | None) -> None:
    """Print the module dependency graph of every component."""
    from nebula.core.engine.graph import detect_cycle, format_dependency_graph

    try:
        project = _load(ctx)
    except NebulaError as e:
        _fail(str(e))
        return

    for eid, env in project.environments.items():
        if env_id and eid != env_id:
            continue
        for kind, factories in (("component", env.components), ("addon", env.addons)):
            for key in factories:
                click.secho(f"\n{eid}:{key}" + (" (addon)" if kind == "addon" else ""), fg="cyan", bold=True)
                try:
                    dep_graph = env.dependency_graph(key, kind)
                except NebulaError as e:
                    click.secho(f"   ❌ {e}", fg="red")
                    continue
                except Exception as e:
                    click.secho(f"   ❌ [{key}] factory failed: {e}", fg="red")
                    continue
                for line in format_dependency_graph(dep_graph).splitlines():
                    click.echo(f"   {line}")
                cycle = detect_cycle(dep_graph)
                if cycle:
                    click.secho(f"   ⚠ cycle: {' -> '.join(cycle)}", fg="yellow")
    click.echo()


COMMANDS = [preview, up, destroy, refresh, run_cmd, generate, graph]
