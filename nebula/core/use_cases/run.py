"""
Run use case: the interactive stack runner.

    choose operation → choose stacks → per stack: choose targets → expand → execute

Prompting is injected as an ``ask(question) -> answer`` callable so the
whole flow runs unattended in tests; the CLI passes ``click.prompt``.
Engine failures are recorded on a receipt and then re-raised, so the
first failing stack stops the run.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import click

from nebula.core.automation.backends import AutomationBackend, StackBackend, StackItem, collect_stacks
from nebula.core.automation.operations import OPERATIONS, OutputCallback
from nebula.core.automation.resources import expand_targets, export_resources, selectable_resources
from nebula.core.automation.workspace import StackManager
from nebula.core.engine.project import Project
from nebula.core.errors import NebulaError, StackOperationError
from nebula.core.models.operation import Operation, OperationReceipt

logger = logging.getLogger(__name__)

Ask = Callable[[str], str]
Echo = Callable[[str], None]


def _no_prompt(question: str) -> str:
    return ""


@dataclass
class RunOptions:
    """Everything the CLI flags can pre-answer."""

    op: Operation | None = None
    targets: list[str] = field(default_factory=list)
    target_dependents: bool = False
    select: str | None = None
    all: bool = False
    env: str | None = None
    work_dir: str | None = None
    debug_level: str | None = None


@dataclass
class RunResult:
    """Result of one runner invocation."""

    operation: Operation | None = None
    selected: list[str] = field(default_factory=list)
    receipts: list[OperationReceipt] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and all(r.ok for r in self.receipts)

    def to_dict(self) -> dict:
        result: dict = {
            "operation": self.operation.value if self.operation else None,
            "selected": list(self.selected),
            "receipts": [r.model_dump(mode="json") for r in self.receipts],
        }
        if self.error:
            result["error"] = self.error
        return result


# ── Debug flags ─────────────────────────────────────────────────


def setup_debug_flags(level: str | None) -> str | None:
    """Raise engine and provider verbosity and keep temp dirs.

    Only ``debug`` and ``trace`` are meaningful; anything else means
    ``debug``. Returns the level applied, or None when not debugging.
    """
    if not level:
        return None
    level = level.lower()
    if level not in ("debug", "trace"):
        level = "debug"
    os.environ["PULUMI_LOG_LEVEL"] = level
    os.environ["TF_LOG"] = level.upper()
    os.environ["TF_LOG_PROVIDER"] = level.upper()
    os.environ["PULUMI_KEEP_TEMP_DIRS"] = "1"
    logger.debug("Engine debug flags set (%s)", level)
    return level


# ── Choosing ────────────────────────────────────────────────────


def determine_operation(op: Operation | str | None, ask: Ask = _no_prompt) -> Operation:
    """Use the flag if given, otherwise prompt. Defaults to preview."""
    if isinstance(op, Operation):
        return op
    chosen = Operation.parse(op)
    if chosen is not None:
        return chosen
    answer = ask("Operation [preview|up|destroy|refresh] (default preview)")
    return Operation.parse(answer) or Operation.PREVIEW


def _parse_indices(answer: str, count: int) -> list[int]:
    indices: list[int] = []
    for token in answer.split(","):
        token = token.strip()
        if not token:
            continue
        try:
            idx = int(token) - 1
        except ValueError:
            continue
        if 0 <= idx < count and idx not in indices:
            indices.append(idx)
    return indices


def select_stacks(
    items: list[StackItem],
    select: str | None = None,
    all_: bool = False,
    ask: Ask = _no_prompt,
    echo: Echo = click.echo,
) -> list[StackItem]:
    """Resolve the working set of stacks.

    ``select`` holds comma-separated ``env:name`` or bare ``name``
    tokens (case-sensitive), or ``all``. Without it the operator picks
    1-based indices; unknown tokens are ignored.
    """
    if select and select.strip() != "all":
        wanted = {s.strip() for s in select.split(",") if s.strip()}
        return [i for i in items if i.label in wanted or i.name in wanted]

    if all_ or (select and select.strip() == "all"):
        return list(items)

    echo("Stacks:")
    for idx, item in enumerate(items, 1):
        echo(f"{idx}) {item.label}")
    answer = ask("Choose indices (comma) or type all")
    if answer.strip().lower() == "all":
        return list(items)
    return [items[i] for i in _parse_indices(answer, len(items))]


def prompt_targets(stack: Any, ask: Ask = _no_prompt, echo: Echo = click.echo) -> list[str]:
    """Let the operator pick resources of one stack as targets.

    Empty input and ``all`` both mean no target filter. A failing state
    export also yields no filter.
    """
    try:
        nodes = selectable_resources(export_resources(stack))
    except Exception as e:
        logger.warning("[%s] could not export state for target selection: %s", getattr(stack, "name", "<stack>"), e)
        return []

    if not nodes:
        return []

    echo("Resources in stack:")
    for idx, node in enumerate(nodes, 1):
        echo(f"{idx}) {node.label}")
    answer = ask("Choose target indices (comma), 'all' for no filter, or Enter to skip").strip().lower()
    if not answer or answer == "all":
        return []
    return list(dict.fromkeys(nodes[i].urn for i in _parse_indices(answer, len(nodes))))


def resolve_targets(stack: Any, targets: list[str]) -> list[str]:
    """Expand targets against the stack's current state.

    If the state cannot be exported the targets are used unexpanded.
    """
    unique = list(dict.fromkeys(t for t in targets if t))
    if not unique:
        return []
    try:
        nodes = export_resources(stack)
    except Exception as e:
        logger.warning("[%s] could not export state, using targets as given: %s", getattr(stack, "name", "<stack>"), e)
        return unique
    return expand_targets(nodes, unique)


# ── Execution ───────────────────────────────────────────────────


def execute_operation(
    op: Operation,
    items: list[StackItem],
    targets: list[str] | None = None,
    target_dependents: bool = False,
    ask: Ask = _no_prompt,
    echo: Echo = click.echo,
    on_output: OutputCallback | None = None,
    receipts: list[OperationReceipt] | None = None,
) -> list[OperationReceipt]:
    """Run ``op`` on every item, one stack at a time.

    Stacks run in discovery order, reversed for destroy. When targets
    remain after expansion, dependents are always included.

    Receipts are appended to ``receipts`` when given, so a caller keeps
    the ones recorded before a failure.

    Raises:
        StackOperationError: A stack failed. Stacks after it don't run.
        StackConfigError: A stack's settings are incomplete.
    """
    ordered = list(reversed(items)) if op is Operation.DESTROY else list(items)
    run = OPERATIONS[op.value]
    if receipts is None:
        receipts = []

    echo(f"Executing '{op.value}' for {len(ordered)} stack(s)...")
    for item in ordered:
        start = time.monotonic()
        try:
            stack = item.resolve()
        except NebulaError:
            raise
        except Exception as e:
            raise StackOperationError.from_exception(item.stack_name, "select", e) from e

        base = list(targets) if targets else prompt_targets(stack, ask, echo)
        expanded = resolve_targets(stack, base)
        dependents = True if expanded else target_dependents

        try:
            run(stack, target=expanded or None, target_dependents=dependents, on_output=on_output)
        except StackOperationError as e:
            logger.error("[%s] %s failed: %s", item.stack_name, op.value, e.message)
            receipts.append(OperationReceipt.record(item.stack_name, op, start, expanded, error=e.message))
            raise

        receipts.append(OperationReceipt.record(item.stack_name, op, start, expanded))
    return receipts


# ── Full runner ─────────────────────────────────────────────────


def run_project(
    project: Project,
    options: RunOptions | None = None,
    ask: Ask = _no_prompt,
    backend: StackBackend | None = None,
    echo: Echo = click.echo,
    on_output: OutputCallback | None = None,
) -> RunResult:
    """Drive one full runner pass over a project.

    Receipts collected before a failure are kept on the result; the
    failure itself is reported through ``error``.
    """
    options = options or RunOptions()
    debug = setup_debug_flags(options.debug_level)
    backend = backend or AutomationBackend(StackManager(debug=bool(debug)))
    result = RunResult()

    items = collect_stacks(project, backend, env_filter=options.env, work_dir=options.work_dir)
    if not items:
        echo("No stacks found.")
        return result

    result.operation = determine_operation(options.op, ask)

    selected = select_stacks(items, options.select, options.all, ask, echo)
    result.selected = [i.label for i in selected]
    if not selected:
        echo("Nothing selected.")
        return result

    try:
        execute_operation(
            result.operation,
            selected,
            options.targets,
            options.target_dependents,
            ask,
            echo,
            on_output,
            receipts=result.receipts,
        )
    except StackOperationError as e:
        result.error = str(e)
    return result
