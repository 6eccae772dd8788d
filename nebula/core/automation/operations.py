"""
Stack lifecycle operations: preview, up, destroy, refresh.

Each operation runs with SIGINT/SIGTERM wired to a one-shot cancel
request against the stack. Handlers are installed right before the
engine call and the previous ones restored as soon as it settles.
"""

from __future__ import annotations

import logging
import signal
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import click

from nebula.core.errors import StackOperationError

logger = logging.getLogger(__name__)

OutputCallback = Callable[[str], None]

_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _default_output(line: str) -> None:
    click.echo(line)


def _stack_label(stack: Any) -> str:
    return str(getattr(stack, "name", None) or "<stack>")


# ── Cancellation ────────────────────────────────────────────────


class CancellationGuard:
    """Signal handler that requests ``stack.cancel()`` at most once."""

    def __init__(self, stack: Any) -> None:
        self.stack = stack
        self.requested = False

    def __call__(self, signum: int, frame: Any = None) -> None:
        if self.requested:
            logger.debug("[%s] cancel already requested, ignoring signal %s", _stack_label(self.stack), signum)
            return
        self.requested = True
        logger.warning("[%s] received signal %s, cancelling operation", _stack_label(self.stack), signum)
        try:
            self.stack.cancel()
        except Exception as e:
            logger.error("[%s] cancel failed: %s", _stack_label(self.stack), e)


@contextmanager
def cancel_on_signals(stack: Any) -> Iterator[CancellationGuard]:
    """Install the cancel handler for the duration of the block."""
    guard = CancellationGuard(stack)
    previous: dict[int, Any] = {}
    for sig in _SIGNALS:
        try:
            previous[sig] = signal.signal(sig, guard)
        except ValueError:
            # Not on the main thread; run without cancellation wiring.
            logger.debug("Cannot install handler for %s outside the main thread", sig)
    try:
        yield guard
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)


# ── Operations ──────────────────────────────────────────────────


def _run(
    operation: str,
    stack: Any,
    call: Callable[..., Any],
    kwargs: dict[str, Any],
) -> Any:
    label = _stack_label(stack)
    logger.info("[%s] %s starting", label, operation)
    with cancel_on_signals(stack):
        try:
            result = call(**kwargs)
        except Exception as e:
            error = StackOperationError.from_exception(label, operation, e)
            logger.error("✗ %s", error.describe())
            raise error from e
    logger.info("✓ [%s] %s finished", label, operation)
    return result


def _target_kwargs(
    target: list[str] | None,
    target_dependents: bool,
    on_output: OutputCallback | None,
) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"on_output": on_output or _default_output}
    if target:
        kwargs["target"] = list(target)
        kwargs["target_dependents"] = bool(target_dependents)
    return kwargs


def preview_stack(
    stack: Any,
    target: list[str] | None = None,
    target_dependents: bool = False,
    on_output: OutputCallback | None = None,
) -> Any:
    """Preview changes, optionally scoped to ``target`` URNs."""
    return _run("preview", stack, stack.preview, _target_kwargs(target, target_dependents, on_output))


def up_stack(
    stack: Any,
    target: list[str] | None = None,
    target_dependents: bool = False,
    on_output: OutputCallback | None = None,
) -> Any:
    """Deploy the stack, optionally scoped to ``target`` URNs."""
    return _run("up", stack, stack.up, _target_kwargs(target, target_dependents, on_output))


def destroy_stack(
    stack: Any,
    target: list[str] | None = None,
    target_dependents: bool = False,
    on_output: OutputCallback | None = None,
) -> Any:
    """Destroy the stack's resources, optionally scoped to ``target`` URNs."""
    return _run("destroy", stack, stack.destroy, _target_kwargs(target, target_dependents, on_output))


def refresh_stack(
    stack: Any,
    target: list[str] | None = None,
    target_dependents: bool = False,
    on_output: OutputCallback | None = None,
) -> Any:
    """Refresh state from the cloud, optionally scoped to ``target`` URNs.

    The engine's refresh has no dependents switch, so
    ``target_dependents`` is accepted and ignored.
    """
    kwargs: dict[str, Any] = {"on_output": on_output or _default_output}
    if target:
        kwargs["target"] = list(target)
    return _run("refresh", stack, stack.refresh, kwargs)


OPERATIONS: dict[str, Callable[..., Any]] = {
    "preview": preview_stack,
    "up": up_stack,
    "destroy": destroy_stack,
    "refresh": refresh_stack,
}
