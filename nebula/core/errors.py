"""
Error hierarchy: every failure the orchestration core raises.

Library code raises these; the CLI catches ``NebulaError``, prints the
message and exits 1. Messages always carry the module or stack name
so an operator can tell which unit failed.
"""

from __future__ import annotations

import re


class NebulaError(Exception):
    """Base class for all Nebula errors."""


class ConfigError(NebulaError):
    """Raised when project configuration is invalid or missing."""


class DependencyCycleError(NebulaError):
    """Raised when module capabilities form a dependency cycle."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.cycle)}")


class CapabilityCollisionError(NebulaError):
    """Raised when two modules provide the same capability and collisions are fatal."""

    def __init__(self, capability: str, first: str, second: str) -> None:
        self.capability = capability
        self.first = first
        self.second = second
        super().__init__(
            f"Capability '{capability}' provided by multiple modules: '{first}' and '{second}'"
        )


class DuplicateModuleError(NebulaError):
    """Raised when two modules share a name and collisions are fatal."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Module name '{name}' is used by more than one module")


class ModuleExecutionError(NebulaError):
    """Raised when a module factory fails during an orchestration pass."""

    def __init__(self, module: str, cause: BaseException) -> None:
        self.module = module
        self.cause = cause
        super().__init__(f"[{module}] module failed: {cause}")


class StackConfigError(NebulaError):
    """Raised when a stack cannot be created because its settings are incomplete."""


# Engine output is capped so a failing deployment can't flood the terminal.
OUTPUT_LIMIT = 500


class StackOperationError(NebulaError):
    """Raised when the engine fails a stack operation (create, preview, up, ...).

    Carries the engine's exit code, message and truncated stdout/stderr.
    """

    def __init__(
        self,
        stack: str,
        operation: str,
        message: str,
        exit_code: int | str | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        self.stack = stack
        self.operation = operation
        self.message = message[:OUTPUT_LIMIT]
        self.exit_code = exit_code
        self.stdout = (stdout or "")[:OUTPUT_LIMIT]
        self.stderr = (stderr or "")[:OUTPUT_LIMIT]
        super().__init__(self.describe())

    @classmethod
    def from_exception(cls, stack: str, operation: str, exc: BaseException) -> StackOperationError:
        """Wrap an engine exception, keeping whatever detail it exposes.

        Automation API ``CommandError``s carry the CLI's ``CommandResult``
        as their only argument; its exit code, stdout and stderr are
        reported separately and the message is the last stderr line.
        """
        result = _command_result(exc)
        if result is None:
            return cls(stack=stack, operation=operation, message=str(exc) or type(exc).__name__, exit_code="unknown")
        code, stdout, stderr = result
        return cls(
            stack=stack,
            operation=operation,
            message=_last_line(stderr) or _last_line(stdout) or type(exc).__name__,
            exit_code=code if code is not None else "unknown",
            stdout=stdout,
            stderr=stderr,
        )

    def describe(self) -> str:
        lines = [
            f"[{self.stack}] {self.operation} failed",
            f"   Error code: {self.exit_code}",
            f"   Message: {self.message}",
        ]
        if self.stderr:
            lines.append(f"   Stderr: {self.stderr}")
        if self.stdout:
            lines.append(f"   Stdout: {self.stdout}")
        return "\n".join(lines)


# ``str(CommandResult)``: "\n code: N\n stdout: ...\n stderr: ..."
_COMMAND_RESULT_RE = re.compile(r"\s*code: (?P<code>-?\d+)\n stdout: (?P<stdout>.*?)\n stderr: (?P<stderr>.*)\Z", re.S)


def _command_result(exc: BaseException) -> tuple[int | None, str, str] | None:
    """Exit code, stdout and stderr of a failed engine command, if ``exc`` is one."""
    for arg in exc.args:
        if hasattr(arg, "code") and hasattr(arg, "stdout") and hasattr(arg, "stderr"):
            return arg.code, arg.stdout or "", arg.stderr or ""
    match = _COMMAND_RESULT_RE.match(str(exc))
    if match is None:
        return None
    return int(match["code"]), match["stdout"], match["stderr"]


def _last_line(text: str) -> str:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    return lines[-1] if lines else ""
