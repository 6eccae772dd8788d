"""
Operation models: lifecycle operations and their per-stack receipts.

A receipt records what happened to one stack during a run. Engine
failures still propagate as exceptions; the receipt is what gets
reported back to the caller alongside them.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class Operation(str, Enum):
    """Stack lifecycle operations."""

    PREVIEW = "preview"
    UP = "up"
    DESTROY = "destroy"
    REFRESH = "refresh"

    @classmethod
    def parse(cls, value: str | None) -> Operation | None:
        """Look up an operation by name, None if unknown."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return None


class OperationReceipt(BaseModel):
    """Outcome of one lifecycle operation on one stack."""

    stack: str
    operation: Operation
    status: Literal["ok", "failed"] = "ok"
    targets: list[str] = Field(default_factory=list)
    error: str | None = None
    finished_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def summary(self) -> str:
        scope = f"{len(self.targets)} target(s)" if self.targets else "whole stack"
        return f"{self.operation.value} on {scope}"

    @classmethod
    def record(
        cls,
        stack: str,
        operation: Operation,
        started: float,
        targets: list[str] | None = None,
        error: str | None = None,
    ) -> OperationReceipt:
        """Close out a stack's operation that began at monotonic time ``started``."""
        return cls(
            stack=stack,
            operation=operation,
            status="failed" if error else "ok",
            targets=list(targets or []),
            error=error,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
