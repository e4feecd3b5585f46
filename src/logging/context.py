# src/logging/context.py - v2
"""Contextual logging: attach batch_id, package, file_path and step to records.

Values live in context variables so they follow the current asyncio task.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

_batch_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "batch_id", default=None
)
_package: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "package", default=None
)
_file_path: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "file_path", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)


@dataclass
class LogContext:
    """Snapshot of the current logging context."""

    batch_id: str | None = None
    package: str | None = None
    file_path: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        batch_id=_batch_id.get(),
        package=_package.get(),
        file_path=_file_path.get(),
        step=_step.get(),
    )


def set_batch_context(batch_id: str | None, package: str | None = None) -> None:
    """Set job-level context (called once per batch job handled)."""
    _batch_id.set(batch_id)
    _package.set(package)


def set_step(step: str | None, file_path: str | None = None) -> None:
    """Set the lifecycle step (submit, poll, reconcile, quarantine...)."""
    _step.set(step)
    _file_path.set(file_path)


@contextmanager
def batch_context(
    batch_id: str | None, package: str | None = None, step: str | None = None
) -> Iterator[None]:
    """Scope job-level context to a block, restoring the previous values."""
    tokens = (
        _batch_id.set(batch_id),
        _package.set(package),
        _step.set(step),
    )
    try:
        yield
    finally:
        _step.reset(tokens[2])
        _package.reset(tokens[1])
        _batch_id.reset(tokens[0])


def clear_context() -> None:
    """Reset all context variables."""
    _batch_id.set(None)
    _package.set(None)
    _file_path.set(None)
    _step.set(None)
