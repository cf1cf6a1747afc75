"""
Core type definitions for BatchFlow.

This module contains the enums and small dataclasses shared by the pool,
the scheduler, the progress reporters and the results aggregator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from batchflow.utils.errors import ConfigurationError

# =============================================================================
# Enums
# =============================================================================


class PoolState(str, Enum):
    """Lifecycle of an execution pool."""

    UNOPENED = "unopened"
    OPEN = "open"
    CLOSED = "closed"


class TaskStatus(str, Enum):
    """Task status. RUNNING is the only non-terminal value."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self is not TaskStatus.RUNNING


class OutputMode(str, Enum):
    """Progress reporter output modes."""

    SILENT = "silent"
    SUMMARY = "summary"
    VISUAL = "visual"
    DASHBOARD = "dashboard"

    @classmethod
    def parse(cls, value: OutputMode | str) -> OutputMode:
        """
        Parse an output mode from its name or value.

        Raises:
            ConfigurationError: If the value is not a known mode
        """
        if isinstance(value, OutputMode):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        aliases = {"external_dashboard": "dashboard", "externaldashboard": "dashboard"}
        normalized = aliases.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ConfigurationError(
                f"Invalid output mode '{value}'. Valid modes: {valid}",
                config_key="progress.mode",
            ) from None


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class PoolCapacity:
    """
    Concurrency bounds of an execution pool.

    Attributes:
        min_workers: Worker threads started when the pool opens
        max_workers: Maximum work items executing at once
    """

    min_workers: int = 1
    max_workers: int = 4

    def __post_init__(self) -> None:
        if self.min_workers < 1:
            raise ConfigurationError(
                f"min_workers must be >= 1, got {self.min_workers}",
                config_key="pool.min_workers",
            )
        if self.max_workers < self.min_workers:
            raise ConfigurationError(
                f"max_workers ({self.max_workers}) must be >= min_workers ({self.min_workers})",
                config_key="pool.max_workers",
            )


@dataclass(frozen=True)
class ErrorPayload:
    """Error captured from a failed or timed-out task."""

    type: str
    message: str
    traceback: str | None = None

    @classmethod
    def from_exception(cls, exc: BaseException, traceback: str | None = None) -> ErrorPayload:
        return cls(type=type(exc).__name__, message=str(exc) or repr(exc), traceback=traceback)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type, "message": self.message}
        if self.traceback:
            data["traceback"] = self.traceback
        return data

    def __str__(self) -> str:
        return f"{self.type}: {self.message}"


@dataclass
class ProgressUpdate:
    """Payload handed to the external progress callback after each poll."""

    completed_count: int
    total_tasks: int
    running_tasks: list[str] = field(default_factory=list)
    completed_tasks: list[str] = field(default_factory=list)

    @property
    def is_done(self) -> bool:
        return self.completed_count == self.total_tasks

    def to_dict(self) -> dict[str, Any]:
        return {
            "completed_count": self.completed_count,
            "total_tasks": self.total_tasks,
            "running_tasks": list(self.running_tasks),
            "completed_tasks": list(self.completed_tasks),
        }
