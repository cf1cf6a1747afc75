"""
Result Aggregator for BatchFlow.

Converts tasks into uniform ResultRecords: exactly one record per submitted
task, whatever its status.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from batchflow.core.task import Task
from batchflow.core.types import ErrorPayload, TaskStatus
from batchflow.utils.errors import ValidationError
from batchflow.utils.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class ResultMetadata:
    """
    Timing and flag metadata of a result record.

    Attributes:
        submitted_at: Wall-clock submission time
        finished_at: Wall-clock terminal transition time (None while running)
        elapsed_seconds: Seconds from submission to terminal transition
        timeout_seconds: Task timeout
        has_error: True when the record carries an error payload
        has_warning: True when non-fatal problems were recorded
        warnings: The recorded warnings
    """

    submitted_at: datetime
    finished_at: datetime | None
    elapsed_seconds: float | None
    timeout_seconds: float
    has_error: bool = False
    has_warning: bool = False
    warnings: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "submitted_at": self.submitted_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "elapsed_seconds": (
                round(self.elapsed_seconds, 3) if self.elapsed_seconds is not None else None
            ),
            "timeout_seconds": self.timeout_seconds,
            "has_error": self.has_error,
            "has_warning": self.has_warning,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class ResultRecord:
    """
    Final, uniform outcome of one task.

    Attributes:
        id: Task id
        description: Task description
        status: Terminal status (or RUNNING when collected on demand)
        payload: Success value for COMPLETED tasks
        error: Error payload for FAILED / TIMED_OUT tasks
        metadata: Timing and flags, None when collected without metadata
    """

    id: str
    description: str
    status: TaskStatus
    payload: Any = None
    error: ErrorPayload | None = None
    metadata: ResultMetadata | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is TaskStatus.COMPLETED

    @classmethod
    def from_task(cls, task: Task, include_metadata: bool = True) -> ResultRecord:
        metadata = None
        if include_metadata:
            metadata = ResultMetadata(
                submitted_at=task.submitted_at,
                finished_at=task.finished_at,
                elapsed_seconds=task.elapsed,
                timeout_seconds=task.timeout,
                has_error=task.has_error,
                has_warning=task.has_warning,
                warnings=tuple(task.warnings),
            )
        return cls(
            id=task.id,
            description=task.description,
            status=task.status,
            payload=task.payload,
            error=task.error,
            metadata=metadata,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: dict[str, Any] = {
            "id": self.id,
            "description": self.description,
            "status": self.status.value,
            "payload": self.payload,
            "error": self.error.to_dict() if self.error else None,
        }
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        return data


@dataclass
class ResultSummary:
    """Counts per status across a result set."""

    total: int
    counts: dict[str, int] = field(default_factory=dict)

    @property
    def completed(self) -> int:
        return self.counts.get(TaskStatus.COMPLETED.value, 0)

    @property
    def all_completed(self) -> bool:
        return self.completed == self.total

    def to_dict(self) -> dict[str, Any]:
        return {"total": self.total, **self.counts}


# =============================================================================
# Collection
# =============================================================================

_STATUS_ORDER = {
    TaskStatus.COMPLETED: 0,
    TaskStatus.FAILED: 1,
    TaskStatus.TIMED_OUT: 2,
    TaskStatus.RUNNING: 3,
}

SORT_KEYS: dict[str, Callable[[Task], Any]] = {
    "submission": lambda task: task.sequence,
    "id": lambda task: task.id,
    "status": lambda task: (_STATUS_ORDER[task.status], task.sequence),
    "elapsed": lambda task: (task.elapsed is None, task.elapsed or 0.0, task.sequence),
}


def collect(
    tasks: Sequence[Task],
    include_metadata: bool = True,
    sort_by: str | None = None,
) -> list[ResultRecord]:
    """
    Convert tasks into result records.

    Args:
        tasks: Tasks in submission order
        include_metadata: Keep timing and flag metadata on the records
        sort_by: "submission" (default), "id", "status" or "elapsed"

    Returns:
        Exactly one ResultRecord per task

    Raises:
        ValidationError: If sort_by is unknown
    """
    ordered = list(tasks)
    if sort_by and sort_by != "submission":
        key = SORT_KEYS.get(sort_by)
        if key is None:
            raise ValidationError(
                f"Unknown sort key '{sort_by}'. Valid keys: {', '.join(SORT_KEYS)}",
                field="sort_by",
            )
        ordered = sorted(ordered, key=key)

    records = [ResultRecord.from_task(task, include_metadata=include_metadata) for task in ordered]

    running = sum(1 for record in records if record.status is TaskStatus.RUNNING)
    if running:
        logger.debug("Collected results while tasks still running", running=running)

    return records


def summarize(records: Sequence[ResultRecord]) -> ResultSummary:
    counts = Counter(record.status.value for record in records)
    return ResultSummary(
        total=len(records),
        counts={status.value: counts.get(status.value, 0) for status in TaskStatus},
    )


__all__ = [
    "ResultMetadata",
    "ResultRecord",
    "ResultSummary",
    "SORT_KEYS",
    "collect",
    "summarize",
]
