"""
Progress model for BatchFlow.

Pure functions that turn tasks into read-only ProgressSnapshots. Reporters
render snapshots; nothing here has side effects.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from batchflow.core.task import Task
from batchflow.core.types import TaskStatus

# Per-status presentation: glyph, rich style, step description
STATUS_GLYPHS: dict[TaskStatus, str] = {
    TaskStatus.RUNNING: "⏳",
    TaskStatus.COMPLETED: "✔",
    TaskStatus.FAILED: "✖",
    TaskStatus.TIMED_OUT: "⏱",
}

STATUS_STYLES: dict[TaskStatus, str] = {
    TaskStatus.RUNNING: "yellow",
    TaskStatus.COMPLETED: "green",
    TaskStatus.FAILED: "red",
    TaskStatus.TIMED_OUT: "magenta",
}

STATUS_STEPS: dict[TaskStatus, str] = {
    TaskStatus.RUNNING: "Executing work item",
    TaskStatus.COMPLETED: "Finished successfully",
    TaskStatus.FAILED: "Stopped with an error",
    TaskStatus.TIMED_OUT: "Stopped at deadline",
}


def progress_percent(
    status: TaskStatus,
    elapsed: float,
    timeout: float,
    final: bool = False,
) -> int:
    """
    Percent complete for a task, clamped to [0, 100].

    RUNNING tasks report elapsed/timeout. COMPLETED tasks report 100 and any
    other terminal status 0. The final render uses the same 100/0 split for
    every task so no bar stays frozen mid-way.

    Args:
        status: Task status
        elapsed: Elapsed seconds
        timeout: Timeout in seconds
        final: True for the forced render after the loop exits
    """
    if status is TaskStatus.COMPLETED:
        return 100
    if final or status is not TaskStatus.RUNNING:
        return 0
    if timeout <= 0:
        return 100
    percent = round(elapsed / timeout * 100)
    return max(0, min(100, percent))


@dataclass(frozen=True)
class ProgressSnapshot:
    """
    Read-only view over one task at one sampling instant.

    Attributes:
        id: Task id
        description: Task description
        status: Task status
        elapsed_seconds: Seconds since submission (frozen once terminal)
        timeout_seconds: Task timeout
        progress_percent: Percent complete in [0, 100]
        glyph: Status glyph
        style: Status color class
        step: One-line step description
    """

    id: str
    description: str
    status: TaskStatus
    elapsed_seconds: float
    timeout_seconds: float
    progress_percent: int
    glyph: str
    style: str
    step: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "status": self.status.value,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "timeout_seconds": self.timeout_seconds,
            "progress_percent": self.progress_percent,
            "glyph": self.glyph,
            "style": self.style,
            "step": self.step,
        }


def build_snapshot(task: Task, now: float, final: bool = False) -> ProgressSnapshot:
    """Compute the snapshot of one task at monotonic time ``now``."""
    elapsed = task.elapsed_at(now)
    status = task.status
    step = STATUS_STEPS[status]
    if status is TaskStatus.FAILED and task.error is not None:
        step = f"{step}: {task.error.type}"

    return ProgressSnapshot(
        id=task.id,
        description=task.description,
        status=status,
        elapsed_seconds=elapsed,
        timeout_seconds=task.timeout,
        progress_percent=progress_percent(status, elapsed, task.timeout, final=final),
        glyph=STATUS_GLYPHS[status],
        style=STATUS_STYLES[status],
        step=step,
    )


def build_snapshots(tasks: Sequence[Task], now: float, final: bool = False) -> list[ProgressSnapshot]:
    return [build_snapshot(task, now, final=final) for task in tasks]


@dataclass(frozen=True)
class BatchSummary:
    """Status counts across a batch."""

    total: int
    running: int
    completed: int
    failed: int
    timed_out: int

    @property
    def finished(self) -> int:
        return self.completed + self.failed + self.timed_out

    @classmethod
    def from_snapshots(cls, snapshots: Sequence[ProgressSnapshot]) -> BatchSummary:
        counts = {status: 0 for status in TaskStatus}
        for snapshot in snapshots:
            counts[snapshot.status] += 1
        return cls(
            total=len(snapshots),
            running=counts[TaskStatus.RUNNING],
            completed=counts[TaskStatus.COMPLETED],
            failed=counts[TaskStatus.FAILED],
            timed_out=counts[TaskStatus.TIMED_OUT],
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "running": self.running,
            "completed": self.completed,
            "failed": self.failed,
            "timed_out": self.timed_out,
        }
