"""
Task model for BatchFlow.

A Task is one submitted unit of work bound to a pool. It owns its asyncio
handle, its timeout and its mutable status. Only the scheduler moves a task
out of RUNNING, and it does so exactly once.
"""

from __future__ import annotations

import asyncio
import itertools
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from batchflow.core.types import ErrorPayload, TaskStatus
from batchflow.utils.errors import TaskError

if TYPE_CHECKING:
    from batchflow.core.capabilities import TaskScope


class TaskIdGenerator:
    """
    Generates ids unique within one batch: ``task-<epoch ms>-<sequence>``.

    The sequence makes ids unique even when several are generated in the
    same millisecond.
    """

    def __init__(self, prefix: str = "task") -> None:
        self._prefix = prefix
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            seq = next(self._counter)
        return f"{self._prefix}-{int(time.time() * 1000)}-{seq:04d}"


@dataclass(eq=False)
class Task:
    """
    Task submitted to an execution pool.

    Attributes:
        id: Unique task identifier within the batch
        description: Human readable description (defaults to id)
        timeout: Deadline in seconds, measured from submission
        started: Monotonic submission time used for elapsed computation
        submitted_at: Wall-clock submission time
        handle: Async handle whose completion is polled
        scope: Isolated capability scope the work item runs in
        status: Current status
        payload: Success value once COMPLETED
        error: Error payload once FAILED or TIMED_OUT
        finished_at: Wall-clock time of the terminal transition
        elapsed: Elapsed seconds frozen at the terminal transition
        warnings: Non-fatal problems seen while handling this task
        sequence: Submission order within the pool
    """

    id: str
    description: str
    timeout: float
    started: float
    submitted_at: datetime = field(default_factory=datetime.now)
    handle: asyncio.Future[Any] | None = None
    scope: TaskScope | None = None
    status: TaskStatus = TaskStatus.RUNNING
    payload: Any = None
    error: ErrorPayload | None = None
    finished_at: datetime | None = None
    elapsed: float | None = None
    warnings: list[str] = field(default_factory=list)
    sequence: int = 0

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self.status is TaskStatus.RUNNING

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def has_warning(self) -> bool:
        return bool(self.warnings)

    def elapsed_at(self, now: float) -> float:
        """Elapsed seconds at monotonic time ``now``; frozen once terminal."""
        if self.elapsed is not None:
            return self.elapsed
        return max(0.0, now - self.started)

    def is_done(self) -> bool:
        """Non-blocking completion check on the async handle."""
        return self.handle is not None and self.handle.done()

    # =========================================================================
    # Terminal transitions (driven by the scheduler only)
    # =========================================================================

    def _finish(self, status: TaskStatus, elapsed: float) -> None:
        if self.status.is_terminal:
            raise TaskError(
                f"Task {self.id} is already {self.status.value}; cannot become {status.value}",
                details={"task_id": self.id},
            )
        self.status = status
        self.elapsed = elapsed
        self.finished_at = datetime.now()

    def mark_completed(self, payload: Any, elapsed: float) -> None:
        self._finish(TaskStatus.COMPLETED, elapsed)
        self.payload = payload

    def mark_failed(self, error: ErrorPayload, elapsed: float) -> None:
        self._finish(TaskStatus.FAILED, elapsed)
        self.error = error

    def mark_timed_out(self, error: ErrorPayload, elapsed: float) -> None:
        self._finish(TaskStatus.TIMED_OUT, elapsed)
        self.error = error

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def __repr__(self) -> str:
        return f"Task(id={self.id!r}, status={self.status.value}, timeout={self.timeout:g})"
