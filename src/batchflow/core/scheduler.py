"""
Scheduler / Poller for BatchFlow.

A single cooperative control loop that samples every outstanding task,
detects completion or timeout, and drives each task to exactly one terminal
state.

Per iteration:
1. sleep for the poll interval
2. for every RUNNING task: timeout check first, then completion check
3. reporter hook with the full task set (synchronous; dashboard exports
   are sent in the background)
4. optional external progress callback
5. stop once every task is terminal

The timeout check runs before the completion check, so a task that is past
its deadline and done in the same sampling window ends TIMED_OUT.
"""

from __future__ import annotations

import asyncio
import inspect
import math
import time
import traceback
import uuid
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any, Union

from batchflow.core.activity import ActivityLog
from batchflow.core.task import Task
from batchflow.core.types import ErrorPayload, ProgressUpdate, TaskStatus
from batchflow.utils.errors import ConfigurationError, SchedulerError, TaskTimeoutError
from batchflow.utils.logging import LogContext, get_logger

if TYPE_CHECKING:
    from batchflow.core.pool import ExecutionPool
    from batchflow.progress.reporters import ProgressReporter

logger = get_logger(__name__)

SyncProgressCallback = Callable[[ProgressUpdate], Any]
AsyncProgressCallback = Callable[[ProgressUpdate], Awaitable[Any]]
ProgressCallback = Union[SyncProgressCallback, AsyncProgressCallback]


class Scheduler:
    """
    Polling loop that owns every task status transition.

    Usage:
        scheduler = Scheduler(pool, poll_interval=1.0, reporter=reporter)
        tasks = await scheduler.run(pool.tasks)

    Attributes:
        pool: Pool the tasks were submitted to (used for cancellation)
        poll_interval: Seconds between samples
        activity: Activity log for this run
    """

    def __init__(
        self,
        pool: ExecutionPool,
        poll_interval: float = 1.0,
        reporter: ProgressReporter | None = None,
        on_progress: ProgressCallback | None = None,
        activity: ActivityLog | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            pool: Pool used to cancel timed-out work
            poll_interval: Seconds between samples (finite and positive)
            reporter: Progress reporter invoked after each sample
            on_progress: External callback receiving a ProgressUpdate
            activity: Activity log (a fresh one is created if omitted)
            clock: Monotonic clock, defaults to the pool's clock

        Raises:
            ConfigurationError: If poll_interval is not finite and positive
        """
        if not isinstance(poll_interval, (int, float)) or not math.isfinite(poll_interval):
            raise ConfigurationError(
                f"poll_interval must be finite, got {poll_interval!r}",
                config_key="scheduler.poll_interval",
            )
        if poll_interval <= 0:
            raise ConfigurationError(
                f"poll_interval must be positive, got {poll_interval}",
                config_key="scheduler.poll_interval",
            )

        self._pool = pool
        self._poll_interval = float(poll_interval)
        self._reporter = reporter
        self._on_progress = on_progress
        self._activity = activity if activity is not None else ActivityLog()
        self._clock = clock or getattr(pool, "clock", time.monotonic)
        self._running = False
        self._iterations = 0

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def pool(self) -> ExecutionPool:
        return self._pool

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    @property
    def activity(self) -> ActivityLog:
        return self._activity

    @property
    def iterations(self) -> int:
        """Number of sampling iterations performed by the last run."""
        return self._iterations

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # Main loop
    # =========================================================================

    async def run(self, tasks: Sequence[Task] | None = None) -> list[Task]:
        """
        Poll until every task is terminal.

        Args:
            tasks: Tasks to drive (defaults to every task in the pool)

        Returns:
            The same tasks, all terminal

        Raises:
            SchedulerError: If this scheduler is already running
        """
        if self._running:
            raise SchedulerError("Scheduler is already running; only one poller may own task state")

        batch = list(tasks) if tasks is not None else self._pool.tasks
        total = len(batch)
        self._running = True
        self._iterations = 0
        started = self._clock()

        with LogContext(batch_id=uuid.uuid4().hex[:8]):
            logger.info("Batch polling started", total_tasks=total, poll_interval=self._poll_interval)
            try:
                completed = self._count_terminal(batch)
                while completed < total:
                    await asyncio.sleep(self._poll_interval)
                    self._iterations += 1

                    self.poll_once(batch)
                    completed = self._count_terminal(batch)

                    self._render(batch)
                    await self._notify(batch, completed, total)

                self._render(batch, final=True)
                await self._close_reporter()
            finally:
                self._running = False

            logger.info(
                "Batch polling finished",
                total_tasks=total,
                iterations=self._iterations,
                duration=round(self._clock() - started, 3),
                **self._status_counts(batch),
            )

        return batch

    def poll_once(self, tasks: Sequence[Task]) -> int:
        """
        Sample every RUNNING task once.

        Returns:
            Number of tasks that reached a terminal state in this sample
        """
        transitions = 0
        for task in tasks:
            if not task.is_running:
                continue

            now = self._clock()
            elapsed = task.elapsed_at(now)

            if elapsed >= task.timeout:
                self._handle_timeout(task, elapsed)
                transitions += 1
            elif task.is_done():
                self._handle_completion(task, elapsed)
                transitions += 1

        return transitions

    # =========================================================================
    # Transitions
    # =========================================================================

    def _handle_timeout(self, task: Task, elapsed: float) -> None:
        error = TaskTimeoutError(task.id, timeout=task.timeout, elapsed=elapsed)
        task.mark_timed_out(ErrorPayload.from_exception(error), elapsed)

        try:
            self._pool.cancel(task)
        except Exception as e:
            message = f"stop request failed: {e}"
            task.add_warning(message)
            logger.warning(
                "Stop request failed for timed-out task",
                task_id=task.id,
                error=str(e),
            )

        logger.warning(
            "Task timed out",
            task_id=task.id,
            elapsed=round(elapsed, 3),
            timeout=task.timeout,
        )
        self._activity.append(
            f"{task.description} timed out after {elapsed:.1f}s (limit {task.timeout:g}s)"
        )

    def _handle_completion(self, task: Task, elapsed: float) -> None:
        assert task.handle is not None
        try:
            payload = task.handle.result()
        except asyncio.CancelledError as e:
            task.mark_failed(ErrorPayload(type="CancelledError", message="work item was cancelled"), elapsed)
            self._log_failure(task, e)
        except Exception as e:
            trace = "".join(traceback.format_exception(type(e), e, e.__traceback__))
            task.mark_failed(ErrorPayload.from_exception(e, traceback=trace), elapsed)
            self._log_failure(task, e)
        else:
            task.mark_completed(payload, elapsed)
            logger.debug("Task completed", task_id=task.id, elapsed=round(elapsed, 3))
            self._activity.append(f"{task.description} completed in {elapsed:.1f}s")

    def _log_failure(self, task: Task, error: BaseException) -> None:
        logger.warning(
            "Task failed",
            task_id=task.id,
            error_type=type(error).__name__,
            error=str(error),
        )
        self._activity.append(f"{task.description} failed: {task.error}")

    # =========================================================================
    # Reporter and progress callback
    # =========================================================================

    def _render(self, tasks: Sequence[Task], final: bool = False) -> None:
        if self._reporter is None:
            return
        try:
            if final:
                self._reporter.finalize(tasks, self._activity)
            else:
                self._reporter.on_poll(tasks, self._activity)
        except Exception as e:
            logger.warning("Progress reporter failed", final=final, error=str(e))

    async def _close_reporter(self) -> None:
        if self._reporter is None:
            return
        try:
            outcome = self._reporter.close()
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning("Progress reporter failed to close", error=str(e))

    async def _notify(self, tasks: Sequence[Task], completed: int, total: int) -> None:
        if self._on_progress is None:
            return

        update = ProgressUpdate(
            completed_count=completed,
            total_tasks=total,
            running_tasks=[t.id for t in tasks if t.is_running],
            completed_tasks=[t.id for t in tasks if t.is_terminal],
        )
        try:
            outcome = self._on_progress(update)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning("Progress callback failed", error=str(e))

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _count_terminal(tasks: Sequence[Task]) -> int:
        return sum(1 for task in tasks if task.is_terminal)

    @staticmethod
    def _status_counts(tasks: Sequence[Task]) -> dict[str, int]:
        counts = {status.value: 0 for status in TaskStatus}
        for task in tasks:
            counts[task.status.value] += 1
        return counts

    def __repr__(self) -> str:
        return f"Scheduler(poll_interval={self._poll_interval}, running={self._running})"


__all__ = [
    "ProgressCallback",
    "Scheduler",
]
