"""
Execution Slot Pool for BatchFlow.

Bounded set of concurrent workers sharing one capability bundle.

Features:
- Lifecycle UNOPENED -> OPEN -> CLOSED with idempotent close
- Non-blocking submission returning a pollable task handle
- Concurrency capped at capacity.max_workers (excess submissions queue)
- Coroutine work runs on the event loop, blocking work on worker threads
- Isolated TaskScope per task
- Best-effort cancellation for timed-out tasks
"""

from __future__ import annotations

import asyncio
import contextvars
import functools
import inspect
import math
import threading
import time
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from batchflow.core.capabilities import Capabilities, CapabilityBundle
from batchflow.core.task import Task, TaskIdGenerator
from batchflow.core.types import PoolCapacity, PoolState, TaskStatus
from batchflow.utils.errors import PoolClosedError, PoolError, PoolInitError, SubmissionError
from batchflow.utils.logging import LogContext, get_logger, log_error

logger = get_logger(__name__)

# Seconds the warm-up barrier waits for min_workers threads to start.
WARMUP_TIMEOUT = 1.0


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class PoolStats:
    """
    Pool statistics.

    Attributes:
        state: Current lifecycle state
        max_workers: Concurrency limit
        submitted: Tasks submitted so far
        active: Work items executing right now
        running: Tasks not yet terminal
        completed: Tasks completed
        failed: Tasks failed
        timed_out: Tasks timed out
        capability_errors: Bundle entries that failed to register
        uptime: Seconds since the pool opened
    """

    state: PoolState
    max_workers: int
    submitted: int
    active: int
    running: int
    completed: int
    failed: int
    timed_out: int
    capability_errors: int = 0
    uptime: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "state": self.state.value,
            "max_workers": self.max_workers,
            "submitted": self.submitted,
            "active": self.active,
            "running": self.running,
            "completed": self.completed,
            "failed": self.failed,
            "timed_out": self.timed_out,
            "capability_errors": self.capability_errors,
            "uptime": round(self.uptime, 2),
        }


def _accepts_scope(work: Callable[..., Any]) -> bool:
    """True if the work item declares a parameter named ``scope``."""
    try:
        signature = inspect.signature(work)
    except (TypeError, ValueError):
        return False
    return "scope" in signature.parameters


def _consume_outcome(handle: asyncio.Future[Any]) -> None:
    # Handles of timed-out tasks are never retrieved by the scheduler.
    if not handle.cancelled():
        handle.exception()


# =============================================================================
# Execution Pool
# =============================================================================


class ExecutionPool:
    """
    Pool of execution slots for a batch of independent work items.

    Usage:
        pool = ExecutionPool(PoolCapacity(max_workers=3), bundle)
        pool.open()

        # Must be called from a running event loop
        task = pool.submit(crunch, 42, description="crunch 42", timeout=10)

        # ... the scheduler polls task.is_done() ...

        pool.close()
        pool.dispose()

        # Context manager usage
        async with ExecutionPool(capacity, bundle) as pool:
            task = pool.submit(crunch, 1)

    Attributes:
        capacity: Concurrency bounds
        default_timeout: Timeout applied when submit() gets none
    """

    def __init__(
        self,
        capacity: PoolCapacity | None = None,
        bundle: CapabilityBundle | Mapping[str, Any] | None = None,
        default_timeout: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the pool in the UNOPENED state.

        Args:
            capacity: Concurrency bounds (defaults to PoolCapacity())
            bundle: Capability bundle or plain mapping
            default_timeout: Timeout in seconds for submissions without one
            clock: Monotonic clock used for submission times
        """
        self._capacity = capacity or PoolCapacity()
        self._bundle = bundle
        self._default_timeout = default_timeout
        self._clock = clock

        self._state = PoolState.UNOPENED
        self._capabilities: Capabilities | None = None
        self._init_errors: list[PoolInitError] = []
        self._executor: ThreadPoolExecutor | None = None
        self._semaphore: asyncio.Semaphore | None = None

        self._tasks: dict[str, Task] = {}
        self._ids = TaskIdGenerator()
        self._active = 0
        self._opened_at: float | None = None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is PoolState.OPEN

    @property
    def capacity(self) -> PoolCapacity:
        return self._capacity

    @property
    def default_timeout(self) -> float:
        return self._default_timeout

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    @property
    def capabilities(self) -> Capabilities | None:
        return self._capabilities

    @property
    def init_errors(self) -> list[PoolInitError]:
        """Bundle entries that failed to register when the pool opened."""
        return list(self._init_errors)

    @property
    def tasks(self) -> list[Task]:
        """Submitted tasks in submission order."""
        return list(self._tasks.values())

    @property
    def active_count(self) -> int:
        return self._active

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def open(self) -> ExecutionPool:
        """
        Materialize the capability bundle and start the worker slots.

        Individual capability failures are logged and kept in init_errors;
        the pool still opens with the remaining capabilities.

        Returns:
            self

        Raises:
            PoolInitError: If the bundle is unusable or the pool was closed
        """
        if self._state is PoolState.OPEN:
            return self
        if self._state is PoolState.CLOSED:
            raise PoolInitError("Cannot reopen a closed pool")

        bundle = CapabilityBundle.coerce(self._bundle)
        try:
            capabilities, errors = bundle.materialize()
        except Exception as e:
            raise PoolInitError(f"Capability bundle could not be materialized: {e}", cause=e) from e

        self._capabilities = capabilities
        self._init_errors = errors
        self._executor = ThreadPoolExecutor(
            max_workers=self._capacity.max_workers,
            thread_name_prefix="batchflow-worker",
        )
        self._semaphore = asyncio.Semaphore(self._capacity.max_workers)
        self._warm_up()

        self._state = PoolState.OPEN
        self._opened_at = self._clock()

        logger.info(
            "Pool opened",
            min_workers=self._capacity.min_workers,
            max_workers=self._capacity.max_workers,
            capabilities=len(capabilities),
            capability_errors=len(errors),
        )
        return self

    def _warm_up(self) -> None:
        """Start min_workers threads up front."""
        assert self._executor is not None
        count = self._capacity.min_workers
        if count <= 1:
            self._executor.submit(lambda: None)
            return
        barrier = threading.Barrier(count, timeout=WARMUP_TIMEOUT)
        for _ in range(count):
            self._executor.submit(barrier.wait)

    def close(self) -> None:
        """
        Transition OPEN -> CLOSED and release all slots.

        Outstanding handles are cancelled and the executor is shut down
        without waiting for threads still running. No-op if already closed.
        """
        if self._state is PoolState.CLOSED:
            return

        if self._state is PoolState.OPEN:
            pending = [task for task in self._tasks.values() if task.handle and not task.handle.done()]
            for task in pending:
                if task.scope is not None:
                    task.scope.request_stop()
                assert task.handle is not None
                task.handle.cancel()

            if self._executor is not None:
                self._executor.shutdown(wait=False, cancel_futures=True)

            logger.info(
                "Pool closed",
                submitted=len(self._tasks),
                cancelled_handles=len(pending),
            )

        self._state = PoolState.CLOSED

    def dispose(self) -> None:
        """Drop capabilities, executor and task registry. Safe in any state."""
        if self._state is PoolState.OPEN:
            self.close()
        self._capabilities = None
        self._executor = None
        self._semaphore = None
        self._tasks.clear()
        self._state = PoolState.CLOSED

    # =========================================================================
    # Submission
    # =========================================================================

    def submit(
        self,
        work: Callable[..., Any],
        *args: Any,
        task_id: str | None = None,
        description: str | None = None,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> Task:
        """
        Submit a work item without blocking.

        Must be called while an event loop is running. The returned task is
        RUNNING; its handle can be polled with task.is_done().

        Args:
            work: Callable or coroutine function
            *args: Positional arguments for the work item
            task_id: Unique id (generated if omitted)
            description: Human description (defaults to the id)
            timeout: Seconds before the scheduler times the task out
            **kwargs: Keyword arguments for the work item

        Returns:
            The RUNNING task

        Raises:
            SubmissionError: If the task could not be created
        """
        if self._state is not PoolState.OPEN:
            error = PoolClosedError(self._state.value)
            raise SubmissionError(str(error), task_id=task_id, cause=error)

        if not callable(work):
            raise SubmissionError(
                f"Work item must be callable, got {type(work).__name__}", task_id=task_id
            )

        effective_timeout = self._default_timeout if timeout is None else timeout
        try:
            effective_timeout = float(effective_timeout)
        except (TypeError, ValueError):
            raise SubmissionError(f"Invalid timeout: {timeout!r}", task_id=task_id) from None
        if not math.isfinite(effective_timeout) or effective_timeout <= 0:
            raise SubmissionError(
                f"Timeout must be finite and positive, got {effective_timeout}", task_id=task_id
            )

        if task_id is not None and task_id in self._tasks:
            raise SubmissionError(f"Duplicate task id '{task_id}'", task_id=task_id)
        resolved_id = task_id if task_id is not None else self._next_free_id()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise SubmissionError(
                "submit() requires a running event loop", task_id=resolved_id, cause=e
            ) from e

        assert self._capabilities is not None
        try:
            scope = self._capabilities.new_scope()
        except Exception as e:
            raise SubmissionError(
                f"Could not build task scope: {e}", task_id=resolved_id, cause=e
            ) from e

        task = Task(
            id=resolved_id,
            description=description or resolved_id,
            timeout=effective_timeout,
            started=self._clock(),
            submitted_at=datetime.now(),
            scope=scope,
            sequence=len(self._tasks),
        )

        try:
            handle = loop.create_task(
                self._execute(task, work, args, kwargs),
                name=f"batchflow:{resolved_id}",
            )
        except Exception as e:
            raise SubmissionError(
                f"Could not create task handle: {e}", task_id=resolved_id, cause=e
            ) from e

        handle.add_done_callback(_consume_outcome)
        task.handle = handle
        self._tasks[resolved_id] = task

        logger.debug(
            "Task submitted",
            task_id=resolved_id,
            timeout=effective_timeout,
            queued=self._active >= self._capacity.max_workers,
        )
        return task

    def _next_free_id(self) -> str:
        task_id = self._ids.next_id()
        while task_id in self._tasks:
            task_id = self._ids.next_id()
        return task_id

    async def _execute(
        self,
        task: Task,
        work: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> Any:
        """Run one work item inside a slot."""
        call_kwargs = dict(kwargs)
        if _accepts_scope(work):
            call_kwargs.setdefault("scope", task.scope)

        assert self._semaphore is not None
        async with self._semaphore:
            self._active += 1
            try:
                with LogContext(task_id=task.id):
                    if inspect.iscoroutinefunction(work):
                        return await work(*args, **call_kwargs)

                    if self._executor is None:
                        raise PoolError(message="Pool has no executor")

                    loop = asyncio.get_running_loop()
                    context = contextvars.copy_context()
                    result = await loop.run_in_executor(
                        self._executor,
                        functools.partial(context.run, work, *args, **call_kwargs),
                    )
                    if inspect.isawaitable(result):
                        result = await result
                    return result
            finally:
                self._active -= 1

    # =========================================================================
    # Cancellation
    # =========================================================================

    def cancel(self, task: Task) -> bool:
        """
        Request that a task's work stop (best effort).

        Sets the task scope's stop signal and cancels its async handle. Work
        already running on a thread keeps going until it returns or checks
        scope.should_stop().

        Returns:
            True if the handle accepted the cancellation

        Raises:
            PoolError: If the task has no handle
        """
        if task.scope is not None:
            task.scope.request_stop()
        if task.handle is None:
            raise PoolError(message=f"Task {task.id} has no handle to cancel")
        if task.handle.done():
            return False
        return task.handle.cancel()

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self) -> PoolStats:
        counts = {status: 0 for status in TaskStatus}
        for task in self._tasks.values():
            counts[task.status] += 1

        uptime = self._clock() - self._opened_at if self._opened_at is not None else 0.0

        return PoolStats(
            state=self._state,
            max_workers=self._capacity.max_workers,
            submitted=len(self._tasks),
            active=self._active,
            running=counts[TaskStatus.RUNNING],
            completed=counts[TaskStatus.COMPLETED],
            failed=counts[TaskStatus.FAILED],
            timed_out=counts[TaskStatus.TIMED_OUT],
            capability_errors=len(self._init_errors),
            uptime=uptime,
        )

    # =========================================================================
    # Context managers
    # =========================================================================

    async def __aenter__(self) -> ExecutionPool:
        return self.open()

    async def __aexit__(self, *args: Any) -> None:
        shutdown_pool(self)

    def __enter__(self) -> ExecutionPool:
        return self.open()

    def __exit__(self, *args: Any) -> None:
        shutdown_pool(self)

    def __repr__(self) -> str:
        return (
            f"ExecutionPool("
            f"max_workers={self._capacity.max_workers}, "
            f"tasks={len(self._tasks)}, "
            f"state={self._state.value})"
        )


# =============================================================================
# Convenience Functions
# =============================================================================


def open_pool(
    capacity: PoolCapacity | None = None,
    bundle: CapabilityBundle | Mapping[str, Any] | None = None,
    **kwargs: Any,
) -> ExecutionPool:
    """
    Create and open a pool in one call.

    Raises:
        PoolInitError: If the bundle cannot be materialized
    """
    return ExecutionPool(capacity, bundle, **kwargs).open()


def shutdown_pool(pool: ExecutionPool) -> None:
    """
    Close (if open) and dispose a pool. Never raises.

    Failures in either step are logged as warnings. Calling it on an
    already torn-down pool is a no-op.
    """
    try:
        if pool.state is PoolState.OPEN:
            pool.close()
    except Exception as e:
        log_error(logger, "pool close", e)

    try:
        pool.dispose()
    except Exception as e:
        log_error(logger, "pool dispose", e)


__all__ = [
    "PoolStats",
    "ExecutionPool",
    "open_pool",
    "shutdown_pool",
]
