"""
Batch runner for BatchFlow.

Wires one batch together: open the pool, submit work, run the scheduler with
a fresh activity log, collect results and tear the pool down.

Usage:
    async with BatchRunner(config, bundle) as runner:
        runner.submit(fetch, "https://example.org", timeout=10)
        runner.submit(crunch, 42, description="crunch 42")
        records = await runner.run()

    # One call
    outcome = await run_batch([WorkItem(fetch, ("a",)), WorkItem(fetch, ("b",))])
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO

from batchflow.core.activity import ActivityLog
from batchflow.core.capabilities import CapabilityBundle
from batchflow.core.config import BatchFlowConfig, get_config
from batchflow.core.pool import ExecutionPool, shutdown_pool
from batchflow.core.scheduler import ProgressCallback, Scheduler
from batchflow.core.task import Task
from batchflow.progress.reporters import ProgressReporter, create_reporter
from batchflow.results.aggregator import ResultRecord, collect
from batchflow.results.export import export_results
from batchflow.utils.errors import SubmissionError
from batchflow.utils.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class WorkItem:
    """
    One unit of work for run_batch().

    Attributes:
        work: Callable or coroutine function
        args: Positional arguments
        kwargs: Keyword arguments
        id: Optional task id
        description: Optional description
        timeout: Optional timeout in seconds
    """

    work: Callable[..., Any]
    args: Sequence[Any] = ()
    kwargs: Mapping[str, Any] = field(default_factory=dict)
    id: str | None = None
    description: str | None = None
    timeout: float | None = None


@dataclass
class BatchOutcome:
    """Records of a finished batch plus the submissions that were rejected."""

    records: list[ResultRecord]
    submission_errors: list[SubmissionError] = field(default_factory=list)
    activity: ActivityLog | None = None

    @property
    def all_completed(self) -> bool:
        return not self.submission_errors and all(record.succeeded for record in self.records)


# =============================================================================
# Batch Runner
# =============================================================================


class BatchRunner:
    """
    Facade running one batch over one pool.

    Attributes:
        config: Effective configuration
        pool: The execution pool
        activity: Activity log of the last run
    """

    def __init__(
        self,
        config: BatchFlowConfig | None = None,
        bundle: CapabilityBundle | Mapping[str, Any] | None = None,
        reporter: ProgressReporter | None = None,
        on_progress: ProgressCallback | None = None,
        pool: ExecutionPool | None = None,
    ) -> None:
        """
        Initialize the runner.

        Args:
            config: Configuration (global config if omitted)
            bundle: Capability bundle for the pool
            reporter: Progress reporter (built from config.progress if omitted)
            on_progress: External progress callback
            pool: Pre-built pool (built from config.pool if omitted)

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self.config = config or get_config()
        self.config.validate()
        self.pool = pool or ExecutionPool(
            capacity=self.config.pool.capacity(),
            bundle=bundle,
            default_timeout=self.config.scheduler.default_timeout,
        )
        self._reporter = reporter
        self._on_progress = on_progress
        self.activity: ActivityLog | None = None

    @property
    def reporter(self) -> ProgressReporter:
        if self._reporter is None:
            progress = self.config.progress
            self._reporter = create_reporter(
                progress.mode,
                refresh_interval=progress.visual_refresh_interval,
                export_interval=progress.export_interval,
                activity_lines=progress.activity_display,
                dashboard_path=progress.dashboard_path,
                dashboard_url=progress.dashboard_url,
                clock=self.pool.clock,
            )
        return self._reporter

    @property
    def tasks(self) -> list[Task]:
        return self.pool.tasks

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def open(self) -> BatchRunner:
        self.pool.open()
        return self

    def close(self) -> None:
        shutdown_pool(self.pool)

    async def __aenter__(self) -> BatchRunner:
        return self.open()

    async def __aexit__(self, *args: Any) -> None:
        self.close()

    # =========================================================================
    # Batch operations
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
        """Submit a work item to the pool (see ExecutionPool.submit)."""
        return self.pool.submit(
            work,
            *args,
            task_id=task_id,
            description=description,
            timeout=timeout,
            **kwargs,
        )

    def submit_item(self, item: WorkItem) -> Task:
        return self.submit(
            item.work,
            *item.args,
            task_id=item.id,
            description=item.description,
            timeout=item.timeout,
            **dict(item.kwargs),
        )

    async def run(self) -> list[ResultRecord]:
        """
        Poll every submitted task to a terminal state and collect the results.

        A fresh activity log is created for each run.
        """
        self.activity = ActivityLog(max_entries=self.config.progress.activity_log_size)
        scheduler = Scheduler(
            self.pool,
            poll_interval=self.config.scheduler.poll_interval,
            reporter=self.reporter,
            on_progress=self._on_progress,
            activity=self.activity,
        )
        await scheduler.run(self.pool.tasks)
        return self.results()

    def results(
        self,
        include_metadata: bool | None = None,
        sort_by: str | None = None,
    ) -> list[ResultRecord]:
        """Collect records on demand (running tasks included)."""
        if include_metadata is None:
            include_metadata = self.config.results.include_metadata
        return collect(
            self.pool.tasks,
            include_metadata=include_metadata,
            sort_by=sort_by or self.config.results.sort_by,
        )

    def export(
        self,
        target: str | Path | TextIO,
        fmt: str | None = None,
        records: Sequence[ResultRecord] | None = None,
    ) -> str:
        return export_results(records if records is not None else self.results(), target, fmt)


# =============================================================================
# Convenience Functions
# =============================================================================


async def run_batch(
    items: Sequence[WorkItem],
    config: BatchFlowConfig | None = None,
    bundle: CapabilityBundle | Mapping[str, Any] | None = None,
    reporter: ProgressReporter | None = None,
    on_progress: ProgressCallback | None = None,
) -> BatchOutcome:
    """
    Run a list of work items as one batch.

    Submission errors are logged and reported in the outcome; the rest of the
    batch still runs. Pool construction errors propagate.

    Example:
        outcome = await run_batch(
            [WorkItem(slow, (15,), timeout=10), WorkItem(fast, (1,))],
            config=BatchFlowConfig(pool=PoolConfig(max_workers=3)),
        )
    """
    runner = BatchRunner(config=config, bundle=bundle, reporter=reporter, on_progress=on_progress)
    submission_errors: list[SubmissionError] = []

    async with runner:
        for item in items:
            try:
                runner.submit_item(item)
            except SubmissionError as e:
                submission_errors.append(e)
                logger.warning("Submission rejected", task_id=e.task_id, error=e.message)

        records = await runner.run()

        export_path = runner.config.results.export_path
        if export_path:
            runner.export(export_path, records=records)

    return BatchOutcome(records=records, submission_errors=submission_errors, activity=runner.activity)


def run_batch_sync(
    items: Sequence[WorkItem],
    config: BatchFlowConfig | None = None,
    bundle: CapabilityBundle | Mapping[str, Any] | None = None,
    reporter: ProgressReporter | None = None,
    on_progress: ProgressCallback | None = None,
) -> BatchOutcome:
    """Blocking wrapper around run_batch() for code without an event loop."""
    return asyncio.run(
        run_batch(items, config=config, bundle=bundle, reporter=reporter, on_progress=on_progress)
    )


__all__ = [
    "WorkItem",
    "BatchOutcome",
    "BatchRunner",
    "run_batch",
    "run_batch_sync",
]
