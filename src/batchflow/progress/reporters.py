"""
Progress reporters for BatchFlow.

Reporters consume the scheduler's task set after each sample and decide on
their own whether to render. Rendering cadence is independent from the
scheduler's poll interval.

Modes:
- SILENT: no output
- SUMMARY: one compact line per poll
- VISUAL: throttled full-screen redraw with per-task progress bars
- DASHBOARD: throttled structured export handed to a DashboardSink
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from rich.console import Console, Group
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from batchflow.core.activity import ActivityLog
from batchflow.core.task import Task
from batchflow.core.types import OutputMode
from batchflow.progress.sinks import DashboardSink, create_sink
from batchflow.progress.snapshot import BatchSummary, ProgressSnapshot, build_snapshots
from batchflow.utils.errors import DashboardError
from batchflow.utils.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# Base Reporter
# =============================================================================


class ProgressReporter(ABC):
    """
    Base class for progress reporters.

    Subclasses implement render(); throttling and the forced final render
    are handled here.

    Attributes:
        min_interval: Minimum seconds between renders (0 renders every poll)
        last_snapshots: Snapshots of the most recent render
        render_count: Number of renders performed
    """

    mode: OutputMode

    def __init__(
        self,
        min_interval: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.min_interval = min_interval
        self._clock = clock
        self._last_render: float | None = None
        self.last_snapshots: list[ProgressSnapshot] = []
        self.render_count = 0

    def should_render(self, now: float) -> bool:
        if self._last_render is None or self.min_interval <= 0:
            return True
        return now - self._last_render >= self.min_interval

    def on_poll(self, tasks: Sequence[Task], activity: ActivityLog) -> bool:
        """
        Per-iteration hook called by the scheduler.

        Returns:
            True if a render happened
        """
        now = self._clock()
        if not self.should_render(now):
            return False
        self._do_render(tasks, activity, now, final=False)
        return True

    def finalize(self, tasks: Sequence[Task], activity: ActivityLog) -> None:
        """Forced render once the loop exits, with final percentages."""
        self._do_render(tasks, activity, self._clock(), final=True)

    def _do_render(
        self,
        tasks: Sequence[Task],
        activity: ActivityLog,
        now: float,
        final: bool,
    ) -> None:
        snapshots = build_snapshots(tasks, now, final=final)
        self.render(snapshots, activity, final=final)
        self.last_snapshots = snapshots
        self._last_render = now
        self.render_count += 1

    @abstractmethod
    def render(
        self,
        snapshots: Sequence[ProgressSnapshot],
        activity: ActivityLog,
        final: bool = False,
    ) -> None:
        """Render one set of snapshots."""

    async def close(self) -> None:
        """Wait for output still in flight, then release resources."""


# =============================================================================
# Reporters
# =============================================================================


class SilentReporter(ProgressReporter):
    """Renders nothing; still keeps the last snapshots for inspection."""

    mode = OutputMode.SILENT

    def render(
        self,
        snapshots: Sequence[ProgressSnapshot],
        activity: ActivityLog,
        final: bool = False,
    ) -> None:
        pass


class SummaryReporter(ProgressReporter):
    """One compact line per poll iteration."""

    mode = OutputMode.SUMMARY

    def __init__(
        self,
        console: Console | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(min_interval=0.0, clock=clock)
        self.console = console or Console()

    def render(
        self,
        snapshots: Sequence[ProgressSnapshot],
        activity: ActivityLog,
        final: bool = False,
    ) -> None:
        summary = BatchSummary.from_snapshots(snapshots)
        prefix = "[bold]done[/bold]" if final else f"[dim]{datetime.now():%H:%M:%S}[/dim]"
        self.console.print(
            f"{prefix} {summary.finished}/{summary.total} finished | "
            f"[yellow]{summary.running} running[/yellow] | "
            f"[green]{summary.completed} completed[/green] | "
            f"[red]{summary.failed} failed[/red] | "
            f"[magenta]{summary.timed_out} timed out[/magenta]",
            highlight=False,
        )


class VisualReporter(ProgressReporter):
    """
    Full-screen redraw throttled to ``refresh_interval`` seconds.

    Each task gets its glyph, a proportional progress bar, the percentage,
    elapsed/timeout and a step description. The tail of the activity log is
    shown below the table.
    """

    mode = OutputMode.VISUAL

    def __init__(
        self,
        console: Console | None = None,
        refresh_interval: float = 3.0,
        activity_lines: int = 10,
        bar_width: int = 30,
        clear: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(min_interval=refresh_interval, clock=clock)
        self.console = console or Console()
        self.activity_lines = activity_lines
        self.bar_width = bar_width
        self.clear = clear

    def build_table(self, snapshots: Sequence[ProgressSnapshot]) -> Table:
        summary = BatchSummary.from_snapshots(snapshots)
        table = Table(
            title=f"BatchFlow: {summary.finished}/{summary.total} finished",
            show_header=True,
            header_style="bold cyan",
            expand=False,
        )
        table.add_column("", width=2)
        table.add_column("Task", style="cyan", no_wrap=True)
        table.add_column("Progress")
        table.add_column("%", justify="right")
        table.add_column("Elapsed", justify="right")
        table.add_column("Status")
        table.add_column("Step")

        for snapshot in snapshots:
            bar = ProgressBar(
                total=100,
                completed=snapshot.progress_percent,
                width=self.bar_width,
                complete_style=snapshot.style,
                finished_style=snapshot.style,
            )
            table.add_row(
                Text(snapshot.glyph, style=snapshot.style),
                snapshot.description,
                bar,
                f"{snapshot.progress_percent}%",
                f"{snapshot.elapsed_seconds:.1f}s / {snapshot.timeout_seconds:g}s",
                Text(snapshot.status.value, style=snapshot.style),
                snapshot.step,
            )
        return table

    def render(
        self,
        snapshots: Sequence[ProgressSnapshot],
        activity: ActivityLog,
        final: bool = False,
    ) -> None:
        table = self.build_table(snapshots)
        entries = activity.tail(self.activity_lines)
        log_text = "\n".join(str(entry) for entry in entries) or "No activity yet"

        if self.clear:
            self.console.clear()
        self.console.print(
            Group(
                table,
                Panel(log_text, title="Activity", border_style="dim", expand=False),
            )
        )

class DashboardReporter(ProgressReporter):
    """
    Periodic structured export to an external dashboard.

    The export is built on the control loop and handed to the sink as a
    background task, so a slow sink never delays sampling. At most one
    export is in flight; exports produced meanwhile replace each other and
    only the latest one is sent next. The final export is always delivered
    before close() returns.

    Export shape:
        {
            "generated_at": ISO timestamp,
            "final": bool,
            "summary": {total, running, completed, failed, timed_out},
            "tasks": [snapshot dicts],
            "activity": [{timestamp, message}]
        }
    """

    mode = OutputMode.DASHBOARD

    def __init__(
        self,
        sink: DashboardSink,
        export_interval: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(min_interval=export_interval, clock=clock)
        self.sink = sink
        self.export_errors = 0
        self.exports_sent = 0
        self.exports_superseded = 0
        self._in_flight: asyncio.Task[None] | None = None
        self._pending: dict[str, Any] | None = None

    @staticmethod
    def build_export(
        snapshots: Sequence[ProgressSnapshot],
        activity: ActivityLog,
        final: bool = False,
    ) -> dict[str, Any]:
        return {
            "generated_at": datetime.now().isoformat(),
            "final": final,
            "summary": BatchSummary.from_snapshots(snapshots).to_dict(),
            "tasks": [snapshot.to_dict() for snapshot in snapshots],
            "activity": activity.to_list(),
        }

    def render(
        self,
        snapshots: Sequence[ProgressSnapshot],
        activity: ActivityLog,
        final: bool = False,
    ) -> None:
        payload = self.build_export(snapshots, activity, final=final)

        if self._in_flight is not None and not self._in_flight.done():
            if self._pending is not None:
                self.exports_superseded += 1
            self._pending = payload
            return

        loop = asyncio.get_running_loop()
        self._in_flight = loop.create_task(self._publish(payload))

    async def _publish(self, payload: dict[str, Any]) -> None:
        next_payload: dict[str, Any] | None = payload
        while next_payload is not None:
            try:
                await self.sink.publish(next_payload)
                self.exports_sent += 1
            except DashboardError as e:
                self.export_errors += 1
                logger.warning("Dashboard export failed", target=self.sink.target, error=str(e))
            next_payload, self._pending = self._pending, None

    async def close(self) -> None:
        if self._in_flight is not None:
            await self._in_flight
            self._in_flight = None
        await self.sink.close()


# =============================================================================
# Factory
# =============================================================================


def create_reporter(
    mode: OutputMode | str,
    console: Console | None = None,
    refresh_interval: float = 3.0,
    export_interval: float = 2.0,
    activity_lines: int = 10,
    sink: DashboardSink | None = None,
    dashboard_path: str | None = None,
    dashboard_url: str | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> ProgressReporter:
    """
    Build the reporter for an output mode.

    Raises:
        ConfigurationError: If the mode is not a valid OutputMode
    """
    output_mode = OutputMode.parse(mode)

    if output_mode is OutputMode.SILENT:
        return SilentReporter(clock=clock)
    if output_mode is OutputMode.SUMMARY:
        return SummaryReporter(console=console, clock=clock)
    if output_mode is OutputMode.VISUAL:
        return VisualReporter(
            console=console,
            refresh_interval=refresh_interval,
            activity_lines=activity_lines,
            clock=clock,
        )
    return DashboardReporter(
        sink=sink or create_sink(dashboard_path, dashboard_url),
        export_interval=export_interval,
        clock=clock,
    )


__all__ = [
    "ProgressReporter",
    "SilentReporter",
    "SummaryReporter",
    "VisualReporter",
    "DashboardReporter",
    "create_reporter",
]
