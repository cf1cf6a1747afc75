"""
Progress reporting for BatchFlow.

Provides:
- Pure progress snapshots computed from tasks
- Pluggable reporters (silent, summary, visual, dashboard)
- Dashboard sinks (JSON file, HTTP endpoint)
"""

from batchflow.progress.reporters import (
    DashboardReporter,
    ProgressReporter,
    SilentReporter,
    SummaryReporter,
    VisualReporter,
    create_reporter,
)
from batchflow.progress.sinks import (
    DashboardSink,
    FileDashboardSink,
    HttpDashboardSink,
    create_sink,
)
from batchflow.progress.snapshot import (
    BatchSummary,
    ProgressSnapshot,
    build_snapshot,
    build_snapshots,
    progress_percent,
)

__all__ = [
    # Snapshots
    "ProgressSnapshot",
    "BatchSummary",
    "build_snapshot",
    "build_snapshots",
    "progress_percent",
    # Reporters
    "ProgressReporter",
    "SilentReporter",
    "SummaryReporter",
    "VisualReporter",
    "DashboardReporter",
    "create_reporter",
    # Sinks
    "DashboardSink",
    "FileDashboardSink",
    "HttpDashboardSink",
    "create_sink",
]
