"""
BatchFlow - Bounded parallel batch execution with timeouts and live progress

Runs N independent work items M at a time, each bounded by a deadline, with
visibility into what is still running and a uniform result set at the end.

Basic Usage:
    from batchflow import BatchRunner

    async with BatchRunner() as runner:
        for url in urls:
            runner.submit(fetch, url, timeout=30)
        records = await runner.run()

    for record in records:
        print(record.id, record.status.value)
"""

from batchflow.core.capabilities import CapabilityBundle, TaskScope
from batchflow.core.config import BatchFlowConfig
from batchflow.core.pool import ExecutionPool, open_pool, shutdown_pool
from batchflow.core.runner import BatchOutcome, BatchRunner, WorkItem, run_batch, run_batch_sync
from batchflow.core.scheduler import Scheduler
from batchflow.core.types import OutputMode, PoolCapacity, TaskStatus
from batchflow.results import ResultRecord, collect, export_results

__version__ = "0.1.0"
__all__ = [
    # Main classes
    "BatchRunner",
    "ExecutionPool",
    "Scheduler",
    "CapabilityBundle",
    "TaskScope",
    # Functions
    "run_batch",
    "run_batch_sync",
    "open_pool",
    "shutdown_pool",
    "collect",
    "export_results",
    # Config
    "BatchFlowConfig",
    # Types
    "OutputMode",
    "PoolCapacity",
    "TaskStatus",
    "WorkItem",
    "BatchOutcome",
    "ResultRecord",
    # Version
    "__version__",
]
