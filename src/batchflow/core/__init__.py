"""
Core orchestration engine for BatchFlow.

Provides:
- Capability bundle and isolated task scopes
- Execution slot pool
- Task model and scheduler/poller
- Activity log
- Batch runner facade
- Configuration
"""

from batchflow.core.activity import ActivityEntry, ActivityLog
from batchflow.core.capabilities import (
    Capabilities,
    CapabilityBundle,
    CapabilityKind,
    TaskScope,
    resolve_import_path,
)
from batchflow.core.config import (
    BatchFlowConfig,
    LoggingConfig,
    PoolConfig,
    ProgressConfig,
    ResultsConfig,
    SchedulerConfig,
    get_config,
    set_config,
)
from batchflow.core.pool import ExecutionPool, PoolStats, open_pool, shutdown_pool
from batchflow.core.runner import BatchOutcome, BatchRunner, WorkItem, run_batch, run_batch_sync
from batchflow.core.scheduler import Scheduler
from batchflow.core.task import Task, TaskIdGenerator
from batchflow.core.types import (
    ErrorPayload,
    OutputMode,
    PoolCapacity,
    PoolState,
    ProgressUpdate,
    TaskStatus,
)

__all__ = [
    # Types
    "PoolState",
    "TaskStatus",
    "OutputMode",
    "PoolCapacity",
    "ErrorPayload",
    "ProgressUpdate",
    # Capabilities
    "CapabilityBundle",
    "CapabilityKind",
    "Capabilities",
    "TaskScope",
    "resolve_import_path",
    # Pool
    "ExecutionPool",
    "PoolStats",
    "open_pool",
    "shutdown_pool",
    # Tasks and scheduling
    "Task",
    "TaskIdGenerator",
    "Scheduler",
    "ActivityLog",
    "ActivityEntry",
    # Runner
    "BatchRunner",
    "BatchOutcome",
    "WorkItem",
    "run_batch",
    "run_batch_sync",
    # Config
    "BatchFlowConfig",
    "PoolConfig",
    "SchedulerConfig",
    "ProgressConfig",
    "ResultsConfig",
    "LoggingConfig",
    "get_config",
    "set_config",
]
