"""Utility modules for BatchFlow."""

from batchflow.utils.errors import (
    BatchFlowError,
    ConfigurationError,
    ExportError,
    PoolError,
    PoolInitError,
    SchedulerError,
    SubmissionError,
    TaskTimeoutError,
    ValidationError,
)
from batchflow.utils.logging import LogContext, get_logger, setup_logging

__all__ = [
    # Errors
    "BatchFlowError",
    "ConfigurationError",
    "ValidationError",
    "PoolError",
    "PoolInitError",
    "SubmissionError",
    "SchedulerError",
    "TaskTimeoutError",
    "ExportError",
    # Logging
    "get_logger",
    "setup_logging",
    "LogContext",
]
