"""
Custom exceptions for BatchFlow.

Provides a hierarchy of exceptions for different error types,
enabling precise error handling throughout the orchestrator.
"""

from __future__ import annotations

from typing import Any


class BatchFlowError(Exception):
    """
    Base exception for all BatchFlow errors.

    All custom exceptions inherit from this class.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for result records and exports."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(BatchFlowError):
    """
    Invalid configuration.

    Raised when configuration is invalid or missing required values.
    """

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.config_key = config_key


class ValidationError(BatchFlowError):
    """
    Input validation error.

    Raised when input validation fails.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.field = field


# =============================================================================
# Pool Errors
# =============================================================================


class PoolError(BatchFlowError):
    """Execution pool related errors."""

    pass


class PoolInitError(PoolError):
    """
    A capability could not be materialized.

    Raised for a single bundle entry (logged and skipped) or for a bundle
    that cannot be used at all.
    """

    def __init__(
        self,
        message: str,
        capability: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, details, cause)
        self.capability = capability


class PoolClosedError(PoolError):
    """Pool is not open."""

    def __init__(
        self,
        state: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(f"Pool is not open (state: {state}).", details)
        self.state = state


# =============================================================================
# Submission / Scheduling Errors
# =============================================================================


class SubmissionError(BatchFlowError):
    """A work item could not be submitted; no task was created."""

    def __init__(
        self,
        message: str,
        task_id: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, details, cause)
        self.task_id = task_id


class SchedulerError(BatchFlowError):
    """Scheduler misuse, e.g. a second concurrent run on the same scheduler."""

    pass


# =============================================================================
# Task Errors
# =============================================================================


class TaskError(BatchFlowError):
    """Task related errors."""

    pass


class TaskTimeoutError(TaskError):
    """Task exceeded its deadline."""

    def __init__(
        self,
        task_id: str,
        timeout: float,
        elapsed: float,
        details: dict[str, Any] | None = None,
    ):
        message = f"Task {task_id} timed out after {elapsed:.2f}s (timeout {timeout:g}s)."
        super().__init__(message, details)
        self.task_id = task_id
        self.timeout = timeout
        self.elapsed = elapsed


# =============================================================================
# Output Errors
# =============================================================================


class ExportError(BatchFlowError):
    """Result export failed."""

    def __init__(
        self,
        target: str,
        message: str,
        fmt: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(f"Export to '{target}' failed: {message}", cause=cause)
        self.target = target
        self.fmt = fmt


class DashboardError(BatchFlowError):
    """Dashboard snapshot could not be handed to its sink."""

    def __init__(
        self,
        target: str,
        message: str,
        cause: Exception | None = None,
    ):
        super().__init__(f"Dashboard export to '{target}' failed: {message}", cause=cause)
        self.target = target


class JobFileError(ValidationError):
    """Job file is invalid or references something that cannot be loaded."""

    def __init__(
        self,
        path: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(f"Invalid job file '{path}': {reason}", details=details)
        self.path = path
        self.reason = reason
