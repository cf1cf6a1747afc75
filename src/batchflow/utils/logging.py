"""
Logging for BatchFlow.

Every module logs through structlog. Records are written to stderr because
the progress reporters (summary lines, the visual table) own stdout. Batch
and task identifiers are carried in context variables, so a line logged
from inside a work item or the scheduler names the batch it belongs to.

Output is either a colored console rendering for interactive runs or one
JSON object per line for log shippers (``LOG_JSON=true``).
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from typing import Any

import structlog
from structlog.types import Processor

# Third-party loggers that chatter on every dashboard POST.
NOISY_LOGGERS = ("httpx", "httpcore")


def _stderr_logger_factory(*args: Any) -> structlog.PrintLogger:
    # sys.stderr is looked up per logger so redirected streams are honoured
    return structlog.PrintLogger(file=sys.stderr)


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: str | None = None,
) -> None:
    """
    Configure structlog and the stdlib root logger for a batch run.

    Safe to call more than once; the latest level and renderer win. The CLI
    calls it with the ``logging`` section of the effective BatchFlowConfig.

    Args:
        level: Minimum level (DEBUG, INFO, WARNING, ERROR)
        json_format: Emit one JSON object per line instead of console text
        log_file: Also append stdlib log records to this file

    Example:
        setup_logging(level="DEBUG")             # per-poll task transitions
        setup_logging(level="WARNING", json_format=True)  # timeouts and failures only
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    logging.getLogger().setLevel(numeric_level)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        logging.getLogger().addHandler(file_handler)

    # HTTP dashboard sinks would otherwise log one line per export
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if json_format:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=_stderr_logger_factory,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Module logger.

    Example:
        logger = get_logger(__name__)
        logger.info("Task submitted", task_id="task-1", timeout=30)
    """
    return structlog.get_logger(name)


class LogContext:
    """
    Bind batch or task identifiers to every log line inside the block.

    Nested blocks restore the outer values on exit, so a task context inside
    a batch context leaves ``batch_id`` bound afterwards.

    Example:
        with LogContext(batch_id="3f9c01aa"):
            logger.info("Batch polling started")   # includes batch_id
            with LogContext(task_id="task-1"):
                logger.debug("Work item started")  # batch_id and task_id
    """

    def __init__(self, **context: Any):
        self.context = context
        self._tokens: Mapping[str, Any] | None = None

    def __enter__(self) -> LogContext:
        self._tokens = structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, *args: Any) -> None:
        if self._tokens is not None:
            structlog.contextvars.reset_contextvars(**self._tokens)
            self._tokens = None


def log_error(
    logger: structlog.BoundLogger,
    operation: str,
    error: BaseException,
    **extra: Any,
) -> None:
    """Log a failure that the batch survives (teardown, reporter, sink)."""
    logger.warning(
        f"{operation} failed",
        operation=operation,
        error_type=type(error).__name__,
        error_message=str(error),
        **extra,
    )


# Default configuration until the CLI or the caller sets one
setup_logging()
