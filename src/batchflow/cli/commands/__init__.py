"""
CLI command implementations for BatchFlow.

Commands:
    run      - Run a job file
    validate - Check a job file without running it
"""

from __future__ import annotations

from batchflow.cli.commands import run, validate

__all__ = [
    "run",
    "validate",
]
