"""
BatchFlow Command-Line Interface.

Commands:
    run      - Run every task of a job file
    validate - Check a job file without running it
    modes    - List the progress output modes
    config   - Show current configuration

Example:
    $ batchflow run jobs.yaml --mode visual --workers 3
    $ batchflow run jobs.yaml -o results.csv
    $ batchflow validate jobs.yaml
"""

from __future__ import annotations

from batchflow.cli.main import app, cli, main

__all__ = [
    "app",
    "cli",
    "main",
]
