"""
BatchFlow Examples.

This package contains working examples demonstrating BatchFlow features.

Examples:
    01_basic_batch.py            - run_batch() and BatchRunner basics
    02_timeouts_and_progress.py  - Timeouts, visual progress, stop signal
    03_dashboard_and_export.py   - Capabilities, dashboard file, result export
    jobs.yaml                    - Job file for the CLI

Running Examples:
    python examples/01_basic_batch.py
    batchflow run examples/jobs.yaml --mode visual
"""

__all__ = [
    "EXAMPLE_MODULES",
]

EXAMPLE_MODULES = [
    "01_basic_batch",
    "02_timeouts_and_progress",
    "03_dashboard_and_export",
]
