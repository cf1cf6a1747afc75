"""
Result aggregation and export for BatchFlow.
"""

from batchflow.results.aggregator import (
    ResultMetadata,
    ResultRecord,
    ResultSummary,
    collect,
    summarize,
)
from batchflow.results.export import (
    available_formats,
    export_results,
    register_exporter,
    resolve_format,
)

__all__ = [
    # Records
    "ResultRecord",
    "ResultMetadata",
    "ResultSummary",
    "collect",
    "summarize",
    # Export
    "export_results",
    "register_exporter",
    "resolve_format",
    "available_formats",
]
