"""
Result export for BatchFlow.

Hands a result set to an exporter selected by format name or by the target
path suffix. Structured formats keep nested payloads; tabular formats
flatten each record into one row.
"""

from __future__ import annotations

import csv
import json
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, TextIO

from batchflow.results.aggregator import ResultRecord
from batchflow.utils.errors import ExportError
from batchflow.utils.logging import get_logger

logger = get_logger(__name__)

Exporter = Callable[[Sequence[ResultRecord], TextIO], None]

DEFAULT_FORMAT = "json"

TABULAR_COLUMNS = [
    "id",
    "description",
    "status",
    "payload",
    "error_type",
    "error_message",
    "submitted_at",
    "finished_at",
    "elapsed_seconds",
    "timeout_seconds",
    "has_error",
    "has_warning",
    "warnings",
]


# =============================================================================
# Exporters
# =============================================================================


def export_json(records: Sequence[ResultRecord], stream: TextIO) -> None:
    """Structured document: one JSON array."""
    json.dump([record.to_dict() for record in records], stream, indent=2, default=str)
    stream.write("\n")


def export_jsonl(records: Sequence[ResultRecord], stream: TextIO) -> None:
    """Structured record stream: one JSON object per line."""
    for record in records:
        stream.write(json.dumps(record.to_dict(), default=str))
        stream.write("\n")


def flatten_record(record: ResultRecord) -> dict[str, Any]:
    """Flatten one record into a tabular row."""
    payload = record.payload
    if payload is not None and not isinstance(payload, (str, int, float, bool)):
        payload = json.dumps(payload, default=str)

    row: dict[str, Any] = {
        "id": record.id,
        "description": record.description,
        "status": record.status.value,
        "payload": payload,
        "error_type": record.error.type if record.error else None,
        "error_message": record.error.message if record.error else None,
    }
    if record.metadata is not None:
        meta = record.metadata.to_dict()
        row.update(
            submitted_at=meta["submitted_at"],
            finished_at=meta["finished_at"],
            elapsed_seconds=meta["elapsed_seconds"],
            timeout_seconds=meta["timeout_seconds"],
            has_error=meta["has_error"],
            has_warning=meta["has_warning"],
            warnings="; ".join(meta["warnings"]),
        )
    return row


def _export_delimited(records: Sequence[ResultRecord], stream: TextIO, delimiter: str) -> None:
    rows = [flatten_record(record) for record in records]
    with_metadata = any(record.metadata is not None for record in records)
    columns = TABULAR_COLUMNS if with_metadata else TABULAR_COLUMNS[:6]

    writer = csv.DictWriter(
        stream,
        fieldnames=columns,
        delimiter=delimiter,
        extrasaction="ignore",
        lineterminator="\n",
    )
    writer.writeheader()
    for row in rows:
        writer.writerow({key: "" if row.get(key) is None else row.get(key) for key in columns})


def export_csv(records: Sequence[ResultRecord], stream: TextIO) -> None:
    """Flat tabular, comma separated."""
    _export_delimited(records, stream, ",")


def export_tsv(records: Sequence[ResultRecord], stream: TextIO) -> None:
    """Flat tabular, tab separated."""
    _export_delimited(records, stream, "\t")


_EXPORTERS: dict[str, Exporter] = {
    "json": export_json,
    "jsonl": export_jsonl,
    "csv": export_csv,
    "tsv": export_tsv,
}

_SUFFIX_ALIASES = {"ndjson": "jsonl", "txt": "tsv"}


# =============================================================================
# Registry
# =============================================================================


def register_exporter(name: str, exporter: Exporter) -> None:
    """Register (or replace) an exporter under a format name."""
    _EXPORTERS[name.lower()] = exporter


def available_formats() -> list[str]:
    return sorted(_EXPORTERS)


def resolve_format(hint: str | Path | None) -> str:
    """
    Pick an export format from a hint.

    The hint can be a format name ("csv") or a path whose suffix names one
    ("results.csv"). Unrecognised or missing hints fall back to JSON.
    """
    if hint is None:
        return DEFAULT_FORMAT

    text = str(hint).strip().lower()
    if text in _EXPORTERS:
        return text

    suffix = Path(text).suffix.lstrip(".")
    suffix = _SUFFIX_ALIASES.get(suffix, suffix)
    if suffix in _EXPORTERS:
        return suffix

    logger.debug("Unrecognised export hint, using default", hint=str(hint), default=DEFAULT_FORMAT)
    return DEFAULT_FORMAT


def export_results(
    records: Sequence[ResultRecord],
    target: str | Path | TextIO,
    fmt: str | None = None,
) -> str:
    """
    Export a result set.

    Args:
        records: Records to export
        target: File path or an open text stream
        fmt: Format name; inferred from the target suffix when omitted

    Returns:
        The format that was used

    Raises:
        ExportError: If the target cannot be written
    """
    is_path = isinstance(target, (str, Path))
    name = str(target) if is_path else getattr(target, "name", "<stream>")
    chosen = resolve_format(fmt if fmt is not None else (target if is_path else None))
    exporter = _EXPORTERS[chosen]

    try:
        if is_path:
            path = Path(target)  # type: ignore[arg-type]
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8", newline="") as f:
                exporter(records, f)
        else:
            exporter(records, target)  # type: ignore[arg-type]
    except (OSError, TypeError, ValueError) as e:
        raise ExportError(name, str(e), fmt=chosen, cause=e) from e

    logger.info("Results exported", target=name, format=chosen, records=len(records))
    return chosen


__all__ = [
    "DEFAULT_FORMAT",
    "Exporter",
    "available_formats",
    "export_results",
    "flatten_record",
    "register_exporter",
    "resolve_format",
]
