"""
Activity log for one batch run.

A bounded, append-only sequence of timestamped events ("task X timed out").
Each run constructs its own log and hands it to the progress reporter.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class ActivityEntry:
    """Single event in the activity log."""

    message: str
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), "message": self.message}

    def __str__(self) -> str:
        return f"[{self.timestamp:%H:%M:%S}] {self.message}"


class ActivityLog:
    """
    Bounded activity log keeping only the most recent ``max_entries`` events.

    Example:
        log = ActivityLog(max_entries=50)
        log.append("task-1 completed")
        for entry in log.tail(5):
            print(entry)
    """

    def __init__(self, max_entries: int = 50) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self._entries: deque[ActivityEntry] = deque(maxlen=max_entries)
        self._total = 0

    @property
    def max_entries(self) -> int:
        return self._entries.maxlen or 0

    @property
    def total_appended(self) -> int:
        """Number of events ever appended, including evicted ones."""
        return self._total

    def append(self, message: str, timestamp: datetime | None = None) -> ActivityEntry:
        entry = ActivityEntry(message=message, timestamp=timestamp or datetime.now())
        self._entries.append(entry)
        self._total += 1
        return entry

    def tail(self, count: int) -> list[ActivityEntry]:
        """Return the ``count`` most recent entries, oldest first."""
        if count <= 0:
            return []
        return list(self._entries)[-count:]

    def entries(self) -> list[ActivityEntry]:
        return list(self._entries)

    def to_list(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ActivityEntry]:
        return iter(list(self._entries))

    def __repr__(self) -> str:
        return f"ActivityLog(entries={len(self)}, max_entries={self.max_entries})"
