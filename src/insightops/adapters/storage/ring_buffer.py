"""Bounded in-memory storage for captured log entries."""

import threading
from collections import deque

from insightops.core.models import LogEntry


class LogBuffer:
    """LogStoragePort keeping only the newest max_size entries.

    Writing to a full buffer drops the oldest entry. Safe to write from any
    thread, including logging handlers running outside the event loop.
    """

    def __init__(self, max_size: int) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._lock = threading.Lock()
        self._buffer: deque[LogEntry] = deque(maxlen=max_size)

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)

    def write(self, entry: LogEntry) -> None:
        with self._lock:
            self._buffer.append(entry)

    def read(self, since: float = 0, level: str | None = None) -> list[LogEntry]:
        """Entries newer than since, optionally of one level, oldest first."""
        with self._lock:
            entries = list(self._buffer)
        filtered = [
            e
            for e in entries
            if e.timestamp > since and (level is None or e.level == level)
        ]
        return sorted(filtered, key=lambda e: e.timestamp)

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()
