"""NDJSON encoders for log entries and metric points."""

import json
from collections.abc import Iterable

from insightops.core.models import LogEntry, MetricPoint


def _join(lines: list[str]) -> str:
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def encode_logs(entries: Iterable[LogEntry]) -> str:
    """Encode log entries to newline-delimited JSON.

    Args:
        entries: An iterable of LogEntry objects.

    Returns:
        NDJSON string with one JSON object per line.
        Empty string if no entries.
    """
    lines = []
    for entry in entries:
        obj = {
            "timestamp": entry.timestamp,
            "level": entry.level,
            "message": entry.message,
            "attributes": entry.attributes,
        }
        lines.append(json.dumps(obj, default=str))
    return _join(lines)


def encode_points(points: Iterable[MetricPoint]) -> str:
    """Encode retained metric points to newline-delimited JSON."""
    lines = [
        json.dumps(
            {
                "name": point.name,
                "timestamp": point.timestamp,
                "value": point.value,
                "tags": point.tags,
            }
        )
        for point in points
    ]
    return _join(lines)
