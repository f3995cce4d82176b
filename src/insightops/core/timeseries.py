"""Bounded-retention time-series store.

Keeps a chronologically ordered list of points per metric name and drops
points older than the retention window. Eviction is lazy: it happens on
append and on query, never on a background timer.
"""

import bisect
import threading
import time
from operator import attrgetter

from insightops.core.models import MetricPoint, SeriesSummary
from insightops.core.ports import Clock

_timestamp = attrgetter("timestamp")


class _Series:
    """Points of one metric name, guarded by their own lock."""

    __slots__ = ("lock", "name", "points")

    def __init__(self, name: str) -> None:
        self.name = name
        self.lock = threading.Lock()
        self.points: list[MetricPoint] = []

    def evict_before(self, cutoff: float) -> None:
        """Drop points with timestamp < cutoff. Caller holds the lock."""
        index = bisect.bisect_left(self.points, cutoff, key=_timestamp)
        if index:
            del self.points[:index]


class TimeSeriesStore:
    """In-memory store of metric history with wall-clock retention.

    A point is retained while ``now - point.timestamp <= retention``.
    Storage is independent per name: a busy series never evicts another
    series' points.

    Args:
        retention_seconds: Maximum age of a retained point.
        clock: Returns the current unix time (default: time.time).
    """

    def __init__(self, retention_seconds: float, clock: Clock = time.time) -> None:
        if retention_seconds <= 0:
            raise ValueError("retention_seconds must be positive")
        self._retention = float(retention_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._series: dict[str, _Series] = {}

    @property
    def retention_seconds(self) -> float:
        return self._retention

    def _get_series(self, name: str) -> _Series:
        series = self._series.get(name)
        if series is not None:
            return series
        with self._lock:
            series = self._series.get(name)
            if series is None:
                series = _Series(name)
                self._series[name] = series
            return series

    def append(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
        timestamp: float | None = None,
    ) -> MetricPoint:
        """Append a point to the named series.

        When timestamp is omitted it is read from the clock while the series
        lock is held, so concurrent appends stay in timestamp order. An
        explicit timestamp older than the last point is inserted at its
        sorted position.

        Returns:
            The stored point.
        """
        series = self._get_series(name)
        with series.lock:
            now = self._clock()
            point = MetricPoint(
                name=name,
                timestamp=now if timestamp is None else float(timestamp),
                value=float(value),
                tags=dict(tags) if tags else {},
            )
            if not series.points or series.points[-1].timestamp <= point.timestamp:
                series.points.append(point)
            else:
                bisect.insort_right(series.points, point, key=_timestamp)
            series.evict_before(now - self._retention)
        return point

    def query(self, name: str, since: float | None = None) -> list[MetricPoint]:
        """Return retained points of a series, oldest first.

        Args:
            name: Metric name. Unknown names yield an empty list.
            since: Optional unix timestamp; only points with timestamp > since.
        """
        series = self._series.get(name)
        if series is None:
            return []
        with series.lock:
            series.evict_before(self._clock() - self._retention)
            if since is None:
                return list(series.points)
            start = bisect.bisect_right(series.points, since, key=_timestamp)
            return series.points[start:]

    def names(self) -> list[str]:
        """Names of every series written so far."""
        with self._lock:
            return sorted(self._series)

    def summaries(self) -> dict[str, SeriesSummary]:
        """Summarize every series over its currently retained window."""
        with self._lock:
            all_series = list(self._series.values())
        result: dict[str, SeriesSummary] = {}
        for series in sorted(all_series, key=attrgetter("name")):
            with series.lock:
                series.evict_before(self._clock() - self._retention)
                values = [p.value for p in series.points]
            if values:
                result[series.name] = SeriesSummary(
                    name=series.name,
                    last=values[-1],
                    average=sum(values) / len(values),
                    min=min(values),
                    max=max(values),
                    count=len(values),
                )
            else:
                result[series.name] = SeriesSummary(
                    name=series.name, last=0.0, average=0.0, min=0.0, max=0.0, count=0
                )
        return result
