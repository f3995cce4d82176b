"""In-process metric registry: counters, gauges and histograms.

Metrics are identified by name plus tags, the same way the text exposition
format identifies a series. Every mutation is thread-safe; unknown metrics
are created on first use.
"""

import math
import threading
from collections.abc import Callable
from typing import TypeVar

from insightops.core.models import (
    CounterValue,
    GaugeValue,
    HistogramSummary,
    RegistrySnapshot,
)

DEFAULT_HISTOGRAM_BUCKETS = [0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10]

TagsKey = tuple[tuple[str, str], ...]
MetricKey = tuple[str, TagsKey]


def _tags_key(tags: dict[str, str] | None) -> TagsKey:
    """Order-independent hashable form of a tags mapping."""
    if not tags:
        return ()
    return tuple(sorted((str(k), str(v)) for k, v in tags.items()))


class _Counter:
    __slots__ = ("_lock", "_value")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    def add(self, amount: int) -> None:
        with self._lock:
            self._value += amount

    def get(self) -> int:
        with self._lock:
            return self._value


class _Gauge:
    __slots__ = ("_lock", "_value")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0.0

    def set(self, value: float) -> None:
        with self._lock:
            self._value = value

    def get(self) -> float:
        with self._lock:
            return self._value


class _Histogram:
    """Fixed-bucket histogram with running count/sum/min/max."""

    __slots__ = ("_bounds", "_bucket_counts", "_count", "_lock", "_max", "_min", "_sum")

    def __init__(self, bounds: list[float]) -> None:
        self._lock = threading.Lock()
        self._bounds = bounds
        # Non-cumulative per-bucket counts; the last slot is +Inf
        self._bucket_counts = [0] * (len(bounds) + 1)
        self._count = 0
        self._sum = 0.0
        self._min = math.inf
        self._max = -math.inf

    def observe(self, value: float) -> None:
        index = len(self._bounds)
        for i, boundary in enumerate(self._bounds):
            if value <= boundary:
                index = i
                break
        with self._lock:
            self._bucket_counts[index] += 1
            self._count += 1
            self._sum += value
            if value < self._min:
                self._min = value
            if value > self._max:
                self._max = value

    def summary(self, name: str, tags: dict[str, str]) -> HistogramSummary:
        with self._lock:
            count = self._count
            total = self._sum
            low = self._min if count else 0.0
            high = self._max if count else 0.0
            per_bucket = list(self._bucket_counts)
        cumulative: list[tuple[float, int]] = []
        running = 0
        for boundary, bucket_count in zip(
            [*self._bounds, math.inf], per_bucket, strict=True
        ):
            running += bucket_count
            cumulative.append((float(boundary), running))
        return HistogramSummary(
            name=name,
            tags=tags,
            count=count,
            sum=total,
            min=low,
            max=high,
            buckets=tuple(cumulative),
        )


_M = TypeVar("_M")


class MetricRegistry:
    """Thread-safe store of named counters, gauges and histograms.

    A single instance is created at application startup and passed to every
    component that records or reads metrics.

    Example:
        ```python
        registry = MetricRegistry()
        registry.increment_counter("http_requests_total", tags={"endpoint": "/orders"})
        registry.record_histogram("http_request_duration_seconds", 0.042)
        snapshot = registry.snapshot()
        ```
    """

    def __init__(self, histogram_buckets: list[float] | None = None) -> None:
        """Initialize an empty registry.

        Args:
            histogram_buckets: Bucket upper bounds used for every histogram
                (default: Prometheus standard buckets).
        """
        bounds = histogram_buckets if histogram_buckets is not None else DEFAULT_HISTOGRAM_BUCKETS
        self._buckets = sorted(float(b) for b in bounds)
        self._lock = threading.Lock()
        self._counters: dict[MetricKey, _Counter] = {}
        self._gauges: dict[MetricKey, _Gauge] = {}
        self._histograms: dict[MetricKey, _Histogram] = {}

    def _get_or_create(
        self,
        index: dict[MetricKey, _M],
        key: MetricKey,
        factory: Callable[[], _M],
    ) -> _M:
        metric = index.get(key)
        if metric is not None:
            return metric
        with self._lock:
            metric = index.get(key)
            if metric is None:
                metric = factory()
                index[key] = metric
            return metric

    def increment_counter(
        self,
        name: str,
        amount: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter, creating it on first use.

        Args:
            name: Metric name (e.g., "http_requests_total").
            amount: Non-negative increment (default: 1).
            tags: Optional dimension labels.

        Raises:
            ValueError: If amount is negative.
        """
        if amount < 0:
            raise ValueError(f"Counter {name!r} cannot be decremented (amount={amount})")
        counter = self._get_or_create(self._counters, (name, _tags_key(tags)), _Counter)
        counter.add(int(amount))

    def set_gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Set a gauge to its current value, creating it on first use."""
        gauge = self._get_or_create(self._gauges, (name, _tags_key(tags)), _Gauge)
        gauge.set(float(value))

    def record_histogram(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record one observation into a histogram, creating it on first use.

        Args:
            name: Metric name (e.g., "http_request_duration_seconds").
            value: Observed value.
            tags: Optional dimension labels.
        """
        histogram = self._get_or_create(
            self._histograms,
            (name, _tags_key(tags)),
            lambda: _Histogram(self._buckets),
        )
        histogram.observe(float(value))

    def counter_value(self, name: str, tags: dict[str, str] | None = None) -> int:
        """Current value of a counter, 0 if it was never incremented."""
        counter = self._counters.get((name, _tags_key(tags)))
        return counter.get() if counter is not None else 0

    def snapshot(self) -> RegistrySnapshot:
        """Return the current value of every metric.

        Individual values are never torn; values of different metrics may
        be read at slightly different moments.
        """
        with self._lock:
            counters = list(self._counters.items())
            gauges = list(self._gauges.items())
            histograms = list(self._histograms.items())
        return RegistrySnapshot(
            counters=tuple(
                CounterValue(name=name, tags=dict(tags), value=counter.get())
                for (name, tags), counter in sorted(counters, key=lambda kv: kv[0])
            ),
            gauges=tuple(
                GaugeValue(name=name, tags=dict(tags), value=gauge.get())
                for (name, tags), gauge in sorted(gauges, key=lambda kv: kv[0])
            ),
            histograms=tuple(
                histogram.summary(name, dict(tags))
                for (name, tags), histogram in sorted(histograms, key=lambda kv: kv[0])
            ),
        )
