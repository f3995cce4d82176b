"""Core domain models for observability data."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class LogEntry:
    """A structured log entry.

    Attributes:
        timestamp: Unix timestamp in seconds.
        level: Log level (e.g., INFO, ERROR, DEBUG).
        message: The log message.
        attributes: Additional structured fields.
    """

    timestamp: float
    level: str
    message: str
    attributes: dict[str, str | int | float | bool] = field(default_factory=dict)


@dataclass(frozen=True)
class MetricPoint:
    """A single retained measurement of a named metric.

    Attributes:
        name: Metric name (e.g., system_cpu_usage_percent).
        timestamp: Unix timestamp in seconds.
        value: The metric value.
        tags: Key-value pairs for metric dimensions.
    """

    name: str
    timestamp: float
    value: float
    tags: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SeriesSummary:
    """Aggregate over the retained window of one series."""

    name: str
    last: float
    average: float
    min: float
    max: float
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "last": self.last,
            "average": self.average,
            "min": self.min,
            "max": self.max,
            "count": self.count,
        }


@dataclass(frozen=True)
class CounterValue:
    """Point-in-time value of a counter."""

    name: str
    tags: dict[str, str]
    value: int


@dataclass(frozen=True)
class GaugeValue:
    """Point-in-time value of a gauge."""

    name: str
    tags: dict[str, str]
    value: float


@dataclass(frozen=True)
class HistogramSummary:
    """Summary of a histogram's recorded observations.

    Attributes:
        name: Histogram name.
        tags: Dimension labels.
        count: Number of observations.
        sum: Sum of observed values.
        min: Smallest observed value (0.0 when empty).
        max: Largest observed value (0.0 when empty).
        buckets: (upper bound, cumulative count) pairs, ending with +Inf.
    """

    name: str
    tags: dict[str, str]
    count: int
    sum: float
    min: float
    max: float
    buckets: tuple[tuple[float, int], ...] = ()

    @property
    def mean(self) -> float:
        return self.sum / self.count if self.count else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "sum": self.sum,
            "min": self.min,
            "max": self.max,
            "mean": self.mean,
        }


@dataclass(frozen=True)
class RegistrySnapshot:
    """Consistent-enough view of every metric in a registry."""

    counters: tuple[CounterValue, ...] = ()
    gauges: tuple[GaugeValue, ...] = ()
    histograms: tuple[HistogramSummary, ...] = ()


@dataclass(frozen=True)
class SystemSnapshot:
    """Resource usage captured by a sample source.

    All percentages are in the range [0, 100].
    """

    cpu_usage_percent: float
    memory_usage_percent: float
    storage_usage_percent: float
    timestamp: float

    def to_dict(self) -> dict[str, float]:
        return {
            "cpuUsagePercent": self.cpu_usage_percent,
            "memoryUsagePercent": self.memory_usage_percent,
            "storageUsagePercent": self.storage_usage_percent,
            "timestamp": self.timestamp,
        }


# Event names pushed over the live metrics channel
METRICS_UPDATE = "MetricsUpdate"
METRIC_UPDATED = "MetricUpdated"


@dataclass(frozen=True)
class BroadcastMessage:
    """A named event pushed to live subscribers."""

    event: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"event": self.event, "payload": self.payload}


class HealthStatus(str, Enum):
    """Health of a single dependency or of the whole service."""

    HEALTHY = "Healthy"
    DEGRADED = "Degraded"
    UNHEALTHY = "Unhealthy"


@dataclass(frozen=True)
class DependencyConfig:
    """A dependency whose health endpoint is checked.

    Attributes:
        name: Display name (e.g., "order-service").
        endpoint: Absolute URL of the dependency's health endpoint.
        critical: Whether a failure makes the whole service Unhealthy
            (True) or only Degraded (False).
    """

    name: str
    endpoint: str
    critical: bool = True


@dataclass(frozen=True)
class DependencyResult:
    """Outcome of checking one dependency."""

    name: str
    status: HealthStatus
    duration_ms: float
    status_code: int | None = None
    error: str | None = None
    critical: bool = True

    @property
    def description(self) -> str:
        if self.error is not None:
            return self.error
        if self.status_code is not None:
            return f"HTTP {self.status_code}"
        return ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "description": self.description,
            "durationMs": round(self.duration_ms, 2),
        }


@dataclass(frozen=True)
class HealthVerdict:
    """Composite health derived from a set of dependency checks."""

    status: HealthStatus
    results: tuple[DependencyResult, ...] = ()
    total_duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "checks": [result.to_dict() for result in self.results],
            "totalDurationMs": round(self.total_duration_ms, 2),
        }
