"""insightops - metrics, health and live updates for the InsightOps services."""

from insightops.adapters.frameworks.asgi import RequestMetricsMiddleware
from insightops.adapters.health import HealthAggregator
from insightops.adapters.logging import BufferingLogHandler, configure_logging
from insightops.adapters.remote import RemoteMetricsReader
from insightops.adapters.sampling import (
    LinuxProcSampleSource,
    ProcessSampleSource,
    PsutilSampleSource,
    select_sample_source,
)
from insightops.adapters.storage.ring_buffer import LogBuffer
from insightops.config import ObservabilitySettings, load_settings
from insightops.core.broadcast import Broadcaster, Subscriber
from insightops.core.encoding.prometheus import encode_registry, parse_exposition
from insightops.core.errors import ConfigurationError, InsightOpsError
from insightops.core.metrics import MetricRegistry
from insightops.core.models import (
    BroadcastMessage,
    DependencyConfig,
    HealthStatus,
    HealthVerdict,
    MetricPoint,
    SystemSnapshot,
)
from insightops.core.timeseries import TimeSeriesStore
from insightops.runtime.embedded import EmbeddedRuntime
from insightops.runtime.sampler import Sampler

__all__ = [
    "BroadcastMessage",
    "Broadcaster",
    "BufferingLogHandler",
    "ConfigurationError",
    "DependencyConfig",
    "EmbeddedRuntime",
    "HealthAggregator",
    "HealthStatus",
    "HealthVerdict",
    "InsightOpsError",
    "LinuxProcSampleSource",
    "LogBuffer",
    "MetricPoint",
    "MetricRegistry",
    "ObservabilitySettings",
    "ProcessSampleSource",
    "PsutilSampleSource",
    "RemoteMetricsReader",
    "RequestMetricsMiddleware",
    "Sampler",
    "Subscriber",
    "SystemSnapshot",
    "TimeSeriesStore",
    "configure_logging",
    "encode_registry",
    "load_settings",
    "parse_exposition",
    "select_sample_source",
]
