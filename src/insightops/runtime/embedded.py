"""Embedded runtime wiring every observability component together."""

import logging
import time

import httpx

from insightops.adapters.health import HealthAggregator
from insightops.adapters.logging import configure_logging
from insightops.adapters.remote import RemoteMetricsReader
from insightops.adapters.sampling import select_sample_source
from insightops.adapters.storage.ring_buffer import LogBuffer
from insightops.config import ObservabilitySettings
from insightops.core.broadcast import Broadcaster
from insightops.core.metrics import MetricRegistry
from insightops.core.models import DependencyConfig, HealthVerdict
from insightops.core.ports import Clock, SampleSourcePort
from insightops.core.timeseries import TimeSeriesStore
from insightops.runtime.sampler import Sampler

logger = logging.getLogger(__name__)


class EmbeddedRuntime:
    """Owns the registry, history, live channel, sampler and health checks.

    Every component is constructed once here and shared by reference; the
    runtime's lifetime is the application's lifetime.

    Args:
        settings: Validated observability settings.
        source: Sample source override (default: chosen by platform).
        http_client: HTTP client for outbound checks. When omitted the
            runtime creates one and closes it on stop().
        clock: Unix time source shared by the store and the sampler.
    """

    def __init__(
        self,
        settings: ObservabilitySettings,
        source: SampleSourcePort | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Clock = time.time,
    ) -> None:
        self.settings = settings
        self.log_buffer = LogBuffer(settings.log_buffer_size)
        configure_logging(settings.log_level, self.log_buffer)

        self.registry = MetricRegistry()
        self.store = TimeSeriesStore(settings.retention_seconds, clock=clock)
        self.broadcaster = Broadcaster(settings.subscriber_queue_size)
        self.dependencies: list[DependencyConfig] = settings.dependency_configs()

        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=settings.health_timeout_seconds
        )
        self.health = HealthAggregator(
            self.http_client, self.registry, timeout=settings.health_timeout_seconds
        )
        self.remote_metrics = RemoteMetricsReader(
            self.http_client, timeout=settings.health_timeout_seconds
        )
        self.sampler = Sampler(
            source or select_sample_source(settings.storage_path, clock=clock),
            self.registry,
            self.store,
            self.broadcaster,
            interval_seconds=settings.metrics_interval_seconds,
            service_name=settings.service_name,
            clock=clock,
        )

    def dependency(self, name: str) -> DependencyConfig | None:
        for dependency in self.dependencies:
            if dependency.name == name:
                return dependency
        return None

    async def check_health(self) -> HealthVerdict:
        return await self.health.check_all(self.dependencies)

    async def start(self) -> None:
        """Start background sampling."""
        self.sampler.start()
        logger.info(
            "Observability runtime started",
            extra={
                "service": self.settings.service_name,
                "dependencies": len(self.dependencies),
            },
        )

    async def stop(self) -> None:
        """Stop sampling and release owned resources."""
        await self.sampler.stop()
        if self._owns_client:
            await self.http_client.aclose()
        logger.info("Observability runtime stopped")
