"""Shared test fixtures for all test modules."""

from dataclasses import dataclass, field

import httpx
import pytest

from insightops.config import ObservabilitySettings
from insightops.core.broadcast import Broadcaster
from insightops.core.metrics import MetricRegistry
from insightops.core.models import SystemSnapshot
from insightops.core.timeseries import TimeSeriesStore
from insightops.runtime.embedded import EmbeddedRuntime


class FakeClock:
    """Manually advanced unix clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class StaticSampleSource:
    """Sample source returning fixed values; can be told to fail."""

    clock: FakeClock
    cpu: float = 12.5
    memory: float = 40.0
    storage: float = 70.25
    fail: bool = False
    calls: int = field(default=0)

    def sample(self) -> SystemSnapshot:
        self.calls += 1
        if self.fail:
            raise RuntimeError("sensor unavailable")
        return SystemSnapshot(
            cpu_usage_percent=self.cpu,
            memory_usage_percent=self.memory,
            storage_usage_percent=self.storage,
            timestamp=self.clock(),
        )


@pytest.fixture
def clock() -> FakeClock:
    """Provide a fake clock starting at a fixed timestamp."""
    return FakeClock()


@pytest.fixture
def registry() -> MetricRegistry:
    """Provide an empty metric registry."""
    return MetricRegistry()


@pytest.fixture
def store(clock: FakeClock) -> TimeSeriesStore:
    """Provide a time-series store with one hour retention on the fake clock."""
    return TimeSeriesStore(retention_seconds=3600, clock=clock)


@pytest.fixture
def broadcaster() -> Broadcaster:
    """Provide a broadcaster with small subscriber queues."""
    return Broadcaster(max_queue_size=8)


@pytest.fixture
def sample_source(clock: FakeClock) -> StaticSampleSource:
    """Provide a deterministic sample source."""
    return StaticSampleSource(clock)


@pytest.fixture
def settings() -> ObservabilitySettings:
    """Settings with no dependencies and a short sampling interval."""
    return ObservabilitySettings(
        service_name="order-service",
        metrics_interval_seconds=0.05,
        retention_hours=1,
        health_timeout_seconds=0.5,
        dependencies=[],
    )


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            async with asgi_test_client(app) as client:
                response = await client.get("/endpoint")
    """

    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client


@pytest.fixture
def runtime_factory(clock: FakeClock, sample_source: StaticSampleSource):
    """Factory building an EmbeddedRuntime with deterministic collaborators.

    Accepts settings and an optional httpx transport used for outbound
    health and metrics requests.
    """
    created: list[EmbeddedRuntime] = []

    def _build(
        settings: ObservabilitySettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> EmbeddedRuntime:
        client = httpx.AsyncClient(transport=transport) if transport is not None else None
        runtime = EmbeddedRuntime(
            settings, source=sample_source, http_client=client, clock=clock
        )
        created.append(runtime)
        return runtime

    return _build
