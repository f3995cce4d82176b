"""Periodic metrics sampling and broadcasting.

The sampler is an explicit asyncio task: ``start()`` launches the loop and
``stop()`` signals it and waits for the in-flight cycle to finish.
"""

import asyncio
import logging
import time
from typing import Any

from insightops.core.broadcast import Broadcaster
from insightops.core.encoding.prometheus import series_key
from insightops.core.metrics import MetricRegistry
from insightops.core.models import (
    METRICS_UPDATE,
    BroadcastMessage,
    RegistrySnapshot,
    SystemSnapshot,
)
from insightops.core.ports import Clock, SampleSourcePort
from insightops.core.timeseries import TimeSeriesStore

logger = logging.getLogger(__name__)

SYSTEM_CPU = "system_cpu_usage_percent"
SYSTEM_MEMORY = "system_memory_usage_percent"
SYSTEM_STORAGE = "system_storage_usage_percent"
CYCLES_TOTAL = "sampler_cycles_total"
CYCLE_ERRORS_TOTAL = "sampler_cycle_errors_total"
CYCLE_DURATION = "sampler_cycle_duration_seconds"


class Sampler:
    """Samples resources and metrics on a fixed interval.

    Each cycle captures a SystemSnapshot, reads the registry, appends the
    values to the time-series store and publishes a MetricsUpdate event plus
    one MetricUpdated event per counter that changed since the previous
    cycle. A failing cycle is logged and the loop carries on.
    """

    def __init__(
        self,
        source: SampleSourcePort,
        registry: MetricRegistry,
        store: TimeSeriesStore,
        broadcaster: Broadcaster,
        interval_seconds: float = 10.0,
        service_name: str = "",
        clock: Clock = time.time,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._source = source
        self._registry = registry
        self._store = store
        self._broadcaster = broadcaster
        self._interval = interval_seconds
        self._service_name = service_name
        self._clock = clock
        self._previous_counters: dict[str, int] = {}
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_cycle(self) -> dict[str, Any]:
        """Run one sampling cycle and return the published payload."""
        started = time.perf_counter()
        system = await asyncio.to_thread(self._source.sample)
        metrics = self._registry.snapshot()
        self._record(system, metrics)
        payload = self._build_payload(system, metrics)
        self._publish_counter_changes(metrics)
        self._broadcaster.publish(BroadcastMessage(METRICS_UPDATE, payload))
        self._registry.increment_counter(CYCLES_TOTAL)
        self._registry.record_histogram(CYCLE_DURATION, time.perf_counter() - started)
        return payload

    def _record(self, system: SystemSnapshot, metrics: RegistrySnapshot) -> None:
        now = system.timestamp
        for name, value in (
            (SYSTEM_CPU, system.cpu_usage_percent),
            (SYSTEM_MEMORY, system.memory_usage_percent),
            (SYSTEM_STORAGE, system.storage_usage_percent),
        ):
            self._store.append(name, value, timestamp=now)
            self._registry.set_gauge(name, value)
        # One series per tag set, named like the exposition line
        for counter in metrics.counters:
            self._store.append(
                series_key(counter.name, counter.tags),
                counter.value,
                counter.tags,
                timestamp=now,
            )
        for histogram in metrics.histograms:
            self._store.append(
                series_key(f"{histogram.name}_mean", histogram.tags),
                histogram.mean,
                histogram.tags,
                timestamp=now,
            )

    def _build_payload(
        self, system: SystemSnapshot, metrics: RegistrySnapshot
    ) -> dict[str, Any]:
        payload: dict[str, Any] = system.to_dict()
        payload["service"] = self._service_name
        payload["counters"] = {
            series_key(c.name, c.tags): c.value for c in metrics.counters
        }
        payload["histograms"] = {
            series_key(h.name, h.tags): h.to_dict() for h in metrics.histograms
        }
        return payload

    def _publish_counter_changes(self, metrics: RegistrySnapshot) -> None:
        current: dict[str, int] = {}
        for counter in metrics.counters:
            key = series_key(counter.name, counter.tags)
            current[key] = counter.value
            if self._previous_counters.get(key) != counter.value:
                self._broadcaster.publish_metric(self._service_name, key, counter.value)
        self._previous_counters = current

    async def run(self, stop_event: asyncio.Event) -> None:
        """Loop until stop_event is set.

        The wait between cycles ends as soon as stop_event is set. A cycle
        that overruns the interval delays the next one; cycles never overlap.
        """
        logger.info(
            "Sampler started",
            extra={"interval_seconds": self._interval, "service": self._service_name},
        )
        while not stop_event.is_set():
            started = time.monotonic()
            try:
                await self.run_cycle()
            except Exception:
                self._registry.increment_counter(CYCLE_ERRORS_TOTAL)
                logger.exception("Error collecting or broadcasting metrics")
            remaining = max(0.0, self._interval - (time.monotonic() - started))
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=remaining)
            except TimeoutError:
                pass
        logger.info("Sampler stopped")

    def start(self) -> None:
        """Launch the sampling loop on the running event loop."""
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self.run(self._stop_event), name="insightops-sampler")

    async def stop(self) -> None:
        """Signal the loop to stop and wait for the current cycle to end."""
        if self._task is None or self._stop_event is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        self._stop_event = None
