"""Tests for the MetricRegistry."""

import threading

import pytest

from insightops.core.metrics import DEFAULT_HISTOGRAM_BUCKETS, MetricRegistry


class TestCounters:
    """Tests for counter increments."""

    @pytest.mark.core
    def test_counter_is_created_on_first_increment(self, registry: MetricRegistry) -> None:
        """Incrementing an unknown counter creates it."""
        registry.increment_counter("orders_created_total")

        assert registry.counter_value("orders_created_total") == 1

    @pytest.mark.core
    def test_counter_accepts_custom_amount(self, registry: MetricRegistry) -> None:
        """Counter increments by the given amount."""
        registry.increment_counter("items_reserved_total", amount=5)
        registry.increment_counter("items_reserved_total", amount=3)

        assert registry.counter_value("items_reserved_total") == 8

    @pytest.mark.core
    def test_counter_rejects_negative_amount(self, registry: MetricRegistry) -> None:
        """Counters never decrease."""
        registry.increment_counter("orders_created_total", amount=2)

        with pytest.raises(ValueError, match="cannot be decremented"):
            registry.increment_counter("orders_created_total", amount=-1)
        assert registry.counter_value("orders_created_total") == 2

    @pytest.mark.core
    def test_counters_with_different_tags_are_distinct(
        self, registry: MetricRegistry
    ) -> None:
        """Same name with different tags yields separate counters."""
        registry.increment_counter("http_requests_total", tags={"endpoint": "/orders"})
        registry.increment_counter("http_requests_total", tags={"endpoint": "/inventory"})
        registry.increment_counter("http_requests_total", tags={"endpoint": "/orders"})

        assert registry.counter_value("http_requests_total", {"endpoint": "/orders"}) == 2
        assert registry.counter_value("http_requests_total", {"endpoint": "/inventory"}) == 1

    @pytest.mark.core
    def test_tag_order_does_not_matter(self, registry: MetricRegistry) -> None:
        """Tags are matched regardless of insertion order."""
        registry.increment_counter("hits_total", tags={"a": "1", "b": "2"})
        registry.increment_counter("hits_total", tags={"b": "2", "a": "1"})

        assert registry.counter_value("hits_total", {"a": "1", "b": "2"}) == 2
        assert len(registry.snapshot().counters) == 1

    @pytest.mark.core
    def test_unknown_counter_reads_as_zero(self, registry: MetricRegistry) -> None:
        """Reading a counter that was never incremented returns 0."""
        assert registry.counter_value("never_touched_total") == 0


class TestConcurrency:
    """Tests for concurrent mutation."""

    @pytest.mark.core
    def test_concurrent_increments_lose_no_updates(self, registry: MetricRegistry) -> None:
        """N threads x M increments produce exactly N*M."""
        threads_count, increments = 8, 2000
        barrier = threading.Barrier(threads_count)

        def worker() -> None:
            barrier.wait()
            for _ in range(increments):
                registry.increment_counter("http_requests_total", tags={"endpoint": "/orders"})

        threads = [threading.Thread(target=worker) for _ in range(threads_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert (
            registry.counter_value("http_requests_total", {"endpoint": "/orders"})
            == threads_count * increments
        )

    @pytest.mark.core
    def test_concurrent_first_use_creates_single_histogram(
        self, registry: MetricRegistry
    ) -> None:
        """Racing first observations end up in one histogram."""
        threads_count = 16
        barrier = threading.Barrier(threads_count)

        def worker() -> None:
            barrier.wait()
            registry.record_histogram("checkout_duration_seconds", 0.2)

        threads = [threading.Thread(target=worker) for _ in range(threads_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        histograms = registry.snapshot().histograms
        assert len(histograms) == 1
        assert histograms[0].count == threads_count


class TestHistograms:
    """Tests for histogram summaries."""

    @pytest.mark.core
    def test_summary_tracks_count_sum_min_max(self, registry: MetricRegistry) -> None:
        """Histogram summary reflects every observation."""
        for value in (0.3, 0.1, 0.2):
            registry.record_histogram("http_request_duration_seconds", value)

        summary = registry.snapshot().histograms[0]

        assert summary.count == 3
        assert summary.sum == pytest.approx(0.6)
        assert summary.min == 0.1
        assert summary.max == 0.3
        assert summary.mean == pytest.approx(0.2)

    @pytest.mark.core
    def test_buckets_are_cumulative_and_end_with_inf(
        self, registry: MetricRegistry
    ) -> None:
        """Bucket counts are cumulative with a final +Inf bucket."""
        registry.record_histogram("latency_seconds", 0.004)
        registry.record_histogram("latency_seconds", 0.3)
        registry.record_histogram("latency_seconds", 42.0)

        buckets = registry.snapshot().histograms[0].buckets

        assert len(buckets) == len(DEFAULT_HISTOGRAM_BUCKETS) + 1
        assert buckets[0] == (0.005, 1)
        assert dict(buckets)[0.5] == 2
        assert buckets[-1] == (float("inf"), 3)

    @pytest.mark.core
    def test_custom_buckets(self) -> None:
        """Registry accepts custom bucket bounds."""
        registry = MetricRegistry(histogram_buckets=[1, 10])
        registry.record_histogram("batch_size", 5)

        buckets = registry.snapshot().histograms[0].buckets

        assert buckets == ((1.0, 0), (10.0, 1), (float("inf"), 1))


class TestGauges:
    """Tests for gauges."""

    @pytest.mark.core
    def test_gauge_keeps_last_value(self, registry: MetricRegistry) -> None:
        """Setting a gauge overwrites its previous value."""
        registry.set_gauge("system_cpu_usage_percent", 10.0)
        registry.set_gauge("system_cpu_usage_percent", 55.5)

        gauges = registry.snapshot().gauges

        assert len(gauges) == 1
        assert gauges[0].value == 55.5


class TestSnapshot:
    """Tests for snapshot()."""

    @pytest.mark.core
    def test_empty_registry_snapshot(self, registry: MetricRegistry) -> None:
        """Snapshot of an empty registry has no metrics."""
        snapshot = registry.snapshot()

        assert snapshot.counters == ()
        assert snapshot.gauges == ()
        assert snapshot.histograms == ()

    @pytest.mark.core
    def test_snapshot_is_not_affected_by_later_writes(
        self, registry: MetricRegistry
    ) -> None:
        """A snapshot holds values, not live references."""
        registry.increment_counter("jobs_total")
        snapshot = registry.snapshot()
        registry.increment_counter("jobs_total")

        assert snapshot.counters[0].value == 1
        assert registry.counter_value("jobs_total") == 2
