"""Dependency health checks over HTTP."""

import asyncio
import logging
import time
from collections.abc import Sequence

import httpx

from insightops.core.metrics import MetricRegistry
from insightops.core.models import (
    DependencyConfig,
    DependencyResult,
    HealthStatus,
    HealthVerdict,
)

logger = logging.getLogger(__name__)

CHECK_DURATION = "health_check_duration_seconds"
CHECK_FAILURES = "health_check_failures_total"


def compose_verdict(results: Sequence[DependencyResult]) -> HealthStatus:
    """Fold per-dependency results into an overall status.

    Healthy when every dependency is healthy, Unhealthy when any critical
    dependency is unhealthy, Degraded when only non-critical ones fail.
    """
    failed = [r for r in results if r.status is not HealthStatus.HEALTHY]
    if not failed:
        return HealthStatus.HEALTHY
    if any(r.critical for r in failed):
        return HealthStatus.UNHEALTHY
    return HealthStatus.DEGRADED


class HealthAggregator:
    """Checks dependency health endpoints concurrently.

    Each check is hard-cancelled when its timeout expires, so check_all
    finishes within roughly one timeout regardless of how many dependencies
    are configured.

    Args:
        client: HTTP client used for the checks. Owned by the caller.
        registry: Optional registry receiving check latency and failures.
        timeout: Default per-dependency timeout in seconds.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        registry: MetricRegistry | None = None,
        timeout: float = 5.0,
    ) -> None:
        self._client = client
        self._registry = registry
        self._timeout = timeout

    async def _check(self, dependency: DependencyConfig, timeout: float) -> DependencyResult:
        started = time.perf_counter()
        status_code: int | None = None
        error: str | None = None
        try:
            response = await asyncio.wait_for(
                self._client.get(dependency.endpoint), timeout=timeout
            )
            status_code = response.status_code
        except TimeoutError:
            error = f"Timed out after {timeout:g}s"
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            error = f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__
        except OSError as exc:
            error = f"{type(exc).__name__}: {exc}"
        elapsed = time.perf_counter() - started

        healthy = error is None and status_code is not None and 200 <= status_code < 300
        if not healthy:
            logger.warning(
                "Health check failed for %s",
                dependency.name,
                extra={
                    "dependency": dependency.name,
                    "status_code": status_code or 0,
                    "error": error or "",
                },
            )
        if self._registry is not None:
            tags = {"dependency": dependency.name}
            self._registry.record_histogram(CHECK_DURATION, elapsed, tags)
            if not healthy:
                self._registry.increment_counter(CHECK_FAILURES, tags=tags)
        return DependencyResult(
            name=dependency.name,
            status=HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
            duration_ms=elapsed * 1000,
            status_code=status_code,
            error=error,
            critical=dependency.critical,
        )

    async def check_all(
        self,
        dependencies: Sequence[DependencyConfig],
        timeout: float | None = None,
    ) -> HealthVerdict:
        """Check every dependency and compose a verdict.

        Args:
            dependencies: Dependencies to check, reported in the same order.
            timeout: Per-dependency timeout in seconds (default: the
                aggregator's timeout).

        Returns:
            HealthVerdict; never raises for dependency failures.
        """
        limit = self._timeout if timeout is None else timeout
        started = time.perf_counter()
        results = await asyncio.gather(*(self._check(dep, limit) for dep in dependencies))
        return HealthVerdict(
            status=compose_verdict(results),
            results=tuple(results),
            total_duration_ms=(time.perf_counter() - started) * 1000,
        )
