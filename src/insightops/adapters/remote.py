"""Reads another service's /metrics endpoint."""

import logging

import httpx

from insightops.core.encoding.prometheus import parse_exposition

logger = logging.getLogger(__name__)


def metrics_url_for(health_endpoint: str) -> str:
    """Derive a service's metrics URL from its health endpoint URL."""
    base, sep, tail = health_endpoint.rstrip("/").rpartition("/")
    if sep and tail == "health":
        return f"{base}/metrics"
    return f"{health_endpoint.rstrip('/')}/metrics"


class RemoteMetricsReader:
    """Fetches and parses a remote exposition endpoint.

    Failures are logged and produce an empty mapping, so dashboard
    composition degrades instead of failing.
    """

    def __init__(self, client: httpx.AsyncClient, timeout: float = 5.0) -> None:
        self._client = client
        self._timeout = timeout

    async def fetch(self, url: str) -> dict[str, float]:
        try:
            response = await self._client.get(url, timeout=self._timeout)
        except (httpx.HTTPError, httpx.InvalidURL):
            logger.exception("Error fetching metrics from %s", url, extra={"url": url})
            return {}
        if not response.is_success:
            logger.warning(
                "Metrics endpoint %s answered %s",
                url,
                response.status_code,
                extra={"url": url, "status_code": response.status_code},
            )
            return {}
        return parse_exposition(response.text)
