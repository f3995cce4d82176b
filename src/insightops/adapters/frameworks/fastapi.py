"""FastAPI adapter for observability endpoints."""

import asyncio
import logging
from collections.abc import Callable

from fastapi import APIRouter, HTTPException, Query, Response, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from insightops.adapters.remote import metrics_url_for
from insightops.core.broadcast import Subscriber
from insightops.core.encoding.ndjson import encode_logs, encode_points
from insightops.core.encoding.prometheus import encode_registry
from insightops.core.models import METRICS_UPDATE, HealthStatus
from insightops.runtime.embedded import EmbeddedRuntime

logger = logging.getLogger(__name__)

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"
NDJSON_CONTENT_TYPE = "application/x-ndjson"
VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _encoded_response(
    encode: Callable[[], str], media_type: str, log_message: str
) -> Response:
    """Run an encoder and wrap its output, answering 500 on failure."""
    try:
        return Response(content=encode(), media_type=media_type)
    except Exception:
        logger.exception(log_message)
        return JSONResponse({"error": "Internal Server Error"}, status_code=500)


async def _pump(websocket: WebSocket, subscriber: Subscriber) -> None:
    while True:
        message = await subscriber.receive()
        if message is None:
            return
        await websocket.send_json(message.to_dict())


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # Clients send no commands; anything received is ignored
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


def create_observability_router(runtime: EmbeddedRuntime) -> APIRouter:
    """Create a FastAPI router with the observability endpoints.

    Endpoints:
        /metrics                        - text exposition of the registry
        /health                         - aggregated dependency verdict
        /logs                           - NDJSON of captured log records
        /api/metrics/summaries          - retained-window summaries
        /api/metrics/{name}             - retained points of one series
        /api/dependencies/{name}/metrics - parsed /metrics of a dependency
        /ws/metrics                     - live MetricsUpdate/MetricUpdated feed

    Args:
        runtime: Runtime holding the shared components.

    Returns:
        APIRouter with every endpoint configured.
    """
    router = APIRouter()

    @router.get("/metrics")
    async def get_metrics() -> Response:
        """Return metrics in the text exposition format."""
        return _encoded_response(
            lambda: encode_registry(runtime.registry.snapshot()),
            PROMETHEUS_CONTENT_TYPE,
            "Error encoding metrics endpoint",
        )

    @router.get("/health")
    async def get_health() -> JSONResponse:
        """Check every configured dependency."""
        try:
            verdict = await runtime.check_health()
        except Exception as exc:
            logger.exception("Error checking health")
            return JSONResponse(
                {
                    "status": HealthStatus.UNHEALTHY.value,
                    "checks": [],
                    "totalDurationMs": 0.0,
                    "error": f"{type(exc).__name__}: {exc}",
                },
                status_code=503,
            )
        status_code = 503 if verdict.status is HealthStatus.UNHEALTHY else 200
        return JSONResponse(verdict.to_dict(), status_code=status_code)

    @router.get("/logs")
    async def get_logs(
        since: float = Query(default=0),
        level: str | None = Query(default=None),
    ) -> Response:
        """Return captured logs in NDJSON format.

        Args:
            since: Unix timestamp. Returns entries with timestamp > since.
            level: Optional level filter; unknown levels are ignored.
        """
        normalized = level.upper() if level and level.upper() in VALID_LEVELS else None
        return _encoded_response(
            lambda: encode_logs(runtime.log_buffer.read(since=max(since, 0), level=normalized)),
            NDJSON_CONTENT_TYPE,
            "Error encoding logs endpoint",
        )

    @router.get("/api/metrics/summaries")
    async def get_summaries() -> list[dict]:
        return [summary.to_dict() for summary in runtime.store.summaries().values()]

    # Series keys carry tag values that may contain slashes
    @router.get("/api/metrics/{name:path}")
    async def get_series(name: str, since: float | None = Query(default=None)) -> Response:
        if name not in runtime.store.names():
            raise HTTPException(status_code=404, detail=f"Unknown metric {name!r}")
        return _encoded_response(
            lambda: encode_points(runtime.store.query(name, since=since)),
            NDJSON_CONTENT_TYPE,
            "Error encoding metric history",
        )

    @router.get("/api/dependencies/{name}/metrics")
    async def get_dependency_metrics(name: str) -> dict[str, float]:
        dependency = runtime.dependency(name)
        if dependency is None:
            raise HTTPException(status_code=404, detail=f"Unknown dependency {name!r}")
        return await runtime.remote_metrics.fetch(metrics_url_for(dependency.endpoint))

    @router.websocket("/ws/metrics")
    async def metrics_feed(websocket: WebSocket) -> None:
        """Push live metric events until the client disconnects."""
        await websocket.accept()
        subscriber = runtime.broadcaster.subscribe()
        latest = runtime.broadcaster.last_message(METRICS_UPDATE)
        if latest is not None:
            subscriber.offer(latest)
        pump = asyncio.create_task(_pump(websocket, subscriber))
        listener = asyncio.create_task(_wait_for_disconnect(websocket))
        try:
            done, pending = await asyncio.wait(
                {pump, listener}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
            for task in done:
                exc = task.exception()
                if exc is not None and not isinstance(exc, WebSocketDisconnect):
                    logger.warning(
                        "Live metrics connection failed",
                        exc_info=exc,
                        extra={"subscriber_id": subscriber.id},
                    )
        finally:
            runtime.broadcaster.unsubscribe(subscriber)
        if pump in done and pump.exception() is None and listener not in done:
            # Dropped by the broadcaster (closed or overflowing)
            await websocket.close(code=1011)

    return router
