"""Example order service with InsightOps embedded.

Run with:
    INSIGHTOPS_SERVICE_NAME=order-service \
    INSIGHTOPS_DEPENDENCIES='[{"name": "inventory-service", "endpoint": "http://localhost:8001/health"}]' \
    uvicorn examples.fastapi_example:app --reload

Endpoints:
    /orders                          - business endpoint (instrumented)
    /metrics                         - text exposition of every metric
    /health                          - dependency verdict (503 when Unhealthy)
    /logs?since=<ts>&level=<level>   - NDJSON of captured log records
    /api/metrics/summaries           - last/avg/min/max over the retention window
    /api/metrics/<name>              - NDJSON history of one series
    /api/dependencies/<name>/metrics - parsed /metrics of a dependency
    /ws/metrics                      - live MetricsUpdate / MetricUpdated feed
"""

import asyncio
import logging
import random
import time

from fastapi import HTTPException

from insightops import EmbeddedRuntime, create_app, load_settings

logger = logging.getLogger("insightops.examples.orders")

runtime = EmbeddedRuntime(load_settings())
app = create_app(runtime=runtime)


@app.post("/orders")
async def create_order(item: str, quantity: int = 1) -> dict[str, str | int]:
    """Create an order, recording business metrics alongside request metrics."""
    started = time.perf_counter()
    if quantity <= 0:
        runtime.registry.increment_counter("orders_rejected_total", tags={"reason": "quantity"})
        raise HTTPException(status_code=422, detail="quantity must be positive")

    # Simulate a call to the inventory service
    await asyncio.sleep(random.uniform(0.01, 0.05))

    runtime.registry.increment_counter("orders_created_total", tags={"item": item})
    runtime.registry.record_histogram(
        "order_processing_seconds", time.perf_counter() - started
    )
    logger.info("Order created", extra={"item": item, "quantity": quantity})
    return {"item": item, "quantity": quantity, "status": "created"}
