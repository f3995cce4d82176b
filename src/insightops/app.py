"""FastAPI application factory.

Run with:
    uvicorn insightops.app:create_app --factory
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from insightops.adapters.frameworks.asgi import RequestMetricsMiddleware
from insightops.adapters.frameworks.fastapi import create_observability_router
from insightops.config import ObservabilitySettings, load_settings
from insightops.runtime.embedded import EmbeddedRuntime


def create_app(
    settings: ObservabilitySettings | None = None,
    runtime: EmbeddedRuntime | None = None,
) -> FastAPI:
    """Create the FastAPI app serving the observability endpoints.

    Settings are loaded from the environment when neither settings nor a
    runtime is given; invalid configuration raises ConfigurationError here,
    before the server starts accepting requests.

    Args:
        settings: Observability settings.
        runtime: Pre-built runtime (takes precedence over settings).

    Returns:
        Configured FastAPI application instance. The runtime is available
        as ``app.state.runtime``.
    """
    if runtime is None:
        runtime = EmbeddedRuntime(settings or load_settings())

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
        """Start sampling on startup, stop it on shutdown."""
        await runtime.start()
        yield
        await runtime.stop()

    app = FastAPI(title=f"{runtime.settings.service_name} observability", lifespan=lifespan)
    app.state.runtime = runtime
    app.include_router(create_observability_router(runtime))
    app.add_middleware(
        RequestMetricsMiddleware,
        registry=runtime.registry,
        exclude_paths=["/metrics", "/health", "/logs", "/ws/*"],
    )
    return app
