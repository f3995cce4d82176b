"""ASGI middleware recording request metrics into a MetricRegistry.

Works under any ASGI server and framework (FastAPI, Starlette, bare ASGI
callables); only ``http`` scopes are instrumented.
"""

import fnmatch
import logging
import time
import uuid
from collections.abc import Awaitable, Callable, MutableMapping
from typing import Any

from insightops.core.metrics import MetricRegistry

logger = logging.getLogger(__name__)

Message = MutableMapping[str, Any]
Scope = MutableMapping[str, Any]
Receive = Callable[[], Awaitable[Message]]
Send = Callable[[Message], Awaitable[None]]
ASGIApp = Callable[[Scope, Receive, Send], Awaitable[None]]

REQUESTS_TOTAL = "http_requests_total"
REQUEST_DURATION = "http_request_duration_seconds"
REQUEST_ERRORS_TOTAL = "http_request_errors_total"
REQUESTS_ACTIVE = "http_requests_active"

_LEVEL_BY_STATUS_CLASS = {4: logging.WARNING, 5: logging.ERROR}


def _request_id(scope: Scope, header_name: str) -> str:
    """Value of the request id header, or a fresh UUID when absent."""
    wanted = header_name.lower().encode("latin-1")
    for name, value in scope.get("headers", []):
        if name.lower() == wanted:
            return value.decode("latin-1")
    return uuid.uuid4().hex


def _log_level(status_code: int) -> int:
    return _LEVEL_BY_STATUS_CLASS.get(status_code // 100, logging.INFO)


class RequestMetricsMiddleware:
    """ASGI middleware that instruments every HTTP request.

    Records, per request:

    - ``http_requests_total{method,path,status}`` counter
    - ``http_request_duration_seconds{method,path}`` histogram
    - ``http_request_errors_total{path}`` counter for status >= 400
    - ``http_requests_active{path}`` gauge while the request is in flight

    Paths are lowercased before they become tag values.

    Args:
        app: Wrapped ASGI application.
        registry: Registry receiving request metrics.
        exclude_paths: fnmatch patterns (e.g. ``"/ws/*"``) passed straight
            through without metrics or request logs.
        request_id_header: Header carrying the caller's request id.
    """

    def __init__(
        self,
        app: ASGIApp,
        registry: MetricRegistry,
        exclude_paths: list[str] | None = None,
        request_id_header: str = "X-Request-ID",
    ) -> None:
        self.app = app
        self.registry = registry
        self.exclude_paths = list(exclude_paths or ())
        self.request_id_header = request_id_header
        self._active: dict[str, int] = {}

    def _excluded(self, path: str) -> bool:
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.exclude_paths)

    def _track_active(self, path: str, delta: int) -> None:
        # Single event loop thread: no lock needed around the dict
        count = self._active.get(path, 0) + delta
        self.registry.set_gauge(REQUESTS_ACTIVE, count, {"path": path})
        if count:
            self._active[path] = count
        else:
            self._active.pop(path, None)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or self._excluded(scope["path"]):
            await self.app(scope, receive, send)
            return

        path = scope["path"].lower()
        request_id = _request_id(scope, self.request_id_header)
        status_code = 500

        async def send_and_capture(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        started = time.perf_counter()
        self._track_active(path, 1)
        try:
            await self.app(scope, receive, send_and_capture)
        except Exception:
            status_code = 500
            raise
        finally:
            self._track_active(path, -1)
            elapsed = time.perf_counter() - started
            self._record(scope["method"], path, status_code, elapsed, request_id)

    def _record(
        self,
        method: str,
        path: str,
        status_code: int,
        elapsed: float,
        request_id: str,
    ) -> None:
        self.registry.increment_counter(
            REQUESTS_TOTAL,
            tags={"method": method, "path": path, "status": str(status_code)},
        )
        self.registry.record_histogram(
            REQUEST_DURATION, elapsed, {"method": method, "path": path}
        )
        if status_code >= 400:
            self.registry.increment_counter(REQUEST_ERRORS_TOTAL, tags={"path": path})
        logger.log(
            _log_level(status_code),
            "%s %s %s",
            method,
            path,
            status_code,
            extra={
                "request_id": request_id,
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": round(elapsed * 1000, 3),
            },
        )
