"""
Request Context Middleware.

Binds a per-request context into structlog so every line logged while
serving one call (store validation warnings, alert transitions, tick
summaries) can be joined up:
- request_id, from X-Request-ID when a proxy supplies one
- sector_id / alert_id when the path addresses a single resource

The id and handling time go back out as X-Request-ID and X-Response-Time.
"""

import re
import time
import uuid

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)

RESOURCE_PATHS = (
    ("sector_id", re.compile(r"^/api/v1/sectors/(?!geojson$)([^/]+)")),
    ("alert_id", re.compile(r"^/api/v1/alerts/([^/]+)")),
)

# Logged at debug level only
QUIET_PATHS = frozenset({"/health"})


def resource_context(path: str) -> dict[str, str]:
    for key, pattern in RESOURCE_PATHS:
        match = pattern.match(path)
        if match:
            return {key: match.group(1)}
    return {}


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Placed inside the error handler so failures still carry request_id."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        path = request.url.path

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=path,
            **resource_context(path),
        )

        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{elapsed_ms}ms"

        if response.status_code >= 500:
            logger.warning("request_failed", status=response.status_code, elapsed_ms=elapsed_ms)
        elif path in QUIET_PATHS:
            logger.debug("request_completed", status=response.status_code, elapsed_ms=elapsed_ms)
        else:
            logger.info("request_completed", status=response.status_code, elapsed_ms=elapsed_ms)
        return response
