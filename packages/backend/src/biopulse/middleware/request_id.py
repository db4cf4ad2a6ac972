"""Request ID middleware — correlate log lines per HTTP request.

Learn: Every request gets an ID, either from the incoming X-Request-ID
header (when a proxy or the dashboard already assigned one) or a fresh
UUID. It is bound into structlog's contextvars together with the method
and path, so every log entry emitted while handling the request carries
them, and echoed back in the response header.
"""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request ID to the logging context and the response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.debug("biopulse.request.completed", status=response.status_code)
        return response
