"""Request middleware."""

from uuid import uuid4

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

CORRELATION_ID_HEADER = "X-Correlation-Id"
# Client-supplied IDs longer than this are replaced
MAX_CORRELATION_ID_LENGTH = 128


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Tag every request with a correlation ID.

    - Reuses the X-Correlation-Id request header or generates a UUID4
    - Stores it in request.state.correlation_id
    - Binds it (fresh context per request) to structlog contextvars
    - Echoes it in the X-Correlation-Id response header
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_ID_HEADER, "")
        if not correlation_id or len(correlation_id) > MAX_CORRELATION_ID_LENGTH:
            correlation_id = str(uuid4())

        request.state.correlation_id = correlation_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response
