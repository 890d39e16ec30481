"""Request ID middleware.

Reuses an incoming X-Request-ID (so a trace can span the proxy and this
app) or mints a UUID, binds it into structlog's contextvars for every
log line of the request, and echoes it on the response.
"""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

HEADER = "X-Request-ID"


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(HEADER) or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id, path=request.url.path
        )

        response: Response = await call_next(request)
        response.headers[HEADER] = request_id
        return response
