"""
RouteDesk Backend — Request ID Middleware
===========================================

What:  Tags every request with a short correlation id and echoes it back in
       the X-Request-ID response header.
How:   Reuses the id the caller sent (the admin UI and GatewayClient may
       supply one), otherwise generates 8 hex characters. The id lives in a
       ContextVar so loggers and exception handlers can read it without the
       request object; error bodies include it as `request_id`.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"
_MAX_CLIENT_ID_LENGTH = 64


def _new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns the request id before any other middleware runs."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        supplied = request.headers.get(REQUEST_ID_HEADER, "").strip()
        rid = supplied[:_MAX_CLIENT_ID_LENGTH] if supplied else _new_request_id()

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
