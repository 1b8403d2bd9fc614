"""
RouteDesk Backend — Request Logging Middleware
================================================

What:  One access-log line per HTTP request: method, path, query, status,
       duration, request id and client address.
Who:   Applied to every request; runs inside RequestIDMiddleware so the id
       is already set.

Levels:
    5xx → ERROR, 4xx → WARNING, everything else → INFO.
    /health probes and CORS preflights are not logged.

Request bodies are never logged: location rows carry addresses and QR
destinations that do not belong in log files.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from routedesk.middleware.request_id import request_id_var

logger = logging.getLogger("routedesk.access")

_QUIET_PATHS = ("/health",)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request once, after the response status is known."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in _QUIET_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        rid = request_id_var.get("")
        client_ip = request.client.host if request.client else "unknown"
        query = request.url.query

        logger.log(
            log_level,
            "%s %s%s %d %.1fms [%s] from %s",
            request.method,
            path,
            f"?{query}" if query else "",
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return response
