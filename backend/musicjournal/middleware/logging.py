"""
Music Journal Backend — Request Logging Middleware
====================================================

What:  One log line per HTTP request: method, path, status, duration.
Why:   Route handlers stay free of logging boilerplate, and every request
       is visible with its request id.

Privacy:
    ✅ Log: method, path, status, duration, client IP, request ID
    ❌ Don't log: request bodies (journal text), cookies, Authorization headers
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from musicjournal.middleware.request_id import request_id_var

logger = logging.getLogger("musicjournal.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs each request on completion.

    Level follows the status: 5xx → ERROR, 4xx → WARNING, else INFO.
    /health is skipped; probes would drown everything else.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path == "/health":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
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
                "client_ip": client_ip,
            },
        )
        return response
