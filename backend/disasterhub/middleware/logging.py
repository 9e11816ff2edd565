"""
DisasterHub Backend — Access Log Middleware
=============================================

What:  One log line per HTTP request: method, path, status, duration,
       request id and client address.
Who:   Applied to every request via Starlette middleware.
When:  After RequestIDMiddleware, so the request id is already bound.

Log level follows the status: 5xx → ERROR, 4xx → WARNING, otherwise INFO.

Never logged: request bodies (passwords, personal data), the
Authorization header, uploaded image bytes.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from disasterhub.config import settings
from disasterhub.middleware.request_id import request_id_var

logger = logging.getLogger("disasterhub.access")


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Structured access logging; health probes are skipped."""

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self.quiet_paths = {f"{settings.api_prefix}/health"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in self.quiet_paths:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        rid = request_id_var.get("")

        logger.log(
            _level_for(status),
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
