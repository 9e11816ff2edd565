"""
DisasterHub Backend — Request ID Middleware
=============================================

What:  Assigns a correlation id to every HTTP request and echoes it in the
       `X-Request-ID` response header.
How:   Reuses a well-formed client-supplied id, otherwise generates a short
       one; exposes it through a ContextVar for loggers and the exception
       handlers, and through `request.state.request_id` for route handlers.
When:  Right after rate limiting, before logging and the route handlers.

Error responses carry the same id in their `request_id` field, so a client
can quote it when reporting a problem.
"""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Client ids are echoed into logs and headers; only accept safe tokens
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Behavior:
        1. Take X-Request-ID from the request if it is a safe token
        2. Otherwise generate an 8-character hex id
        3. Bind it to the ContextVar for the duration of the request
        4. Add it to the response headers
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        incoming = request.headers.get("X-Request-ID", "")
        rid = incoming if _VALID_REQUEST_ID.match(incoming) else new_request_id()

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = rid
        return response
