"""
FastAPI middleware for request tracing and correlation.

Every request gets a unique id that is returned as X-Request-ID and bound to
structlog's context, so all log events emitted while handling the request
(including those from sync tasks run by an admin trigger) carry it.
"""

from __future__ import annotations

import uuid
from typing import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware adding a request id to each HTTP request.

    An incoming X-Request-ID header is reused so ids can be correlated across
    services; otherwise a UUID4 is generated. The id is stored in
    request.state.request_id and echoed in the response header.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers["X-Request-ID"] = request_id
        return response
