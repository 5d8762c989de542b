"""
PenguinWatch Backend - Access Logging Middleware
==================================================

One line per HTTP request on the `penguinwatch.access` logger:

    POST /api/observations -> 201 in 38.2ms [a1b2c3d4] client=10.0.0.7

Level follows the status class (5xx ERROR, 4xx WARNING, else INFO).
/health probes are not logged. Form fields and image bytes never are.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from penguinwatch.middleware.request_id import request_id_var

logger = logging.getLogger("penguinwatch.access")

UNLOGGED_PATHS = frozenset({"/health"})


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in UNLOGGED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        logger.log(
            level_for_status(response.status_code),
            "%s %s -> %d in %.1fms [%s] client=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id_var.get(""),
            request.client.host if request.client else "unknown",
        )
        return response
