"""
PenguinWatch Backend - Request ID Middleware
==============================================

What:  Tags each request with a short correlation ID, returned in the
       X-Request-ID response header and available to loggers through
       request_id_var.
How:   A client-supplied X-Request-ID is reused only when it is a short token
       of safe characters; anything else (too long, spaces, control
       characters) is replaced by a generated 8-character id, so log lines
       cannot be forged or bloated through the header.
"""

import re
import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Accepted client ids: 1-64 of letters, digits, '.', '_' or '-'
VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


def accept_request_id(candidate: Optional[str]) -> str:
    """Return the client's id when well-formed, otherwise a fresh one."""
    if candidate and VALID_REQUEST_ID.match(candidate):
        return candidate
    return new_request_id()


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = accept_request_id(request.headers.get(REQUEST_ID_HEADER))
        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = rid
        return response
