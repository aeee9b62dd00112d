# mozaiks_data/http/middleware.py
from __future__ import annotations

import logging
import re
import uuid
from time import perf_counter
from typing import Callable, Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from mozaiks_data.errors import DataGatewayError, MalformedRequest, RequestTooLarge

access_logger = logging.getLogger("mozaiks_data.access")

CORRELATION_HEADER = "x-correlation-id"
# Accepted when the caller only sends a generic request id.
_FALLBACK_HEADERS = ("x-request-id",)
_CORRELATION_ID_RE = re.compile(r"^[A-Za-z0-9._:\-]{1,128}$")

WRITE_METHODS = frozenset({"POST", "PUT", "DELETE"})


def _error_response(exc: DataGatewayError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_envelope())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Tag every request with a correlation id and write one access line.

    Plugin-supplied ids are reused when they look like ids; anything else
    (empty, overlong, or with characters that would break log parsing) is
    replaced with a fresh one.
    """

    def __init__(self, app, header_name: str = CORRELATION_HEADER, fallback_headers: Iterable[str] = _FALLBACK_HEADERS) -> None:
        super().__init__(app)
        self._header_name = header_name.lower()
        self._fallback_headers = tuple(h.lower() for h in fallback_headers)

    def _resolve(self, request: Request) -> str:
        for name in (self._header_name, *self._fallback_headers):
            candidate = (request.headers.get(name) or "").strip()
            if candidate and _CORRELATION_ID_RE.match(candidate):
                return candidate
        return uuid.uuid4().hex

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = self._resolve(request)
        request.state.correlation_id = correlation_id
        start = perf_counter()
        response = await call_next(request)
        elapsed_ms = (perf_counter() - start) * 1000
        response.headers[self._header_name] = correlation_id
        access_logger.info(
            "%s %s -> %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            extra={"correlation_id": correlation_id, "status_code": response.status_code},
        )
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject oversized write bodies before they are read or parsed."""

    def __init__(self, app, *, max_body_bytes: int) -> None:
        super().__init__(app)
        self._max = int(max_body_bytes)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.method not in WRITE_METHODS:
            return await call_next(request)
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                size = int(content_length)
            except ValueError:
                return _error_response(MalformedRequest("invalid Content-Length header"))
            if size > self._max:
                return _error_response(RequestTooLarge(f"write body exceeds {self._max} bytes"))
        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers.setdefault("x-content-type-options", "nosniff")
        response.headers.setdefault("x-frame-options", "DENY")
        response.headers.setdefault("referrer-policy", "no-referrer")
        # Gateway responses describe tenant data; never let a proxy keep them.
        if request.url.path.startswith("/data/"):
            response.headers.setdefault("cache-control", "no-store")
        return response
