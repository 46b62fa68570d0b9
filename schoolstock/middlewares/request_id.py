from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
principal_ctx_var: ContextVar[str | None] = ContextVar("principal_id", default=None)
logger = logging.getLogger("schoolstock.request")

# Polled by load balancers and Prometheus; logged only at DEBUG.
QUIET_PATHS = frozenset({"/health", "/metrics"})


def _level_for(path: str, status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if path in QUIET_PATHS:
        return logging.DEBUG
    return logging.INFO


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with a correlation id that ledger event logs carry too.

    The id comes from the caller's ``X-Request-ID`` header when present, so an
    office client can match its own logs to ``distribution.created`` lines.
    One ``request.completed`` line is written per request, naming the principal
    that ``require_principal`` resolved.
    """

    def __init__(self, app, header_name: str = "X-Request-ID") -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self.header_name) or str(uuid4())
        token = request_id_ctx_var.set(request_id)
        principal_token = principal_ctx_var.set(None)
        request.state.request_id = request_id
        start = time.perf_counter()
        try:
            response = await call_next(request)
            principal = getattr(request.state, "principal", None)
        finally:
            request_id_ctx_var.reset(token)
            principal_ctx_var.reset(principal_token)
        duration_ms = (time.perf_counter() - start) * 1000
        response.headers[self.header_name] = request_id
        response.headers.setdefault("X-Response-Time", f"{duration_ms:.2f}ms")

        path = request.url.path
        fields = {
            "request_id": request_id,
            "method": request.method,
            "path": path,
            "status": response.status_code,
            "duration_ms": round(duration_ms, 2),
        }
        if principal:
            fields["principal"] = principal
        logger.log(_level_for(path, response.status_code), "request.completed", extra={"extra_data": fields})
        return response
