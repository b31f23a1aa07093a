from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.farmhub.core.db_timing import get_db_time_ms, start_db_timer, stop_db_timer
from app.farmhub.core.logging import log_json
from app.farmhub.core.metrics import metrics

logger = logging.getLogger("farmhub.request")


def _route_template(request: Request) -> str:
    # Route template, not the concrete path.
    scope_route = request.scope.get("route")
    return getattr(scope_route, "path", None) or request.url.path


def _log_level(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code in (401, 403):
        return logging.WARNING
    return logging.INFO


def build_request_log_payload(
    *,
    request: Request,
    status_code: int,
    latency_ms: float,
    db_time_ms: float | None,
) -> dict:
    state = request.state
    return {
        "event": "http_request",
        "trace_id": getattr(state, "trace_id", ""),
        "user_id": getattr(state, "user_id", None),
        "store_id": getattr(state, "store_id", None),
        "route": _route_template(request),
        "method": request.method,
        "status_code": status_code,
        "latency_ms": round(latency_ms, 2),
        "db_time_ms": round(db_time_ms, 2) if db_time_ms is not None else None,
        "error_code": getattr(state, "error_code", None),
        "error_class": getattr(state, "error_class", None),
    }


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """One structured log line and one metrics sample per request."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        token = start_db_timer()
        response: Response | None = None
        try:
            response = await call_next(request)
            return response
        finally:
            latency_ms = (time.perf_counter() - start_time) * 1000
            db_time_ms = get_db_time_ms()
            stop_db_timer(token)
            status_code = response.status_code if response is not None else 500
            payload = build_request_log_payload(
                request=request,
                status_code=status_code,
                latency_ms=latency_ms,
                db_time_ms=db_time_ms,
            )
            log_json(logger, payload, level=_log_level(status_code))
            metrics.record_http_request(
                route=payload["route"],
                method=payload["method"],
                status_code=status_code,
                latency_ms=latency_ms,
            )
