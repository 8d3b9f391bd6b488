from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.pdv.core.db_timing import current_db_timing, start_db_timer, stop_db_timer
from app.pdv.core.logging import log_json
from app.pdv.core.metrics import metrics

logger = logging.getLogger("pdv.request")


def route_template(request: Request) -> str:
    """Matched route path (``/pdv/pos/sales/{sale_id}``), falling back to the raw path."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def access_log_entry(request: Request, status_code: int, latency_ms: float) -> dict:
    state = request.state
    timing = current_db_timing()
    entry = {
        "event": "http_request",
        "trace_id": getattr(state, "trace_id", ""),
        "user_id": getattr(state, "user_id", None),
        "role": getattr(state, "role", None),
        "route": route_template(request),
        "method": request.method,
        "status_code": status_code,
        "latency_ms": round(latency_ms, 2),
        "db_time_ms": None,
        "db_statements": None,
        "error_code": getattr(state, "error_code", None),
        "error_class": getattr(state, "error_class", None),
    }
    if timing is not None:
        entry["db_time_ms"] = round(timing.elapsed_ms, 2)
        entry["db_statements"] = timing.statements
    return entry


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """One structured access-log line and one metrics sample per request."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        timer = start_db_timer()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            latency_ms = (time.perf_counter() - started) * 1000
            entry = access_log_entry(request, status_code, latency_ms)
            stop_db_timer(timer)
            log_json(logger, entry, level=logging.WARNING if status_code >= 500 else logging.INFO)
            metrics.record_http_request(
                route=entry["route"],
                method=entry["method"],
                status_code=status_code,
                latency_ms=latency_ms,
            )
