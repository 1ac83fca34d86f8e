from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.countdesk.core.context import ACTOR_HEADER, DEFAULT_ACTOR
from app.countdesk.core.db_timing import db_timer, get_db_time_ms
from app.countdesk.core.logging import log_json
from app.countdesk.core.metrics import metrics
from app.countdesk.services.idempotency import REPLAY_HEADER

logger = logging.getLogger("countdesk.request")


def _route_template(request: Request) -> str:
    """Matched route path including any prefix the router was mounted under."""
    route_path = getattr(request.scope.get("route"), "path", None)
    if not route_path:
        return request.url.path
    root_path = request.scope.get("root_path", "")
    if root_path and not route_path.startswith(root_path):
        return root_path + route_path
    return route_path


def build_request_log_payload(
    *,
    request: Request,
    response: Response | None,
    latency_ms: float,
    db_time_ms: float | None,
) -> dict:
    return {
        "event": "http_request",
        "trace_id": getattr(request.state, "trace_id", ""),
        "actor": request.headers.get(ACTOR_HEADER) or DEFAULT_ACTOR,
        "route": _route_template(request),
        "method": request.method,
        "status_code": getattr(response, "status_code", 500),
        "latency_ms": round(latency_ms, 2),
        "db_time_ms": round(db_time_ms, 2) if db_time_ms is not None else None,
        "error_code": getattr(request.state, "error_code", None),
        "error_class": getattr(request.state, "error_class", None),
        "idempotent_replay": bool(response is not None and response.headers.get(REPLAY_HEADER)),
    }


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        response: Response | None = None
        with db_timer():
            try:
                response = await call_next(request)
                return response
            finally:
                latency_ms = (time.perf_counter() - start_time) * 1000
                payload = build_request_log_payload(
                    request=request,
                    response=response,
                    latency_ms=latency_ms,
                    db_time_ms=get_db_time_ms(),
                )
                log_json(logger, payload)
                metrics.record_http_request(
                    route=payload["route"],
                    method=payload["method"],
                    status_code=payload["status_code"],
                    latency_ms=latency_ms,
                )
                if payload["idempotent_replay"]:
                    metrics.increment_idempotency_replay()
