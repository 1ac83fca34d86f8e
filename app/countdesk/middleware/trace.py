import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.countdesk.core.context import TRACE_HEADER

MAX_TRACE_ID_LENGTH = 64


def resolve_trace_id(incoming: str | None) -> str:
    """Reuse the caller's trace id when it is usable, otherwise mint one."""
    candidate = (incoming or "").strip()
    if not candidate or len(candidate) > MAX_TRACE_ID_LENGTH:
        return uuid.uuid4().hex
    return candidate


class TraceIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request.state.trace_id = resolve_trace_id(request.headers.get(TRACE_HEADER))
        response = await call_next(request)
        response.headers[TRACE_HEADER] = request.state.trace_id
        return response
