from dataclasses import dataclass

from fastapi import Request

ACTOR_HEADER = "X-Actor"
TRACE_HEADER = "X-Trace-ID"
DEFAULT_ACTOR = "anonymous"


@dataclass(frozen=True)
class RequestContext:
    actor: str
    trace_id: str


def build_request_context(*, actor: str | None, trace_id: str) -> RequestContext:
    return RequestContext(actor=(actor or "").strip() or DEFAULT_ACTOR, trace_id=trace_id)


def get_request_context(request: Request) -> RequestContext:
    context = getattr(request.state, "context", None)
    if isinstance(context, RequestContext):
        return context
    context = build_request_context(
        actor=request.headers.get(ACTOR_HEADER),
        trace_id=getattr(request.state, "trace_id", ""),
    )
    request.state.context = context
    return context
