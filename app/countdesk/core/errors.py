from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from app.countdesk.core.error_catalog import AppError, ErrorCatalog, ErrorDefinition
from app.countdesk.core.metrics import metrics
from app.countdesk.gateways.base import GatewayError

_LOCK_TIMEOUT_MARKERS = (
    "lock timeout",
    "deadlock detected",
    "database is locked",
    "could not obtain lock",
)

_HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}


def error_payload(code: str, message: str, details: object, trace_id: str) -> dict:
    return {
        "code": code,
        "message": message,
        "details": jsonable_encoder(details),
        "trace_id": trace_id,
    }


def error_response(code: str, message: str, details: object, trace_id: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_payload(code, message, details, trace_id))


def _render(
    request: Request,
    exc: Exception,
    *,
    code: str,
    message: str,
    details: object,
    status_code: int,
) -> JSONResponse:
    """Build the error body and let a pending idempotent request record it."""
    request.state.error_code = code
    request.state.error_class = type(exc).__name__
    payload = error_payload(code, message, details, getattr(request.state, "trace_id", ""))
    pending = getattr(request.state, "idempotency", None)
    if pending is not None:
        pending.record_failure(status_code=status_code, response_body=payload)
    return JSONResponse(status_code=status_code, content=payload)


def _render_definition(request: Request, exc: Exception, error: ErrorDefinition, details: object) -> JSONResponse:
    return _render(
        request,
        exc,
        code=error.code,
        message=error.message,
        details=details,
        status_code=error.status_code,
    )


def _is_lock_timeout(exc: Exception) -> bool:
    if not isinstance(exc, OperationalError):
        return False
    message = str(exc).lower()
    return any(marker in message for marker in _LOCK_TIMEOUT_MARKERS)


def _validation_details(exc: RequestValidationError) -> dict:
    errors = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        errors.append(
            {
                "field": ".".join(part for part in loc if part not in {"body", "query", "path", "header"}) or None,
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "validation_error"),
                "loc": loc,
            }
        )
    return {"errors": errors}


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return _render_definition(request, exc, exc.error, exc.details)

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        return _render_definition(
            request,
            exc,
            ErrorCatalog.EXTERNAL_SYSTEM_ERROR,
            {"message": exc.message, **exc.details},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "HTTP error"
        details = None if isinstance(exc.detail, str) else exc.detail
        return _render(
            request,
            exc,
            code=_HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
            message=message,
            details=details,
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _render_definition(request, exc, ErrorCatalog.VALIDATION_ERROR, _validation_details(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        if _is_lock_timeout(exc):
            metrics.increment_lock_wait_timeout()
            error = ErrorCatalog.LOCK_TIMEOUT
        else:
            error = ErrorCatalog.INTERNAL_ERROR
        return _render_definition(request, exc, error, {"type": type(exc).__name__})
