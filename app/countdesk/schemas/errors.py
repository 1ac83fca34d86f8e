from pydantic import BaseModel


class ApiErrorResponse(BaseModel):
    code: str
    message: str
    details: dict | list | str | None = None
    trace_id: str | None = None


class ApiValidationErrorResponse(ApiErrorResponse):
    details: dict | None = None


ERROR_RESPONSES = {
    404: {"description": "Not found", "model": ApiErrorResponse},
    409: {"description": "Conflict with the current state", "model": ApiErrorResponse},
    422: {"description": "Validation error", "model": ApiValidationErrorResponse},
    502: {"description": "Inventory system request failed", "model": ApiErrorResponse},
}
