from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    NOT_FOUND = ErrorDefinition("NOT_FOUND", "Resource not found", status.HTTP_404_NOT_FOUND)
    TASK_NOT_FOUND = ErrorDefinition("TASK_NOT_FOUND", "Counting task not found", status.HTTP_404_NOT_FOUND)
    TASK_ITEM_NOT_FOUND = ErrorDefinition(
        "TASK_ITEM_NOT_FOUND",
        "Task item not found",
        status.HTTP_404_NOT_FOUND,
    )
    REPORT_NOT_FOUND = ErrorDefinition(
        "REPORT_NOT_FOUND",
        "Zero quantity report entry not found",
        status.HTTP_404_NOT_FOUND,
    )
    CATALOG_ITEM_NOT_FOUND = ErrorDefinition(
        "CATALOG_ITEM_NOT_FOUND",
        "Catalog item not found",
        status.HTTP_404_NOT_FOUND,
    )
    LOCATION_NOT_MAPPED = ErrorDefinition(
        "LOCATION_NOT_MAPPED",
        "Location is not mapped to the inventory system",
        status.HTTP_404_NOT_FOUND,
    )
    INVALID_STATE_TRANSITION = ErrorDefinition(
        "INVALID_STATE_TRANSITION",
        "Operation not allowed in the current status",
        status.HTTP_409_CONFLICT,
    )
    STALE_SCAN = ErrorDefinition(
        "STALE_SCAN",
        "Scan history changed since it was read",
        status.HTTP_409_CONFLICT,
    )
    EXTERNAL_SYSTEM_ERROR = ErrorDefinition(
        "EXTERNAL_SYSTEM_ERROR",
        "Inventory system request failed",
        status.HTTP_502_BAD_GATEWAY,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    LOCK_TIMEOUT = ErrorDefinition(
        "LOCK_TIMEOUT",
        "Lock wait timeout",
        status.HTTP_409_CONFLICT,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD = ErrorDefinition(
        "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD",
        "Idempotency key reused with different payload",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REQUEST_IN_PROGRESS = ErrorDefinition(
        "IDEMPOTENCY_REQUEST_IN_PROGRESS",
        "Idempotency request already in progress",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REPLAY = ErrorDefinition(
        "IDEMPOTENCY_REPLAY",
        "Idempotent replay",
        status.HTTP_200_OK,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)
