from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from app.countdesk.core.error_catalog import AppError, ErrorCatalog


class TaskStatus(str, Enum):
    DRAFT = "draft"
    COUNTING = "counting"
    REVIEWING = "reviewing"
    COMMITTED = "committed"
    AUTO_COMMITTED = "auto_committed"
    ARCHIVED = "archived"


class ReportStatus(str, Enum):
    REVIEWING = "reviewing"
    COMMITTED = "committed"
    ARCHIVED = "archived"


@dataclass(frozen=True)
class StatusDisplay:
    label: str
    tone: str


TASK_STATUS_DISPLAY: dict[TaskStatus, StatusDisplay] = {
    TaskStatus.DRAFT: StatusDisplay("Draft", "new"),
    TaskStatus.COUNTING: StatusDisplay("Counting", "info"),
    TaskStatus.REVIEWING: StatusDisplay("Reviewing", "warning"),
    TaskStatus.COMMITTED: StatusDisplay("Committed", "success"),
    TaskStatus.AUTO_COMMITTED: StatusDisplay("Auto committed", "success"),
    TaskStatus.ARCHIVED: StatusDisplay("Archived", ""),
}

REPORT_STATUS_DISPLAY: dict[ReportStatus, StatusDisplay] = {
    ReportStatus.REVIEWING: StatusDisplay("Reviewing", "warning"),
    ReportStatus.COMMITTED: StatusDisplay("Committed", "success"),
    ReportStatus.ARCHIVED: StatusDisplay("Archived", ""),
}

# auto_committed is reported together with committed by list filters.
COMMITTED_STATUSES = frozenset({TaskStatus.COMMITTED, TaskStatus.AUTO_COMMITTED})
SCANNABLE_STATUSES = frozenset({TaskStatus.COUNTING})
COMMITTABLE_STATUSES = frozenset({TaskStatus.COUNTING, TaskStatus.REVIEWING})

_TASK_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.DRAFT: frozenset({TaskStatus.COUNTING, TaskStatus.ARCHIVED}),
    TaskStatus.COUNTING: frozenset(
        {TaskStatus.REVIEWING, TaskStatus.AUTO_COMMITTED, TaskStatus.COMMITTED, TaskStatus.ARCHIVED}
    ),
    TaskStatus.REVIEWING: frozenset({TaskStatus.COMMITTED, TaskStatus.ARCHIVED}),
    TaskStatus.COMMITTED: frozenset({TaskStatus.ARCHIVED}),
    TaskStatus.AUTO_COMMITTED: frozenset({TaskStatus.ARCHIVED}),
    TaskStatus.ARCHIVED: frozenset(),
}


def task_status_display(status: str) -> StatusDisplay:
    return TASK_STATUS_DISPLAY[TaskStatus(status)]


def report_status_display(status: str) -> StatusDisplay:
    return REPORT_STATUS_DISPLAY[ReportStatus(status)]


def expand_status_filter(statuses: list[str]) -> list[str]:
    try:
        values = {TaskStatus(value) for value in statuses}
    except ValueError as exc:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": str(exc), "status": statuses}) from exc
    if values & COMMITTED_STATUSES:
        values |= COMMITTED_STATUSES
    return sorted(value.value for value in values)


def can_transition(current: str, target: TaskStatus) -> bool:
    return target in _TASK_TRANSITIONS[TaskStatus(current)]


def ensure_transition(current: str, target: TaskStatus) -> None:
    if not can_transition(current, target):
        raise AppError(
            ErrorCatalog.INVALID_STATE_TRANSITION,
            details={"message": f"cannot move task from {current} to {target.value}", "status": current},
        )


def ensure_status_in(current: str, allowed: frozenset[TaskStatus], *, action: str) -> None:
    if TaskStatus(current) not in allowed:
        raise AppError(
            ErrorCatalog.INVALID_STATE_TRANSITION,
            details={
                "message": f"cannot {action} a task in {current} status",
                "status": current,
                "allowed": sorted(status.value for status in allowed),
            },
        )
