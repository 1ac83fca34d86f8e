from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from app.countdesk.schemas.scans import ScanEventIn, ScanEventOut


class TaskItemCreate(BaseModel):
    barcode: str = Field(min_length=1, max_length=100)
    name: str | None = Field(default=None, max_length=255)


class TaskCreateRequest(BaseModel):
    department: str = Field(min_length=1, max_length=100)
    locations: list[str] = Field(min_length=1)
    items: list[TaskItemCreate] = Field(min_length=1)
    filter_summary: str | None = None
    notes: list[str] = Field(default_factory=list)
    publish: bool = False


class NoteOut(BaseModel):
    index: int
    text: str
    created_at: datetime | None = None


class TaskItemOut(BaseModel):
    id: UUID
    position: int
    barcode: str
    name: str | None
    baseline: int | None
    scan_history: list[ScanEventOut]
    version: int
    computed_quantity: int | None
    is_exact_match: bool
    delta: int | None
    committed: bool
    committed_at: datetime | None


class TaskCounts(BaseModel):
    total_count: int
    processed_count: int
    inaccurate_count: int


class TaskSummary(BaseModel):
    id: UUID
    task_no: str
    department: str
    location: str
    external_location_id: str | None
    status: str
    status_label: str
    status_tone: str
    filter_summary: str | None
    notes: list[NoteOut]
    created_at: datetime
    updated_at: datetime
    counts: TaskCounts


class TaskDetail(TaskSummary):
    items: list[TaskItemOut]


class TaskCreateResponse(BaseModel):
    tasks: list[TaskDetail]


class TaskListResponse(BaseModel):
    rows: list[TaskSummary]
    total: int


class ScanRequest(BaseModel):
    event: ScanEventIn
    baseline: int | None = None
    expected_version: int | None = Field(default=None, ge=0)


class ScanResponse(BaseModel):
    task_id: UUID
    item: TaskItemOut


class SubmitResponse(BaseModel):
    task: TaskDetail
    unscanned_count: int
    auto_committed: bool


class TaskCommitRequest(BaseModel):
    item_ids: list[UUID] | None = None


class ItemCommitResultOut(BaseModel):
    item_id: str
    barcode: str
    result: Literal["committed", "noop", "skipped", "failed"]
    delta: int | None = None
    error_code: str | None = None
    message: str | None = None


class TaskCommitResponse(BaseModel):
    task: TaskDetail
    results: list[ItemCommitResultOut]


class NoteCreateRequest(BaseModel):
    text: str = Field(min_length=1, max_length=2000)


class BulkIdsRequest(BaseModel):
    ids: list[UUID] = Field(min_length=1)


class BulkResultResponse(BaseModel):
    affected: int
    ids: list[UUID] = Field(default_factory=list)
