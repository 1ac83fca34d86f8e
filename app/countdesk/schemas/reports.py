from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from app.countdesk.schemas.scans import ScanEventIn, ScanEventOut


class ReportEntryCreate(BaseModel):
    barcode: str = Field(min_length=1, max_length=100)
    name: str | None = Field(default=None, max_length=255)
    department: str | None = Field(default=None, max_length=100)
    location: str = Field(min_length=1, max_length=100)
    baseline: int
    scan_history: list[ScanEventIn] = Field(min_length=1)


class ReportSubmitRequest(BaseModel):
    entries: list[ReportEntryCreate] = Field(min_length=1)


class ReportEntryOut(BaseModel):
    id: UUID
    barcode: str
    name: str | None
    department: str | None
    location: str
    external_location_id: str | None
    baseline: int
    poh: int
    delta: int
    scan_history: list[ScanEventOut]
    status: str
    status_label: str
    status_tone: str
    submitted_at: datetime
    committed_at: datetime | None


class ReportListResponse(BaseModel):
    rows: list[ReportEntryOut]
    total: int


class EntryCommitResultOut(BaseModel):
    entry_id: str
    barcode: str
    result: Literal["committed", "noop", "skipped", "failed", "not_found"]
    delta: int | None = None
    error_code: str | None = None
    message: str | None = None


class ReportCommitResponse(BaseModel):
    results: list[EntryCommitResultOut]
    rows: list[ReportEntryOut]
