from __future__ import annotations

from dataclasses import asdict
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from app.countdesk.core.context import RequestContext
from app.countdesk.core.deps import get_gateway, require_request_context
from app.countdesk.core.error_catalog import AppError, ErrorCatalog
from app.countdesk.db.models import ZeroQtyReportEntry
from app.countdesk.db.session import get_db
from app.countdesk.gateways.base import InventoryGateway
from app.countdesk.repos.reports import ReportQueryFilters
from app.countdesk.schemas.errors import ERROR_RESPONSES
from app.countdesk.schemas.reports import (
    EntryCommitResultOut,
    ReportCommitResponse,
    ReportEntryOut,
    ReportListResponse,
    ReportSubmitRequest,
)
from app.countdesk.schemas.tasks import BulkIdsRequest, BulkResultResponse
from app.countdesk.services.idempotency import start_for_request
from app.countdesk.services.inventory_commit import InventoryCommitter
from app.countdesk.services.lifecycle import ReportStatus, report_status_display
from app.countdesk.services.zero_qty_reports import ReportEntryDraft, ZeroQtyReportService

router = APIRouter(responses=ERROR_RESPONSES)


def _entry_out(entry: ZeroQtyReportEntry) -> ReportEntryOut:
    display = report_status_display(entry.status)
    return ReportEntryOut(
        id=entry.id,
        barcode=entry.barcode,
        name=entry.name,
        department=entry.department,
        location=entry.location,
        external_location_id=entry.external_location_id,
        baseline=entry.baseline,
        poh=entry.poh,
        delta=entry.poh - entry.baseline,
        scan_history=entry.scan_history or [],
        status=entry.status,
        status_label=display.label,
        status_tone=display.tone,
        submitted_at=entry.submitted_at,
        committed_at=entry.committed_at,
    )


def _service(db, gateway: InventoryGateway, context: RequestContext) -> ZeroQtyReportService:
    return ZeroQtyReportService(db, committer=InventoryCommitter(gateway), context=context)


def _statuses(values: list[str] | None) -> tuple[str, ...]:
    if not values:
        return ()
    try:
        return tuple(ReportStatus(value).value for value in values)
    except ValueError as exc:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": str(exc), "status": values}) from exc


def _commit_response(service: ZeroQtyReportService, results) -> ReportCommitResponse:
    entries = service.repo.get_many([result.entry_id for result in results if result.result != "not_found"])
    return ReportCommitResponse(
        results=[EntryCommitResultOut(**asdict(result)) for result in results],
        rows=[_entry_out(entry) for entry in entries],
    )


@router.get("/reports", response_model=ReportListResponse)
def list_reports(
    department: str | None = None,
    location: list[str] | None = Query(default=None),
    status: list[str] | None = Query(default=None),
    date: Literal["today", "7days", "30days"] | None = None,
    context: RequestContext = Depends(require_request_context),
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    filters = ReportQueryFilters(
        department=department,
        locations=tuple(location or ()),
        statuses=_statuses(status),
        date_window=date,
    )
    entries = _service(db, gateway, context).list_entries(filters)
    return ReportListResponse(rows=[_entry_out(entry) for entry in entries], total=len(entries))


@router.post("/reports/submit", response_model=ReportListResponse, status_code=201)
def submit_reports(
    request: Request,
    payload: ReportSubmitRequest,
    context: RequestContext = Depends(require_request_context),
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    idempotency, replay = start_for_request(db, request, payload.model_dump(mode="json"))
    if replay:
        return replay

    drafts = [
        ReportEntryDraft(
            barcode=entry.barcode,
            location=entry.location,
            baseline=entry.baseline,
            history=tuple(event.to_event() for event in entry.scan_history),
            name=entry.name,
            department=entry.department,
        )
        for entry in payload.entries
    ]
    entries = _service(db, gateway, context).submit(drafts)
    response = ReportListResponse(rows=[_entry_out(entry) for entry in entries], total=len(entries))
    if idempotency:
        idempotency.record_success(status_code=201, response_body=response.model_dump(mode="json"))
    return response


@router.patch("/reports/commit", response_model=ReportCommitResponse)
def commit_reports(
    request: Request,
    payload: BulkIdsRequest,
    context: RequestContext = Depends(require_request_context),
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    idempotency, replay = start_for_request(db, request, payload.model_dump(mode="json"))
    if replay:
        return replay

    service = _service(db, gateway, context)
    response = _commit_response(service, service.commit(payload.ids))
    if idempotency:
        idempotency.record_success(status_code=200, response_body=response.model_dump(mode="json"))
    return response


@router.patch("/reports/archive", response_model=BulkResultResponse)
def archive_reports(
    payload: BulkIdsRequest,
    context: RequestContext = Depends(require_request_context),
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    archived = _service(db, gateway, context).archive(payload.ids)
    return BulkResultResponse(affected=len(archived), ids=[entry.id for entry in archived])


@router.delete("/reports", response_model=BulkResultResponse)
def delete_reports(
    payload: BulkIdsRequest,
    context: RequestContext = Depends(require_request_context),
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    deleted = _service(db, gateway, context).delete(payload.ids)
    return BulkResultResponse(affected=deleted)


@router.patch("/reports/{entry_id}/commit", response_model=ReportCommitResponse)
def commit_report(
    request: Request,
    entry_id: UUID,
    context: RequestContext = Depends(require_request_context),
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    idempotency, replay = start_for_request(db, request, {"entry_id": str(entry_id)})
    if replay:
        return replay

    service = _service(db, gateway, context)
    response = _commit_response(service, [service.commit_one(entry_id)])
    if idempotency:
        idempotency.record_success(status_code=200, response_body=response.model_dump(mode="json"))
    return response
