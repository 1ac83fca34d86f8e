from __future__ import annotations

from dataclasses import asdict
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from app.countdesk.core.context import RequestContext
from app.countdesk.core.deps import get_gateway, require_request_context
from app.countdesk.db.models import CountingTask, TaskItem
from app.countdesk.db.session import get_db
from app.countdesk.gateways.base import InventoryGateway
from app.countdesk.repos.tasks import TaskQueryFilters, TaskSummaryRow
from app.countdesk.schemas.errors import ERROR_RESPONSES
from app.countdesk.schemas.tasks import (
    BulkIdsRequest,
    BulkResultResponse,
    ItemCommitResultOut,
    NoteCreateRequest,
    NoteOut,
    ScanRequest,
    ScanResponse,
    SubmitResponse,
    TaskCommitRequest,
    TaskCommitResponse,
    TaskCounts,
    TaskCreateRequest,
    TaskCreateResponse,
    TaskDetail,
    TaskItemOut,
    TaskListResponse,
    TaskSummary,
)
from app.countdesk.services.counting_tasks import CountingTaskService, NewTaskItem
from app.countdesk.services.idempotency import start_for_request
from app.countdesk.services.lifecycle import expand_status_filter, task_status_display
from app.countdesk.services.scan_history import load_history

router = APIRouter(responses=ERROR_RESPONSES)


def _notes(task: CountingTask) -> list[NoteOut]:
    return [
        NoteOut(index=index, text=note.get("text", ""), created_at=note.get("created_at"))
        for index, note in enumerate(task.notes or [])
    ]


def _item_out(item: TaskItem) -> TaskItemOut:
    history = load_history(item.scan_history)
    delta = None
    if item.computed_quantity is not None and item.baseline is not None:
        delta = item.computed_quantity - item.baseline
    return TaskItemOut(
        id=item.id,
        position=item.position,
        barcode=item.barcode,
        name=item.name,
        baseline=item.baseline,
        scan_history=[event.to_json() for event in history],
        version=len(history),
        computed_quantity=item.computed_quantity,
        is_exact_match=item.is_exact_match,
        delta=delta,
        committed=item.committed,
        committed_at=item.committed_at,
    )


def _counts_from_items(items: list[TaskItem]) -> TaskCounts:
    processed = [item for item in items if item.baseline is not None]
    return TaskCounts(
        total_count=len(items),
        processed_count=len(processed),
        inaccurate_count=sum(
            1 for item in processed if item.computed_quantity is not None and not item.is_exact_match
        ),
    )


def _summary_fields(task: CountingTask, counts: TaskCounts) -> dict:
    display = task_status_display(task.status)
    return {
        "id": task.id,
        "task_no": task.task_no,
        "department": task.department,
        "location": task.location,
        "external_location_id": task.external_location_id,
        "status": task.status,
        "status_label": display.label,
        "status_tone": display.tone,
        "filter_summary": task.filter_summary,
        "notes": _notes(task),
        "created_at": task.created_at,
        "updated_at": task.updated_at,
        "counts": counts,
    }


def _task_detail(task: CountingTask) -> TaskDetail:
    items = list(task.items)
    return TaskDetail(**_summary_fields(task, _counts_from_items(items)), items=[_item_out(item) for item in items])


def _task_summary(row: TaskSummaryRow) -> TaskSummary:
    counts = TaskCounts(
        total_count=row.total_count,
        processed_count=row.processed_count,
        inaccurate_count=row.inaccurate_count,
    )
    return TaskSummary(**_summary_fields(row.task, counts))


def _service(db, gateway: InventoryGateway, context: RequestContext) -> CountingTaskService:
    return CountingTaskService(db, gateway=gateway, context=context)


@router.post("/tasks", response_model=TaskCreateResponse, status_code=201)
def create_tasks(
    request: Request,
    payload: TaskCreateRequest,
    context: RequestContext = Depends(require_request_context),
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    idempotency, replay = start_for_request(db, request, payload.model_dump(mode="json"))
    if replay:
        return replay

    service = _service(db, gateway, context)
    tasks = service.create(
        department=payload.department,
        locations=payload.locations,
        items=[NewTaskItem(barcode=item.barcode, name=item.name) for item in payload.items],
        filter_summary=payload.filter_summary,
        notes=payload.notes,
        publish=payload.publish,
    )
    response = TaskCreateResponse(tasks=[_task_detail(service.get(task.id)) for task in tasks])
    if idempotency:
        idempotency.record_success(status_code=201, response_body=response.model_dump(mode="json"))
    return response


@router.get("/tasks", response_model=TaskListResponse)
def list_tasks(
    department: str | None = None,
    location: list[str] | None = Query(default=None),
    status: list[str] | None = Query(default=None),
    date: Literal["today", "7days", "30days"] | None = None,
    context: RequestContext = Depends(require_request_context),
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    filters = TaskQueryFilters(
        department=department,
        locations=tuple(location or ()),
        statuses=tuple(expand_status_filter(status)) if status else (),
        date_window=date,
    )
    rows = _service(db, gateway, context).list_tasks(filters)
    return TaskListResponse(rows=[_task_summary(row) for row in rows], total=len(rows))


@router.patch("/tasks/archive", response_model=BulkResultResponse)
def archive_tasks(
    payload: BulkIdsRequest,
    context: RequestContext = Depends(require_request_context),
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    archived = _service(db, gateway, context).archive(payload.ids)
    return BulkResultResponse(affected=len(archived), ids=[task.id for task in archived])


@router.delete("/tasks", response_model=BulkResultResponse)
def delete_tasks(
    payload: BulkIdsRequest,
    context: RequestContext = Depends(require_request_context),
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    deleted = _service(db, gateway, context).delete(payload.ids)
    return BulkResultResponse(affected=deleted)


@router.get("/tasks/{task_id}", response_model=TaskDetail)
def get_task(
    task_id: UUID,
    context: RequestContext = Depends(require_request_context),
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    return _task_detail(_service(db, gateway, context).get(task_id))


@router.patch("/tasks/{task_id}/publish", response_model=TaskDetail)
def publish_task(
    task_id: UUID,
    context: RequestContext = Depends(require_request_context),
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    service = _service(db, gateway, context)
    service.publish(task_id)
    return _task_detail(service.get(task_id))


@router.patch("/tasks/{task_id}/items/{item_id}/scan", response_model=ScanResponse)
def scan_item(
    task_id: UUID,
    item_id: UUID,
    payload: ScanRequest,
    context: RequestContext = Depends(require_request_context),
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    item = _service(db, gateway, context).append_scan(
        task_id,
        item_id,
        payload.event.to_event(),
        baseline=payload.baseline,
        expected_version=payload.expected_version,
    )
    return ScanResponse(task_id=task_id, item=_item_out(item))


@router.patch("/tasks/{task_id}/submit", response_model=SubmitResponse)
def submit_task(
    task_id: UUID,
    context: RequestContext = Depends(require_request_context),
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    service = _service(db, gateway, context)
    outcome = service.submit(task_id)
    return SubmitResponse(
        task=_task_detail(service.get(task_id)),
        unscanned_count=outcome.unscanned_count,
        auto_committed=outcome.auto_committed,
    )


@router.patch("/tasks/{task_id}/commit", response_model=TaskCommitResponse)
def commit_task(
    request: Request,
    task_id: UUID,
    payload: TaskCommitRequest | None = None,
    context: RequestContext = Depends(require_request_context),
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    payload = payload or TaskCommitRequest()
    idempotency, replay = start_for_request(
        db, request, {"task_id": str(task_id), **payload.model_dump(mode="json")}
    )
    if replay:
        return replay

    outcome = _service(db, gateway, context).commit_items(task_id, payload.item_ids)
    response = TaskCommitResponse(
        task=_task_detail(outcome.task),
        results=[ItemCommitResultOut(**asdict(result)) for result in outcome.results],
    )
    if idempotency:
        idempotency.record_success(status_code=200, response_body=response.model_dump(mode="json"))
    return response


@router.patch("/tasks/{task_id}/notes", response_model=TaskDetail)
def add_task_note(
    task_id: UUID,
    payload: NoteCreateRequest,
    context: RequestContext = Depends(require_request_context),
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    service = _service(db, gateway, context)
    service.add_note(task_id, payload.text)
    return _task_detail(service.get(task_id))


@router.delete("/tasks/{task_id}/notes/{index}", response_model=TaskDetail)
def delete_task_note(
    task_id: UUID,
    index: int,
    context: RequestContext = Depends(require_request_context),
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    service = _service(db, gateway, context)
    service.delete_note(task_id, index)
    return _task_detail(service.get(task_id))
