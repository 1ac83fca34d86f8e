from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from app.countdesk.core.config import settings
from app.countdesk.core.context import RequestContext, build_request_context
from app.countdesk.core.error_catalog import AppError, ErrorCatalog
from app.countdesk.core.logging import log_json
from app.countdesk.db.models import CountingTask, TaskItem
from app.countdesk.gateways.base import GatewayError, InventoryGateway
from app.countdesk.gateways.retry import call_with_backoff
from app.countdesk.repos.locations import LocationRepository
from app.countdesk.repos.tasks import TaskQueryFilters, TaskRepository, TaskSummaryRow
from app.countdesk.services.audit import AuditEventPayload, AuditService
from app.countdesk.services.inventory_commit import CatalogItemNotFound, InventoryCommitter
from app.countdesk.services.lifecycle import (
    COMMITTABLE_STATUSES,
    SCANNABLE_STATUSES,
    TaskStatus,
    ensure_status_in,
    ensure_transition,
)
from app.countdesk.services.scan_history import ScanEvent, append_event, dump_history, load_history, reconcile
from app.countdesk.services.task_numbering import allocate_many

logger = logging.getLogger("countdesk.tasks")


@dataclass(frozen=True)
class NewTaskItem:
    barcode: str
    name: str | None = None


@dataclass
class SubmitOutcome:
    task: CountingTask
    unscanned_count: int
    auto_committed: bool


@dataclass
class ItemCommitResult:
    item_id: str
    barcode: str
    result: str
    delta: int | None = None
    error_code: str | None = None
    message: str | None = None


@dataclass
class CommitOutcome:
    task: CountingTask
    results: list[ItemCommitResult] = field(default_factory=list)


def make_note(text: str, *, now: datetime | None = None) -> dict:
    return {"text": text, "created_at": (now or datetime.utcnow()).isoformat()}


def is_commit_eligible(item: TaskItem) -> bool:
    return (
        not item.committed
        and not item.is_exact_match
        and item.computed_quantity is not None
        and item.baseline is not None
    )


def _task_snapshot(task: CountingTask) -> dict:
    return {"task_no": task.task_no, "status": task.status, "location": task.location}


class CountingTaskService:
    def __init__(
        self,
        db,
        *,
        gateway: InventoryGateway | None = None,
        committer: InventoryCommitter | None = None,
        context: RequestContext | None = None,
    ):
        self.db = db
        self.repo = TaskRepository(db)
        self.locations = LocationRepository(db)
        self.gateway = gateway
        self.committer = committer or (InventoryCommitter(gateway) if gateway is not None else None)
        self.context = context or build_request_context(actor=None, trace_id="")
        self.audit = AuditService(db)

    def _audit(self, action: str, entity_id: str | None, **kwargs) -> None:
        self.audit.record_event(
            AuditEventPayload.for_context(
                self.context,
                action=action,
                entity_type="counting_task",
                entity_id=entity_id,
                **kwargs,
            )
        )

    def _log(self, event: str, **fields) -> None:
        log_json(logger, {"event": event, "trace_id": self.context.trace_id, "actor": self.context.actor, **fields})

    def _require_task(self, task_id, *, for_update: bool = False) -> CountingTask:
        task = self.repo.get(task_id, for_update=for_update)
        if task is None:
            raise AppError(ErrorCatalog.TASK_NOT_FOUND, details={"task_id": str(task_id)})
        return task

    def _require_item(self, task_id, item_id, *, for_update: bool = False) -> TaskItem:
        item = self.repo.get_item(task_id, item_id, for_update=for_update)
        if item is None:
            raise AppError(ErrorCatalog.TASK_ITEM_NOT_FOUND, details={"task_id": str(task_id), "item_id": str(item_id)})
        return item

    def _external_location_id(self, task: CountingTask) -> str | None:
        if task.external_location_id:
            return task.external_location_id
        return self.locations.external_id_for(task.location)

    # creation

    def create(
        self,
        *,
        department: str,
        locations: Sequence[str],
        items: Sequence[NewTaskItem],
        filter_summary: str | None = None,
        notes: Sequence[str] = (),
        publish: bool = False,
    ) -> list[CountingTask]:
        department = (department or "").strip()
        if not department:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "department is required"})
        targets = list(dict.fromkeys(location.strip() for location in locations if location and location.strip()))
        if not targets:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "at least one location is required"})
        lines = [item for item in items if item.barcode and item.barcode.strip()]
        if not lines or len(lines) != len(items):
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "at least one item is required and every item needs a barcode"},
            )

        status = TaskStatus.COUNTING if publish else TaskStatus.DRAFT
        now = datetime.utcnow()
        note_rows = [make_note(text.strip(), now=now) for text in notes if text and text.strip()]
        created: list[CountingTask] = []
        try:
            numbers = allocate_many(self.db, len(targets))
            for task_no, location in zip(numbers, targets):
                task = CountingTask(
                    task_no=task_no,
                    department=department,
                    location=location,
                    external_location_id=self.locations.external_id_for(location),
                    status=status.value,
                    filter_summary=filter_summary,
                    notes=list(note_rows),
                    created_at=now,
                    updated_at=now,
                )
                task.items = [
                    TaskItem(
                        position=position,
                        barcode=line.barcode.strip(),
                        name=line.name,
                        scan_history=[],
                        updated_at=now,
                    )
                    for position, line in enumerate(lines)
                ]
                self.repo.add(task)
                created.append(task)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        for task in created:
            self._audit("task.create", str(task.id), after=_task_snapshot(task), metadata={"items": len(lines)})
        self._log(
            "tasks_created",
            task_numbers=[task.task_no for task in created],
            department=department,
            items=len(lines),
            status=status.value,
        )
        return created

    def publish(self, task_id) -> CountingTask:
        task = self._require_task(task_id, for_update=True)
        before = _task_snapshot(task)
        ensure_transition(task.status, TaskStatus.COUNTING)
        task.status = TaskStatus.COUNTING.value
        task.updated_at = datetime.utcnow()
        self.db.commit()
        self._audit("task.publish", str(task.id), before=before, after=_task_snapshot(task))
        return task

    # scanning

    def _read_baseline(self, task: CountingTask, item: TaskItem) -> int:
        if self.gateway is None:
            raise AppError(ErrorCatalog.EXTERNAL_SYSTEM_ERROR, details={"message": "no inventory gateway configured"})
        location_id = self._external_location_id(task)
        if not location_id:
            raise AppError(ErrorCatalog.LOCATION_NOT_MAPPED, details={"location": task.location})
        retry = {"max_attempts": settings.GATEWAY_MAX_ATTEMPTS, "backoff_seconds": settings.GATEWAY_BACKOFF_SECONDS}
        try:
            catalog_item = call_with_backoff("resolve_item", lambda: self.gateway.resolve_item(item.barcode), **retry)
            if catalog_item is None:
                raise AppError(ErrorCatalog.CATALOG_ITEM_NOT_FOUND, details={"barcode": item.barcode})
            return call_with_backoff(
                "read_stock",
                lambda: self.gateway.read_stock(catalog_item.inventory_item_id, location_id),
                **retry,
            )
        except GatewayError as exc:
            raise AppError(
                ErrorCatalog.EXTERNAL_SYSTEM_ERROR,
                details={"message": exc.message, **exc.details},
            ) from exc

    def append_scan(
        self,
        task_id,
        item_id,
        event: ScanEvent,
        *,
        baseline: int | None = None,
        expected_version: int | None = None,
    ) -> TaskItem:
        task = self._require_task(task_id)
        ensure_status_in(task.status, SCANNABLE_STATUSES, action="scan")
        item = self._require_item(task_id, item_id)
        if baseline is None:
            baseline = self._read_baseline(task, item)

        try:
            task = self._require_task(task_id, for_update=True)
            ensure_status_in(task.status, SCANNABLE_STATUSES, action="scan")
            item = self._require_item(task_id, item_id, for_update=True)
            history = load_history(item.scan_history)
            if expected_version is not None and expected_version != len(history):
                raise AppError(
                    ErrorCatalog.STALE_SCAN,
                    details={"expected_version": expected_version, "current_version": len(history)},
                )
            reconciliation = reconcile(baseline, append_event(history, event))
            now = datetime.utcnow()
            item.baseline = baseline
            item.scan_history = dump_history(reconciliation.history)
            item.computed_quantity = reconciliation.quantity
            item.is_exact_match = reconciliation.exact_match
            item.updated_at = now
            task.updated_at = now
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self._audit(
            "task.scan",
            str(task_id),
            after={
                "item_id": str(item.id),
                "barcode": item.barcode,
                "computed_quantity": item.computed_quantity,
                "is_exact_match": item.is_exact_match,
            },
            metadata={"kind": event.kind, "value": event.value, "version": len(item.scan_history)},
        )
        self._log(
            "task_item_scanned",
            task_id=str(task_id),
            barcode=item.barcode,
            kind=event.kind,
            baseline=baseline,
            computed_quantity=item.computed_quantity,
        )
        return item

    # review and commit

    def submit(self, task_id) -> SubmitOutcome:
        task = self._require_task(task_id, for_update=True)
        before = _task_snapshot(task)
        ensure_transition(task.status, TaskStatus.REVIEWING)
        counts = self.repo.item_counts(task.id)
        target = TaskStatus.REVIEWING if counts.eligible_ids else TaskStatus.AUTO_COMMITTED
        task.status = target.value
        task.updated_at = datetime.utcnow()
        self.db.commit()
        self._audit(
            "task.submit",
            str(task.id),
            before=before,
            after=_task_snapshot(task),
            metadata={"unscanned_count": counts.unscanned_count, "eligible_count": len(counts.eligible_ids)},
        )
        self._log("task_submitted", task_no=task.task_no, status=task.status, unscanned_count=counts.unscanned_count)
        return SubmitOutcome(
            task=task,
            unscanned_count=counts.unscanned_count,
            auto_committed=target == TaskStatus.AUTO_COMMITTED,
        )

    def _commit_item(self, task_id, item_id, location_id: str | None) -> ItemCommitResult:
        item = self.repo.get_item(task_id, item_id, for_update=True)
        if item is None or not is_commit_eligible(item):
            barcode = item.barcode if item is not None else ""
            self.db.rollback()
            return ItemCommitResult(item_id=str(item_id), barcode=barcode, result="skipped")

        barcode = item.barcode
        delta = item.computed_quantity - item.baseline
        try:
            receipt = self.committer.commit(barcode, location_id, delta, source="task")
        except CatalogItemNotFound as exc:
            self.db.rollback()
            code = ErrorCatalog.CATALOG_ITEM_NOT_FOUND if location_id else ErrorCatalog.LOCATION_NOT_MAPPED
            return ItemCommitResult(str(item_id), barcode, "failed", delta, code.code, str(exc))
        except GatewayError as exc:
            self.db.rollback()
            return ItemCommitResult(
                str(item_id), barcode, "failed", delta, ErrorCatalog.EXTERNAL_SYSTEM_ERROR.code, exc.message
            )

        item.committed = True
        item.committed_at = datetime.utcnow()
        item.updated_at = item.committed_at
        self.db.commit()
        return ItemCommitResult(str(item_id), barcode, "committed" if receipt.applied else "noop", delta)

    def commit_items(self, task_id, item_ids: Sequence | None = None) -> CommitOutcome:
        task = self._require_task(task_id)
        ensure_status_in(task.status, COMMITTABLE_STATUSES, action="commit")
        if self.committer is None:
            raise AppError(ErrorCatalog.EXTERNAL_SYSTEM_ERROR, details={"message": "no inventory gateway configured"})

        location_id = self._external_location_id(task)
        if location_id and not task.external_location_id:
            task.external_location_id = location_id
        if item_ids is None:
            targets = self.repo.eligible_item_ids(task.id)
        else:
            targets = list(dict.fromkeys(item_ids))
            for item_id in targets:
                self._require_item(task.id, item_id)
        self.db.commit()

        results = [self._commit_item(task_id, item_id, location_id) for item_id in targets]

        task = self._require_task(task_id, for_update=True)
        before = _task_snapshot(task)
        # a count still in progress keeps its unscanned items open
        if task.status == TaskStatus.REVIEWING.value and not self.repo.eligible_item_ids(task.id):
            task.status = TaskStatus.COMMITTED.value
        task.updated_at = datetime.utcnow()
        self.db.commit()

        failed = [result for result in results if result.result == "failed"]
        self._audit(
            "task.commit",
            str(task.id),
            before=before,
            after=_task_snapshot(task),
            metadata={
                "requested": len(targets),
                "committed": sum(1 for result in results if result.result in {"committed", "noop"}),
                "failed": [{"item_id": result.item_id, "error_code": result.error_code} for result in failed],
            },
            result="partial" if failed else "success",
        )
        self._log(
            "task_commit_finished",
            task_no=task.task_no,
            status=task.status,
            requested=len(targets),
            failed=len(failed),
        )
        return CommitOutcome(task=self.get(task_id), results=results)

    # housekeeping

    def archive(self, task_ids: Sequence) -> list[CountingTask]:
        archived: list[CountingTask] = []
        for task in self.repo.get_many(task_ids):
            if task.status == TaskStatus.ARCHIVED.value:
                continue
            ensure_transition(task.status, TaskStatus.ARCHIVED)
            task.status = TaskStatus.ARCHIVED.value
            task.updated_at = datetime.utcnow()
            archived.append(task)
        self.db.commit()
        for task in archived:
            self._audit("task.archive", str(task.id), after=_task_snapshot(task))
        return archived

    def delete(self, task_ids: Sequence) -> int:
        tasks = self.repo.get_many(task_ids)
        snapshots = [(str(task.id), _task_snapshot(task)) for task in tasks]
        for task in tasks:
            self.db.delete(task)
        self.db.commit()
        for task_id, snapshot in snapshots:
            self._audit("task.delete", task_id, before=snapshot)
        return len(snapshots)

    def add_note(self, task_id, text: str) -> CountingTask:
        text = (text or "").strip()
        if not text:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "note text is required"})
        task = self._require_task(task_id, for_update=True)
        task.notes = [*(task.notes or []), make_note(text)]
        task.updated_at = datetime.utcnow()
        self.db.commit()
        self._audit("task.note.add", str(task.id), metadata={"index": len(task.notes) - 1})
        return task

    def delete_note(self, task_id, index: int) -> CountingTask:
        task = self._require_task(task_id, for_update=True)
        notes = list(task.notes or [])
        if index < 0 or index >= len(notes):
            self.db.rollback()
            raise AppError(ErrorCatalog.NOT_FOUND, details={"message": "note not found", "index": index})
        removed = notes.pop(index)
        task.notes = notes
        task.updated_at = datetime.utcnow()
        self.db.commit()
        self._audit("task.note.delete", str(task.id), before={"note": removed}, metadata={"index": index})
        return task

    # queries

    def get(self, task_id) -> CountingTask:
        task = self.repo.get_with_items(task_id)
        if task is None:
            raise AppError(ErrorCatalog.TASK_NOT_FOUND, details={"task_id": str(task_id)})
        return task

    def list_tasks(self, filters: TaskQueryFilters) -> list[TaskSummaryRow]:
        return self.repo.list_tasks(filters)
