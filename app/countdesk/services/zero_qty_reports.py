from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from app.countdesk.core.context import RequestContext, build_request_context
from app.countdesk.core.error_catalog import AppError, ErrorCatalog
from app.countdesk.core.logging import log_json
from app.countdesk.db.models import ZeroQtyReportEntry
from app.countdesk.gateways.base import GatewayError
from app.countdesk.repos.locations import LocationRepository
from app.countdesk.repos.reports import ReportQueryFilters, ReportRepository
from app.countdesk.services.audit import AuditEventPayload, AuditService
from app.countdesk.services.inventory_commit import CatalogItemNotFound, InventoryCommitter
from app.countdesk.services.lifecycle import ReportStatus
from app.countdesk.services.scan_history import CONFIRMED, ScanEvent, dump_history, interpret

logger = logging.getLogger("countdesk.reports")


@dataclass(frozen=True)
class ReportEntryDraft:
    barcode: str
    location: str
    baseline: int
    history: tuple[ScanEvent, ...] = field(default_factory=tuple)
    name: str | None = None
    department: str | None = None


@dataclass
class EntryCommitResult:
    entry_id: str
    barcode: str
    result: str
    delta: int | None = None
    error_code: str | None = None
    message: str | None = None


class ZeroQtyReportService:
    """Submission and commit of ad hoc zero-quantity corrections.

    Entries are stored in ``reviewing`` with a POH recomputed on the server
    from the submitted scan history, then committed one at a time. A failed
    commit leaves the entry in ``reviewing`` so it can be retried.
    """

    def __init__(
        self,
        db,
        *,
        committer: InventoryCommitter | None = None,
        context: RequestContext | None = None,
    ):
        self.db = db
        self.repo = ReportRepository(db)
        self.locations = LocationRepository(db)
        self.committer = committer
        self.context = context or build_request_context(actor=None, trace_id="")
        self.audit = AuditService(db)

    def _audit(self, action: str, entity_id: str | None, **kwargs) -> None:
        self.audit.record_event(
            AuditEventPayload.for_context(
                self.context,
                action=action,
                entity_type="zero_qty_report",
                entity_id=entity_id,
                **kwargs,
            )
        )

    def submit(self, drafts: Sequence[ReportEntryDraft]) -> list[ZeroQtyReportEntry]:
        if not drafts:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "at least one entry is required"})
        now = datetime.utcnow()
        entries: list[ZeroQtyReportEntry] = []
        for index, draft in enumerate(drafts):
            poh = interpret(draft.baseline, draft.history)
            if poh is None:
                raise AppError(
                    ErrorCatalog.VALIDATION_ERROR,
                    details={"message": "entry has no scans", "index": index, "barcode": draft.barcode},
                )
            if draft.history[0].kind == CONFIRMED:
                # confirming an item with no count never creates an entry
                raise AppError(
                    ErrorCatalog.VALIDATION_ERROR,
                    details={"message": "entry starts with a confirmation", "index": index, "barcode": draft.barcode},
                )
            entries.append(
                ZeroQtyReportEntry(
                    barcode=draft.barcode,
                    name=draft.name,
                    department=draft.department,
                    location=draft.location,
                    external_location_id=self.locations.external_id_for(draft.location),
                    baseline=draft.baseline,
                    poh=poh,
                    scan_history=dump_history(draft.history),
                    status=ReportStatus.REVIEWING.value,
                    submitted_at=now,
                )
            )
        self.repo.add_all(entries)
        self.db.commit()
        for entry in entries:
            self._audit(
                "report.submit",
                str(entry.id),
                after={"barcode": entry.barcode, "baseline": entry.baseline, "poh": entry.poh},
            )
        log_json(logger, {"event": "zero_qty_submitted", "trace_id": self.context.trace_id, "entries": len(entries)})
        return entries

    def _commit_entry(self, entry_id) -> EntryCommitResult:
        entry = self.repo.get(entry_id, for_update=True)
        if entry is None:
            return EntryCommitResult(entry_id=str(entry_id), barcode="", result="not_found")
        if entry.status != ReportStatus.REVIEWING.value:
            barcode = entry.barcode
            self.db.rollback()
            return EntryCommitResult(entry_id=str(entry_id), barcode=barcode, result="skipped")

        barcode = entry.barcode
        location_id = entry.external_location_id or self.locations.external_id_for(entry.location)
        delta = entry.poh - entry.baseline
        try:
            receipt = self.committer.commit(barcode, location_id, delta, source="zero_qty")
        except CatalogItemNotFound as exc:
            self.db.rollback()
            code = ErrorCatalog.CATALOG_ITEM_NOT_FOUND if location_id else ErrorCatalog.LOCATION_NOT_MAPPED
            result = EntryCommitResult(str(entry_id), barcode, "failed", delta, code.code, str(exc))
        except GatewayError as exc:
            self.db.rollback()
            result = EntryCommitResult(
                str(entry_id), barcode, "failed", delta, ErrorCatalog.EXTERNAL_SYSTEM_ERROR.code, exc.message
            )
        else:
            entry.external_location_id = location_id
            entry.status = ReportStatus.COMMITTED.value
            entry.committed_at = datetime.utcnow()
            self.db.commit()
            result = EntryCommitResult(str(entry_id), barcode, "committed" if receipt.applied else "noop", delta)

        self._audit(
            "report.commit",
            str(entry_id),
            metadata={"barcode": barcode, "delta": delta, "error_code": result.error_code},
            result="failure" if result.result == "failed" else "success",
        )
        return result

    def commit(self, entry_ids: Sequence) -> list[EntryCommitResult]:
        if not entry_ids:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "at least one id is required"})
        if self.committer is None:
            raise AppError(ErrorCatalog.EXTERNAL_SYSTEM_ERROR, details={"message": "no inventory gateway configured"})
        results = [self._commit_entry(entry_id) for entry_id in dict.fromkeys(entry_ids)]
        log_json(
            logger,
            {
                "event": "zero_qty_commit_finished",
                "trace_id": self.context.trace_id,
                "requested": len(results),
                "failed": sum(1 for result in results if result.result == "failed"),
            },
        )
        return results

    def commit_one(self, entry_id) -> EntryCommitResult:
        if self.repo.get(entry_id) is None:
            raise AppError(ErrorCatalog.REPORT_NOT_FOUND, details={"entry_id": str(entry_id)})
        return self.commit([entry_id])[0]

    def archive(self, entry_ids: Sequence) -> list[ZeroQtyReportEntry]:
        archived: list[ZeroQtyReportEntry] = []
        for entry in self.repo.get_many(entry_ids):
            if entry.status == ReportStatus.ARCHIVED.value:
                continue
            entry.status = ReportStatus.ARCHIVED.value
            archived.append(entry)
        self.db.commit()
        for entry in archived:
            self._audit("report.archive", str(entry.id))
        return archived

    def delete(self, entry_ids: Sequence) -> int:
        entries = self.repo.get_many(entry_ids)
        removed = [str(entry.id) for entry in entries]
        for entry in entries:
            self.db.delete(entry)
        self.db.commit()
        for entry_id in removed:
            self._audit("report.delete", entry_id)
        return len(removed)

    def list_entries(self, filters: ReportQueryFilters) -> list[ZeroQtyReportEntry]:
        return self.repo.list_entries(filters)
