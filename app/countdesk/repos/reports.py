from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select

from app.countdesk.db.models import ZeroQtyReportEntry
from app.countdesk.repos.filters import window_start


@dataclass(frozen=True)
class ReportQueryFilters:
    department: str | None = None
    locations: tuple[str, ...] = ()
    statuses: tuple[str, ...] = ()
    date_window: str | None = None
    now: datetime | None = None


class ReportRepository:
    def __init__(self, db):
        self.db = db

    def get(self, entry_id, *, for_update: bool = False) -> ZeroQtyReportEntry | None:
        stmt = select(ZeroQtyReportEntry).where(ZeroQtyReportEntry.id == entry_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalars().first()

    def get_many(self, entry_ids) -> list[ZeroQtyReportEntry]:
        if not entry_ids:
            return []
        stmt = (
            select(ZeroQtyReportEntry)
            .where(ZeroQtyReportEntry.id.in_(list(entry_ids)))
            .order_by(ZeroQtyReportEntry.submitted_at, ZeroQtyReportEntry.barcode)
        )
        return list(self.db.execute(stmt).scalars().all())

    def add_all(self, entries: list[ZeroQtyReportEntry]) -> list[ZeroQtyReportEntry]:
        self.db.add_all(entries)
        return entries

    def list_entries(self, filters: ReportQueryFilters) -> list[ZeroQtyReportEntry]:
        query = select(ZeroQtyReportEntry)
        if filters.department:
            query = query.where(ZeroQtyReportEntry.department == filters.department)
        if filters.locations:
            query = query.where(ZeroQtyReportEntry.location.in_(filters.locations))
        if filters.statuses:
            query = query.where(ZeroQtyReportEntry.status.in_(filters.statuses))
        since = window_start(filters.date_window, now=filters.now)
        if since is not None:
            query = query.where(ZeroQtyReportEntry.submitted_at >= since)
        query = query.order_by(ZeroQtyReportEntry.submitted_at.desc(), ZeroQtyReportEntry.barcode)
        return list(self.db.execute(query).scalars().all())
