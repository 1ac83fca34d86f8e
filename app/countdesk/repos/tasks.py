from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import and_, case, false, func, select
from sqlalchemy.orm import selectinload

from app.countdesk.db.models import CountingTask, TaskItem
from app.countdesk.repos.filters import window_start


@dataclass(frozen=True)
class TaskQueryFilters:
    department: str | None = None
    locations: tuple[str, ...] = ()
    statuses: tuple[str, ...] = ()
    date_window: str | None = None
    now: datetime | None = None


@dataclass
class TaskSummaryRow:
    task: CountingTask
    total_count: int
    processed_count: int
    inaccurate_count: int


@dataclass
class ItemCounts:
    total_count: int = 0
    processed_count: int = 0
    inaccurate_count: int = 0
    unscanned_count: int = 0
    eligible_ids: list[uuid.UUID] = field(default_factory=list)


class TaskRepository:
    def __init__(self, db):
        self.db = db

    def get(self, task_id, *, for_update: bool = False) -> CountingTask | None:
        stmt = select(CountingTask).where(CountingTask.id == task_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalars().first()

    def get_with_items(self, task_id) -> CountingTask | None:
        stmt = select(CountingTask).options(selectinload(CountingTask.items)).where(CountingTask.id == task_id)
        return self.db.execute(stmt).scalars().first()

    def get_item(self, task_id, item_id, *, for_update: bool = False) -> TaskItem | None:
        stmt = select(TaskItem).where(TaskItem.id == item_id, TaskItem.task_id == task_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalars().first()

    def get_many(self, task_ids) -> list[CountingTask]:
        if not task_ids:
            return []
        stmt = select(CountingTask).where(CountingTask.id.in_(list(task_ids)))
        return list(self.db.execute(stmt).scalars().all())

    def add(self, task: CountingTask) -> CountingTask:
        self.db.add(task)
        return task

    def eligible_item_ids(self, task_id) -> list[uuid.UUID]:
        stmt = (
            select(TaskItem.id)
            .where(
                TaskItem.task_id == task_id,
                TaskItem.committed == false(),
                TaskItem.is_exact_match == false(),
                TaskItem.computed_quantity.is_not(None),
                TaskItem.baseline.is_not(None),
            )
            .order_by(TaskItem.position)
        )
        return list(self.db.execute(stmt).scalars().all())

    def item_counts(self, task_id) -> ItemCounts:
        items = self.db.execute(select(TaskItem).where(TaskItem.task_id == task_id)).scalars().all()
        counts = ItemCounts(total_count=len(items))
        for item in items:
            if item.baseline is not None:
                counts.processed_count += 1
            if not item.scan_history:
                counts.unscanned_count += 1
            if item.computed_quantity is not None and not item.is_exact_match:
                counts.inaccurate_count += 1
                if not item.committed and item.baseline is not None:
                    counts.eligible_ids.append(item.id)
        return counts

    def list_tasks(self, filters: TaskQueryFilters) -> list[TaskSummaryRow]:
        processed = TaskItem.baseline.is_not(None)
        inaccurate = and_(processed, TaskItem.is_exact_match == false(), TaskItem.computed_quantity.is_not(None))
        stats = (
            select(
                TaskItem.task_id.label("task_id"),
                func.count(TaskItem.id).label("total_count"),
                func.sum(case((processed, 1), else_=0)).label("processed_count"),
                func.sum(case((inaccurate, 1), else_=0)).label("inaccurate_count"),
            )
            .group_by(TaskItem.task_id)
            .subquery()
        )
        query = select(
            CountingTask,
            func.coalesce(stats.c.total_count, 0),
            func.coalesce(stats.c.processed_count, 0),
            func.coalesce(stats.c.inaccurate_count, 0),
        ).outerjoin(stats, stats.c.task_id == CountingTask.id)

        if filters.department:
            query = query.where(CountingTask.department == filters.department)
        if filters.locations:
            query = query.where(CountingTask.location.in_(filters.locations))
        if filters.statuses:
            query = query.where(CountingTask.status.in_(filters.statuses))
        since = window_start(filters.date_window, now=filters.now)
        if since is not None:
            query = query.where(CountingTask.created_at >= since)

        query = query.order_by(CountingTask.created_at.desc(), CountingTask.task_no.desc())
        return [
            TaskSummaryRow(
                task=task,
                total_count=int(total),
                processed_count=int(processed_count),
                inaccurate_count=int(inaccurate_count),
            )
            for task, total, processed_count, inaccurate_count in self.db.execute(query).all()
        ]
