from sqlalchemy import select

from app.countdesk.db.models import IdempotencyRecord


class IdempotencyRepository:
    """Records are unique per (endpoint, method, key); there is no tenant dimension."""

    def __init__(self, db):
        self.db = db

    def get_by_key(self, *, endpoint: str, method: str, idempotency_key: str) -> IdempotencyRecord | None:
        return self.db.scalars(
            select(IdempotencyRecord).filter_by(endpoint=endpoint, method=method, idempotency_key=idempotency_key)
        ).first()

    def save(self, record: IdempotencyRecord) -> IdempotencyRecord:
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record
