import logging
from dataclasses import dataclass
from datetime import datetime

from app.countdesk.core.context import RequestContext
from app.countdesk.db.models import AuditEvent
from app.countdesk.repos.audit import AuditRepository

logger = logging.getLogger("countdesk.audit")


@dataclass
class AuditEventPayload:
    actor: str
    trace_id: str | None
    action: str
    entity_type: str
    entity_id: str | None
    before: dict | None = None
    after: dict | None = None
    metadata: dict | None = None
    result: str = "success"

    @classmethod
    def for_context(cls, context: RequestContext, **kwargs) -> "AuditEventPayload":
        return cls(actor=context.actor, trace_id=context.trace_id, **kwargs)


class AuditService:
    """Best-effort audit logging.

    Failures are logged and swallowed so an audit outage never fails a count.
    """

    def __init__(self, db):
        self.repo = AuditRepository(db)

    def record_event(self, payload: AuditEventPayload) -> None:
        try:
            self.repo.add(
                AuditEvent(
                    trace_id=payload.trace_id,
                    actor=payload.actor,
                    action=payload.action,
                    entity_type=payload.entity_type,
                    entity_id=payload.entity_id,
                    before_payload=payload.before,
                    after_payload=payload.after,
                    event_metadata=payload.metadata,
                    result=payload.result,
                    created_at=datetime.utcnow(),
                )
            )
        except Exception:
            self.repo.db.rollback()
            logger.exception(
                "Failed to write audit event",
                extra={"action": payload.action, "trace_id": payload.trace_id, "entity_id": payload.entity_id},
            )
