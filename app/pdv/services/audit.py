import logging
from dataclasses import dataclass

from app.pdv.db.models import AuditEvent, utcnow
from app.pdv.repos.audit import AuditRepository

logger = logging.getLogger(__name__)


@dataclass
class AuditEventPayload:
    user_id: str | None
    trace_id: str | None
    actor: str
    action: str
    entity_type: str
    entity_id: str | None
    before: dict | None
    after: dict | None
    metadata: dict | None
    result: str
    actor_role: str | None = None

    def to_event(self) -> AuditEvent:
        metadata = {"actor_role": self.actor_role, **(self.metadata or {})}
        return AuditEvent(
            user_id=self.user_id,
            trace_id=self.trace_id,
            actor=self.actor,
            action=self.action,
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            before_payload=self.before,
            after_payload=self.after,
            event_metadata=metadata,
            result=self.result,
            created_at=utcnow(),
        )


class AuditService:
    """Best-effort audit trail.

    Callers record events after their own transaction has committed, so a
    failed audit write rolls back only itself and is reported in the log.
    """

    def __init__(self, db):
        self.repo = AuditRepository(db)

    def record_event(self, payload: AuditEventPayload) -> None:
        try:
            self.repo.create(payload.to_event())
        except Exception:
            self.repo.db.rollback()
            logger.exception(
                "audit write failed",
                extra={"action": payload.action, "trace_id": payload.trace_id, "entity_id": payload.entity_id},
            )
