from app.pdv.db.models import AuditEvent


class AuditRepository:
    def __init__(self, db):
        self.db = db

    def create(self, event: AuditEvent) -> AuditEvent:
        """Persist one event in its own commit, after the business write."""
        self.db.add(event)
        self.db.commit()
        return event
