from typing import Any

from sqlalchemy.orm import Session

from mangashelf.models.audit_log import AuditLog


class AuditService:
    """Admin action trail. Flushes only; the caller's commit makes the entry durable with the action."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def log(
        self,
        actor_type: str,
        actor_id: str | None,
        action: str,
        entity_type: str,
        entity_id: str | None,
        payload: dict[str, Any] | None = None,
    ) -> AuditLog:
        entry = AuditLog(
            actor_type=actor_type,
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            payload=payload or {},
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_recent(self, entity_type: str | None = None, limit: int = 50) -> list[AuditLog]:
        query = self.db.query(AuditLog)
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        return query.order_by(AuditLog.created_at.desc()).limit(limit).all()
