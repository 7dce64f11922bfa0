"""
SQLAlchemy repository for the append-only audit log.
"""

from typing import List, Optional

from app.domain.models.audit_log import AuditEventType, AuditLog
from app.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemyAuditLogRepository(SQLAlchemyRepository[AuditLog]):

    def list_recent(
        self,
        user_id: Optional[int] = None,
        event_type: Optional[AuditEventType] = None,
        limit: int = 100,
    ) -> List[AuditLog]:
        query = self.db.query(AuditLog)
        if user_id is not None:
            query = query.filter(AuditLog.user_id == user_id)
        if event_type is not None:
            query = query.filter(AuditLog.type == event_type)
        return query.order_by(AuditLog.id.desc()).limit(limit).all()
