"""Audit API routes — security event history for administrators."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.domain.models.audit_log import AuditEventType
from app.domain.models.user import Role, User
from app.domain.schemas.audit import AuditLogRead
from app.infrastructure.repositories.audit_log_repository import SQLAlchemyAuditLogRepository
from app.interfaces.api.deps import rate_limit, require_role
from app.interfaces.deps import get_audit_log_repository

router = APIRouter(tags=["Audit"])


@router.get("/audit-logs", response_model=list[AuditLogRead], dependencies=[Depends(rate_limit("api"))])
def list_audit_logs(
    user_id: Optional[int] = None,
    event_type: Optional[AuditEventType] = None,
    limit: int = Query(100, ge=1, le=500),
    admin: User = Depends(require_role(Role.ADMIN)),
    repo: SQLAlchemyAuditLogRepository = Depends(get_audit_log_repository),
):
    """Most recent security events first."""
    return [AuditLogRead.model_validate(e) for e in repo.list_recent(user_id, event_type, limit)]
