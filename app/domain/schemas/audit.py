"""Pydantic schemas for the audit log view."""

from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from app.domain.models.audit_log import AuditEventType
from app.domain.schemas.base import APIModel


class AuditLogRead(APIModel):
    id: int
    user_id: Optional[int] = None
    type: AuditEventType
    ip_address: Optional[str] = None
    user_agent_hash: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="event_metadata")
    created_at: Optional[datetime] = None
