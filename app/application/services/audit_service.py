"""Audit service — persists security events and forwards alerts to a webhook."""

import asyncio
from typing import Any, Iterable, Optional

import httpx
import structlog
from starlette.concurrency import run_in_threadpool

from app.core.security import RequestContext
from app.domain.models.audit_log import AuditEventType, AuditLog
from app.infrastructure.repositories.audit_log_repository import SQLAlchemyAuditLogRepository

logger = structlog.get_logger(__name__)

_WARN_EVENTS = {
    AuditEventType.LOGIN_FAILURE,
    AuditEventType.ACCOUNT_LOCKOUT,
    AuditEventType.REFRESH_TOKEN_REUSE,
    AuditEventType.SESSION_CONTEXT_MISMATCH,
}


class SecurityAlertNotifier:
    """Best-effort webhook forwarding of selected audit events.

    ``dispatch`` schedules the POST on the running loop and returns at once,
    so alerts also go out for requests that end in an error response.
    Webhook failures are logged, never raised.
    """

    def __init__(
        self,
        webhook_url: str,
        alert_events: Iterable[str],
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url
        self.alert_events = {e.upper() for e in alert_events}
        self.timeout = timeout
        self._transport = transport
        self._pending: set[asyncio.Task] = set()

    def should_notify(self, event_type: AuditEventType) -> bool:
        return bool(self.webhook_url) and event_type.value in self.alert_events

    @staticmethod
    def build_payload(entry: AuditLog) -> dict:
        event_type = entry.type.value if isinstance(entry.type, AuditEventType) else str(entry.type)
        return {
            "text": f"Security Event: {event_type} for user {entry.user_id or 'unknown'}\nIP: {entry.ip_address}",
            "event": {
                "id": entry.id,
                "type": event_type,
                "userId": entry.user_id,
                "ipAddress": entry.ip_address,
                "userAgentHash": entry.user_agent_hash,
                "metadata": entry.event_metadata or {},
            },
        }

    async def notify(self, payload: dict) -> bool:
        """POST the payload; returns whether the webhook accepted it."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.webhook_url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Security alert webhook failed", url=self.webhook_url, error=str(e))
            return False
        return True

    def dispatch(self, payload: dict) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self.notify(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for in-flight alerts (used on shutdown)."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)


class AuditLogWriter:
    def __init__(self, repo: SQLAlchemyAuditLogRepository, notifier: Optional[SecurityAlertNotifier] = None):
        self.repo = repo
        self.notifier = notifier

    async def record(
        self,
        event_type: AuditEventType,
        context: RequestContext,
        user_id: Optional[int] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> AuditLog:
        entry = await run_in_threadpool(
            self.repo.create,
            {
                "user_id": user_id,
                "type": event_type,
                "ip_address": context.ip,
                "user_agent_hash": context.user_agent_hash,
                "event_metadata": metadata or {},
            },
        )
        log = logger.warning if event_type in _WARN_EVENTS else logger.info
        log("Security event", event_type=event_type.value, user_id=user_id, ip=context.ip)

        if self.notifier is not None and self.notifier.should_notify(event_type):
            self.notifier.dispatch(self.notifier.build_payload(entry))
        return entry
