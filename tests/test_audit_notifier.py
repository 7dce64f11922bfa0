"""Tests for audit persistence and the security alert webhook."""

import json

import httpx
import pytest

from app.application.services import audit_service
from app.application.services.audit_service import AuditLogWriter, SecurityAlertNotifier
from app.core.security import RequestContext
from app.domain.models.audit_log import AuditEventType, AuditLog
from app.infrastructure.repositories.audit_log_repository import SQLAlchemyAuditLogRepository

WEBHOOK = "https://hooks.example.test/security"
ALERTS = ["ACCOUNT_LOCKOUT", "SESSION_CONTEXT_MISMATCH", "REFRESH_TOKEN_REUSE"]


class RecordingLogger:
    """Stands in for a structlog logger; keeps the same call signature."""

    def __init__(self):
        self.calls = []

    def _record(self, level, event=None, *args, **kw):
        self.calls.append((level, event, kw))

    def info(self, event=None, *args, **kw):
        self._record("info", event, *args, **kw)

    def warning(self, event=None, *args, **kw):
        self._record("warning", event, *args, **kw)

    def error(self, event=None, *args, **kw):
        self._record("error", event, *args, **kw)


@pytest.fixture
def recorded(monkeypatch):
    recorder = RecordingLogger()
    monkeypatch.setattr(audit_service, "logger", recorder)
    return recorder.calls


def recording_transport(received, status_code=200):
    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(status_code)

    return httpx.MockTransport(handler)


def test_should_notify_only_selected_events():
    notifier = SecurityAlertNotifier(WEBHOOK, ALERTS)
    assert notifier.should_notify(AuditEventType.ACCOUNT_LOCKOUT)
    assert not notifier.should_notify(AuditEventType.LOGIN_SUCCESS)
    assert not SecurityAlertNotifier("", ALERTS).should_notify(AuditEventType.ACCOUNT_LOCKOUT)


async def test_notify_posts_payload():
    received = []
    notifier = SecurityAlertNotifier(WEBHOOK, ALERTS, transport=recording_transport(received))
    assert await notifier.notify({"text": "hello"}) is True
    assert received == [{"text": "hello"}]


async def test_webhook_failures_are_not_raised():
    notifier = SecurityAlertNotifier(WEBHOOK, ALERTS, transport=recording_transport([], status_code=500))
    assert await notifier.notify({"text": "hello"}) is False

    def unreachable(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    notifier = SecurityAlertNotifier(WEBHOOK, ALERTS, transport=httpx.MockTransport(unreachable))
    assert await notifier.notify({"text": "hello"}) is False


async def test_writer_persists_and_alerts(db):
    received = []
    notifier = SecurityAlertNotifier(WEBHOOK, ALERTS, transport=recording_transport(received))
    writer = AuditLogWriter(SQLAlchemyAuditLogRepository(db, AuditLog), notifier)
    context = RequestContext.build("203.0.113.9", "Mozilla/5.0")

    entry = await writer.record(AuditEventType.ACCOUNT_LOCKOUT, context, None, {"email": "a@example.com"})
    await writer.record(AuditEventType.LOGIN_SUCCESS, context, None)
    await notifier.drain()

    assert entry.ip_address == "203.0.113.9"
    assert entry.user_agent_hash == context.user_agent_hash
    assert entry.event_metadata == {"email": "a@example.com"}
    repo = SQLAlchemyAuditLogRepository(db, AuditLog)
    assert len(repo.list_recent()) == 2
    assert [e.id for e in repo.list_recent(event_type=AuditEventType.ACCOUNT_LOCKOUT)] == [entry.id]

    [payload] = received
    assert payload["event"]["type"] == "ACCOUNT_LOCKOUT"
    assert payload["event"]["ipAddress"] == "203.0.113.9"
    assert payload["text"].startswith("Security Event: ACCOUNT_LOCKOUT for user unknown")


async def test_writer_without_notifier(db):
    writer = AuditLogWriter(SQLAlchemyAuditLogRepository(db, AuditLog))
    context = RequestContext.build("127.0.0.1", None)
    entry = await writer.record(AuditEventType.LOGOUT, context, None)
    assert entry.type == AuditEventType.LOGOUT
    assert entry.event_metadata == {}


async def test_security_events_are_logged_with_their_type(db, recorded):
    writer = AuditLogWriter(SQLAlchemyAuditLogRepository(db, AuditLog))
    context = RequestContext.build("198.51.100.4", "Mozilla/5.0")

    await writer.record(AuditEventType.REGISTER, context, None)
    await writer.record(AuditEventType.LOGIN_FAILURE, context, None, {"email": "a@example.com"})

    assert recorded == [
        ("info", "Security event", {"event_type": "REGISTER", "user_id": None, "ip": "198.51.100.4"}),
        ("warning", "Security event", {"event_type": "LOGIN_FAILURE", "user_id": None, "ip": "198.51.100.4"}),
    ]


async def test_webhook_failure_is_logged(recorded):
    notifier = SecurityAlertNotifier(WEBHOOK, ALERTS, transport=recording_transport([], status_code=503))
    assert await notifier.notify({"text": "hello"}) is False

    [(level, event, kw)] = recorded
    assert (level, event, kw["url"]) == ("error", "Security alert webhook failed", WEBHOOK)
    assert "503" in kw["error"]
