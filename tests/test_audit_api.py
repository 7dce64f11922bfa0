"""Integration tests for the administrator audit log view."""

import pytest
from conftest import auth_headers, login, register

from app.domain.models.user import Role, User


@pytest.fixture
def admin(client, db):
    assert register(client, "admin@example.com").status_code == 201
    db.query(User).filter(User.email == "admin@example.com").update({"role": Role.ADMIN})
    db.commit()
    response = login(client, "admin@example.com")
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['accessToken']}"}


class TestAuditLogs:
    def test_lists_newest_first(self, client, admin):
        auth_headers(client, "buyer@example.com")
        assert login(client, "buyer@example.com", password="Wr0ng!Pass").status_code == 401

        response = client.get("/audit-logs", headers=admin)
        assert response.status_code == 200
        events = response.json()
        assert [e["type"] for e in events] == [
            "LOGIN_FAILURE",
            "LOGIN_SUCCESS",
            "REGISTER",
            "LOGIN_SUCCESS",
            "REGISTER",
        ]
        latest = events[0]
        assert latest["metadata"] == {"email": "buyer@example.com"}
        assert set(latest) >= {"id", "userId", "type", "ipAddress", "userAgentHash", "metadata", "createdAt"}
        assert events[-1]["metadata"] == {"role": "BUYER"}

    def test_filters(self, client, admin):
        auth_headers(client, "buyer@example.com")
        other_id = client.get("/me", headers=auth_headers(client, "other@example.com")).json()["id"]

        registrations = client.get("/audit-logs", params={"event_type": "REGISTER"}, headers=admin).json()
        assert len(registrations) == 3
        assert {e["type"] for e in registrations} == {"REGISTER"}

        own = client.get("/audit-logs", params={"user_id": other_id}, headers=admin).json()
        assert [e["type"] for e in own] == ["LOGIN_SUCCESS", "REGISTER"]
        assert {e["userId"] for e in own} == {other_id}

        assert len(client.get("/audit-logs", params={"limit": 2}, headers=admin).json()) == 2

    def test_invalid_query(self, client, admin):
        assert client.get("/audit-logs", params={"limit": 0}, headers=admin).status_code == 400
        assert client.get("/audit-logs", params={"event_type": "NOPE"}, headers=admin).status_code == 400

    @pytest.mark.parametrize("role", [None, "SELLER"])
    def test_requires_admin(self, client, role):
        headers = auth_headers(client, "user@example.com", role=role)
        response = client.get("/audit-logs", headers=headers)
        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Requires role ADMIN"

    def test_requires_authentication(self, client):
        assert client.get("/audit-logs").status_code == 401
