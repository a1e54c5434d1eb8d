from __future__ import annotations

from contextlib import contextmanager
import uuid

import pytest
from fastapi.testclient import TestClient

import routes.admin_notifications as admin_notifications
from app.notifications.model import NotificationEntry
from main import create_app
from settings import settings
from tests.conftest import NOW

ADMIN = {"X-Admin-Key": "admin-secret"}


@pytest.fixture()
def client(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_KEY", "admin-secret", raising=False)

    @contextmanager
    def fake_conn():
        yield object()

    monkeypatch.setattr(admin_notifications, "get_conn", fake_conn)
    return TestClient(create_app(), raise_server_exceptions=False)


def _entry(**kwargs) -> NotificationEntry:
    return NotificationEntry(
        transfer_id=uuid.uuid4(),
        url="https://regulator.example/hook",
        next_attempt_at=NOW,
        created_at=NOW,
        updated_at=NOW,
        **kwargs,
    )


def test_requires_admin_key(client):
    r = client.get("/v1/admin/notifications")
    assert r.status_code == 403, r.text
    assert r.json()["detail"] == "ADMIN_REQUIRED"

    r = client.get("/v1/admin/notifications", headers={"X-Admin-Key": "wrong"})
    assert r.status_code == 403, r.text


def test_disabled_without_configured_key(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_KEY", "", raising=False)
    r = client.get("/v1/admin/notifications", headers=ADMIN)
    assert r.status_code == 403, r.text
    assert r.json()["detail"] == "ADMIN_DISABLED"


def test_list_passes_filter(client, monkeypatch):
    seen = {}

    def fake_list(conn, *, status=None, limit=50):
        seen.update(status=status, limit=limit)
        return [_entry(status="failed", attempts=2, response_status_code=500)]

    monkeypatch.setattr(admin_notifications, "list_entries", fake_list)

    r = client.get("/v1/admin/notifications?status=failed&limit=5", headers=ADMIN)
    assert r.status_code == 200, r.text
    body = r.json()
    assert seen == {"status": "failed", "limit": 5}
    assert body["count"] == 1
    assert body["notifications"][0]["attempts"] == 2
    assert body["notifications"][0]["dead_letter"] is False


def test_list_rejects_unknown_status(client):
    r = client.get("/v1/admin/notifications?status=bogus", headers=ADMIN)
    assert r.status_code == 422, r.text


def test_dead_letters(client, monkeypatch):
    monkeypatch.setattr(
        admin_notifications,
        "list_dead_letters",
        lambda conn, *, limit=50: [_entry(status="failed", attempts=5, last_attempt_at=NOW)],
    )

    r = client.get("/v1/admin/notifications/dead-letters", headers=ADMIN)
    assert r.status_code == 200, r.text
    assert r.json()["notifications"][0]["dead_letter"] is True


def test_summary(client, monkeypatch):
    monkeypatch.setattr(
        admin_notifications,
        "summarize",
        lambda conn, *, now: {"pending": 1, "sent": 4, "retrying": 2, "dead_letter": 1, "due": 2},
    )

    r = client.get("/v1/admin/notifications/summary", headers=ADMIN)
    assert r.status_code == 200, r.text
    assert r.json() == {"pending": 1, "sent": 4, "retrying": 2, "dead_letter": 1, "due": 2}
