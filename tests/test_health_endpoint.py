from __future__ import annotations

import logging

from fastapi.testclient import TestClient

import routes.health as health
from main import create_app


def _client():
    return TestClient(create_app(), raise_server_exceptions=False)


def test_healthz_reports_db(monkeypatch):
    monkeypatch.setattr(health, "_check_db", lambda: (False, "OperationalError: down"))

    r = _client().get("/healthz")
    assert r.status_code == 200, r.text
    data = r.json()
    assert data.get("ok") is True
    assert data.get("db_ok") is False


def test_readyz_ok(monkeypatch):
    monkeypatch.setattr(health, "_check_db", lambda: (True, None))
    monkeypatch.setattr(health, "_check_ledger", lambda: (True, None))

    r = _client().get("/readyz")
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["ready"] is True
    assert data["dependencies"] == {"database": "ok", "ledger_api": "ok"}
    assert data["migration_revision"] == "0002_regulator_notifications"


def test_readyz_unavailable_when_ledger_down(monkeypatch):
    monkeypatch.setattr(health, "_check_db", lambda: (True, None))
    monkeypatch.setattr(health, "_check_ledger", lambda: (False, "ledger client: health check returned non-200 status: 502"))

    r = _client().get("/readyz")
    assert r.status_code == 503, r.text
    data = r.json()
    assert data["ready"] is False
    assert data["dependencies"]["ledger_api"] == "error"


def test_request_id_echoed_and_logged(monkeypatch, caplog):
    monkeypatch.setattr(health, "_check_db", lambda: (True, None))
    caplog.set_level(logging.INFO, logger="settlement.http_access")

    r = _client().get("/healthz", headers={"X-Request-Id": "client-request-id"})

    assert r.headers.get("X-Request-Id") == "client-request-id"
    assert any(
        "request_id=client-request-id" in rec.message and "path=/healthz" in rec.message and "status=200" in rec.message
        for rec in caplog.records
    )
