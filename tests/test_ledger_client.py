from __future__ import annotations

import httpx
import pytest

from app.providers.http import HttpClient
from app.providers.ledger import LedgerClient, LedgerClientError
from app.workers.deadline import Deadline, DeadlineExceeded

BASE = "https://ledger.example/api/v1"


def _client(handler):
    http = HttpClient(timeout_s=10, transport=httpx.MockTransport(handler))
    return LedgerClient(base_url=BASE + "/", api_key="ledger-key", timeout_s=10, http=http)


def test_get_transfer_status_normalizes_status():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("x-api-key")
        return httpx.Response(200, json={"id": "nw-1", "status": " Completed "})

    result = _client(handler).get_transfer_status("nw-1", deadline=Deadline(60))

    assert result.status == "completed"
    assert result.external_ref == "nw-1"
    assert seen["url"] == f"{BASE}/transfers/nw-1"
    assert seen["key"] == "ledger-key"


def test_non_200_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    with pytest.raises(LedgerClientError, match="non-200"):
        _client(handler).get_transfer_status("nw-1", deadline=Deadline(60))


def test_undecodable_body_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>")

    with pytest.raises(LedgerClientError, match="decode"):
        _client(handler).get_transfer_status("nw-1", deadline=Deadline(60))


def test_missing_status_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": "nw-1"})

    with pytest.raises(LedgerClientError):
        _client(handler).get_transfer_status("nw-1", deadline=Deadline(60))


def test_transport_error_is_wrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(LedgerClientError, match="request failed"):
        _client(handler).get_transfer_status("nw-1", deadline=Deadline(60))


def test_cancelled_deadline_makes_no_call():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"status": "completed"})

    deadline = Deadline(60)
    deadline.cancel()

    with pytest.raises(DeadlineExceeded):
        _client(handler).get_transfer_status("nw-1", deadline=deadline)
    assert calls == []
