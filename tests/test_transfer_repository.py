from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
import uuid

import pytest

from app.errors import StaleUpdateError
from app.transfers.repository import PgTransferStore, load_reconciliation_candidates, update_transfer
from tests.conftest import NOW, make_transfer
from tests.fakes import RecordingConn


def _factory(conn):
    class _Ctx:
        def __enter__(self):
            return conn

        def __exit__(self, exc_type, exc, tb):
            return False

    return lambda: _Ctx()


def test_candidates_query_filters_external_in_flight_oldest_first():
    tid = uuid.uuid4()
    conn = RecordingConn(
        rows=[
            {
                "id": tid,
                "external_ref": "nw-1",
                "status": "PENDING",
                "amount": Decimal("10.00"),
                "created_at": datetime(2026, 10, 1, tzinfo=timezone.utc),
                "completed_at": None,
                "failed_at": None,
                "error_message": None,
            }
        ]
    )

    rows = load_reconciliation_candidates(conn, limit=100)

    sql, params = conn.executed[0]
    assert "t.is_external = TRUE" in sql
    assert "t.status IN ('pending', 'processing')" in sql
    assert "ORDER BY t.created_at ASC" in sql
    assert params == (100,)
    assert rows[0].id == tid
    assert rows[0].status == "pending"


def test_update_is_guarded_by_previous_status():
    conn = RecordingConn(rowcount=1)
    t = make_transfer(status="completed", completed_at=NOW)

    assert update_transfer(conn, t, from_status="processing") is True

    sql, params = conn.executed[0]
    assert "AND status = %s" in sql
    assert params[0] == "completed"
    assert params[-1] == "processing"


def test_update_rejects_completed_without_timestamp():
    conn = RecordingConn()
    t = make_transfer(status="completed")

    with pytest.raises(ValueError):
        update_transfer(conn, t)
    assert conn.executed == []


def test_store_raises_stale_update_when_no_row_matched():
    conn = RecordingConn(rowcount=0)
    store = PgTransferStore(conn_factory=_factory(conn))

    with pytest.raises(StaleUpdateError):
        store.update_transfer(make_transfer(status="processing"), from_status="pending")
