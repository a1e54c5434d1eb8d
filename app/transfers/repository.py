# app/transfers/repository.py
from __future__ import annotations

from typing import Any, Callable, Optional

from psycopg2.extras import RealDictCursor

from db import get_conn
from app.errors import StaleUpdateError
from app.transfers.model import Transfer
from app.transfers.state_machine import assert_completed_invariant

_TRANSFER_COLUMNS = """
  t.id,
  t.external_ref,
  t.status,
  t.amount,
  t.created_at,
  t.completed_at,
  t.failed_at,
  t.error_message
"""


def row_to_transfer(row: dict[str, Any], *, prefix: str = "") -> Transfer:
    return Transfer(
        id=row[f"{prefix}id"],
        external_ref=row.get(f"{prefix}external_ref"),
        status=(row.get(f"{prefix}status") or "").strip().lower(),
        amount=row[f"{prefix}amount"],
        created_at=row[f"{prefix}created_at"],
        completed_at=row.get(f"{prefix}completed_at"),
        failed_at=row.get(f"{prefix}failed_at"),
        error_message=row.get(f"{prefix}error_message"),
    )


# ==========================================================
# Reads
# ==========================================================

def load_reconciliation_candidates(conn, *, limit: int) -> list[Transfer]:
    """
    External transfers that have not reached a terminal status, oldest first.
    """
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            f"""
            SELECT {_TRANSFER_COLUMNS}
            FROM app.transfers t
            WHERE t.is_external = TRUE
              AND t.status IN ('pending', 'processing')
            ORDER BY t.created_at ASC
            LIMIT %s
            """,
            (limit,),
        )
        return [row_to_transfer(dict(row)) for row in cur.fetchall()]


# ==========================================================
# Updates
# ==========================================================

def update_transfer(conn, transfer: Transfer, *, from_status: Optional[str] = None) -> bool:
    """
    Persist the reconciliation-owned fields of a transfer.
    With from_status, the row is only touched if it still has that status.
    """
    assert_completed_invariant(transfer.status, transfer.completed_at)

    guard_sql = ""
    params: list[Any] = [
        transfer.status,
        transfer.external_ref,
        transfer.completed_at,
        transfer.failed_at,
        transfer.error_message,
        transfer.id,
    ]
    if from_status is not None:
        guard_sql = "AND status = %s"
        params.append(from_status)

    with conn.cursor() as cur:
        cur.execute(
            f"""
            UPDATE app.transfers
            SET
              status = %s,
              external_ref = COALESCE(%s, external_ref),
              completed_at = %s,
              failed_at = %s,
              error_message = %s,
              updated_at = now()
            WHERE id = %s
            {guard_sql}
            """,
            tuple(params),
        )
        return cur.rowcount == 1


class PgTransferStore:
    """
    Transfer Store backed by app.transfers.
    Each call runs in its own transaction so one row never holds up another.
    """

    def __init__(self, conn_factory: Callable | None = None):
        self._conn_factory = conn_factory or get_conn

    def load_reconciliation_candidates(self, limit: int) -> list[Transfer]:
        with self._conn_factory() as conn:
            return load_reconciliation_candidates(conn, limit=limit)

    def update_transfer(self, transfer: Transfer, *, from_status: Optional[str] = None) -> None:
        with self._conn_factory() as conn:
            if not update_transfer(conn, transfer, from_status=from_status):
                raise StaleUpdateError(
                    f"transfer {transfer.id} was not updated (expected status={from_status})"
                )
