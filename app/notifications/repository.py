# app/notifications/repository.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional

from psycopg2.extras import RealDictCursor

from db import get_conn
from app.errors import NotificationQueueError, StaleUpdateError
from app.notifications.model import MAX_ATTEMPTS, NotificationEntry
from app.transfers.repository import row_to_transfer

_ENTRY_COLUMNS = """
  n.id,
  n.transfer_id,
  n.url,
  n.status,
  n.attempts,
  n.last_attempt_at,
  n.next_attempt_at,
  n.response_status_code,
  n.response_body,
  n.created_at,
  n.updated_at
"""

# Transfer snapshot, aliased so it can sit next to the entry columns
_TRANSFER_SNAPSHOT_COLUMNS = """
  t.id AS t_id,
  t.external_ref AS t_external_ref,
  t.status AS t_status,
  t.amount AS t_amount,
  t.created_at AS t_created_at,
  t.completed_at AS t_completed_at,
  t.failed_at AS t_failed_at,
  t.error_message AS t_error_message
"""


def _row_to_entry(row: dict[str, Any]) -> NotificationEntry:
    entry = NotificationEntry(
        id=row["id"],
        transfer_id=row["transfer_id"],
        url=row["url"],
        status=row["status"],
        attempts=int(row.get("attempts") or 0),
        last_attempt_at=row.get("last_attempt_at"),
        next_attempt_at=row["next_attempt_at"],
        response_status_code=row.get("response_status_code"),
        response_body=row.get("response_body"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )
    if row.get("t_id") is not None:
        entry.transfer = row_to_transfer(row, prefix="t_")
    return entry


# ==========================================================
# Writes
# ==========================================================

def insert_entry(conn, entry: NotificationEntry) -> bool:
    """
    Insert a queue entry. Returns False when the transfer already has one.
    """
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO app.regulator_notifications (
              id, transfer_id, url, status, attempts,
              last_attempt_at, next_attempt_at,
              response_status_code, response_body,
              created_at, updated_at
            )
            VALUES (
              %s, %s, %s, %s, %s,
              %s, COALESCE(%s, now()),
              %s, %s,
              now(), now()
            )
            ON CONFLICT (transfer_id) DO NOTHING
            """,
            (
                entry.id,
                entry.transfer_id,
                entry.url,
                entry.status,
                entry.attempts,
                entry.last_attempt_at,
                entry.next_attempt_at,
                entry.response_status_code,
                entry.response_body,
            ),
        )
        return cur.rowcount == 1


def update_entry(conn, entry: NotificationEntry, *, expected_attempts: Optional[int] = None) -> bool:
    """
    Save the dispatcher-owned fields. With expected_attempts the write only
    lands if nobody else recorded an attempt in between.
    """
    guard_sql = ""
    params: list[Any] = [
        entry.status,
        entry.attempts,
        entry.last_attempt_at,
        entry.next_attempt_at,
        entry.response_status_code,
        entry.response_body,
        entry.id,
    ]
    if expected_attempts is not None:
        guard_sql = "AND attempts = %s"
        params.append(expected_attempts)

    with conn.cursor() as cur:
        cur.execute(
            f"""
            UPDATE app.regulator_notifications
            SET
              status = %s,
              attempts = %s,
              last_attempt_at = %s,
              next_attempt_at = %s,
              response_status_code = %s,
              response_body = %s,
              updated_at = now()
            WHERE id = %s
            {guard_sql}
            """,
            tuple(params),
        )
        return cur.rowcount == 1


# ==========================================================
# Reads
# ==========================================================

def find_due(conn, *, limit: int, now: datetime) -> list[NotificationEntry]:
    """
    Entries eligible for a delivery attempt right now, longest-overdue first.
    Exhausted entries (attempts >= MAX_ATTEMPTS) are never returned.
    """
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            f"""
            SELECT {_ENTRY_COLUMNS}, {_TRANSFER_SNAPSHOT_COLUMNS}
            FROM app.regulator_notifications n
            JOIN app.transfers t ON t.id = n.transfer_id
            WHERE n.status IN ('pending', 'failed')
              AND n.next_attempt_at <= %s
              AND n.attempts < %s
            ORDER BY n.next_attempt_at ASC
            LIMIT %s
            """,
            (now, MAX_ATTEMPTS, limit),
        )
        return [_row_to_entry(dict(row)) for row in cur.fetchall()]


def list_entries(conn, *, status: Optional[str] = None, limit: int = 50) -> list[NotificationEntry]:
    limit = max(1, min(int(limit or 50), 200))

    where_sql = ""
    params: list[Any] = []
    if status:
        where_sql = "WHERE n.status = %s"
        params.append(status)
    params.append(limit)

    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            f"""
            SELECT {_ENTRY_COLUMNS}
            FROM app.regulator_notifications n
            {where_sql}
            ORDER BY n.created_at DESC
            LIMIT %s
            """,
            tuple(params),
        )
        return [_row_to_entry(dict(row)) for row in cur.fetchall()]


def list_dead_letters(conn, *, limit: int = 50) -> list[NotificationEntry]:
    limit = max(1, min(int(limit or 50), 200))
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            f"""
            SELECT {_ENTRY_COLUMNS}
            FROM app.regulator_notifications n
            WHERE n.status = 'failed'
              AND n.attempts >= %s
            ORDER BY n.last_attempt_at DESC NULLS LAST
            LIMIT %s
            """,
            (MAX_ATTEMPTS, limit),
        )
        return [_row_to_entry(dict(row)) for row in cur.fetchall()]


def summarize(conn, *, now: datetime) -> dict[str, int]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            """
            SELECT
              COUNT(*) FILTER (WHERE status = 'pending')::int AS pending,
              COUNT(*) FILTER (WHERE status = 'sent')::int AS sent,
              COUNT(*) FILTER (WHERE status = 'failed' AND attempts < %s)::int AS retrying,
              COUNT(*) FILTER (WHERE status = 'failed' AND attempts >= %s)::int AS dead_letter,
              COUNT(*) FILTER (
                WHERE status IN ('pending', 'failed')
                  AND attempts < %s
                  AND next_attempt_at <= %s
              )::int AS due
            FROM app.regulator_notifications
            """,
            (MAX_ATTEMPTS, MAX_ATTEMPTS, MAX_ATTEMPTS, now),
        )
        row = cur.fetchone() or {}
        return {k: int(row.get(k) or 0) for k in ("pending", "sent", "retrying", "dead_letter", "due")}


class PgNotificationStore:
    """
    Queue Store backed by app.regulator_notifications.
    """

    def __init__(self, conn_factory: Callable | None = None):
        self._conn_factory = conn_factory or get_conn

    def create_entry(self, entry: NotificationEntry) -> bool:
        try:
            with self._conn_factory() as conn:
                return insert_entry(conn, entry)
        except Exception as exc:
            raise NotificationQueueError(
                f"failed to queue regulator notification for transfer {entry.transfer_id}: {exc}"
            ) from exc

    def update_entry(self, entry: NotificationEntry, *, expected_attempts: Optional[int] = None) -> None:
        with self._conn_factory() as conn:
            if not update_entry(conn, entry, expected_attempts=expected_attempts):
                raise StaleUpdateError(
                    f"notification {entry.id} was not updated (expected attempts={expected_attempts})"
                )

    def find_due(self, limit: int, now: datetime) -> list[NotificationEntry]:
        with self._conn_factory() as conn:
            return find_due(conn, limit=limit, now=now)
