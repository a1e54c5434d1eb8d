# routes/admin_notifications.py
from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from db import get_conn
from deps.admin import require_admin
from schemas import NotificationListResponse, NotificationOut, NotificationSummary
from app.notifications.model import NotificationEntry
from app.notifications.repository import list_dead_letters, list_entries, summarize

router = APIRouter(prefix="/v1/admin/notifications", tags=["admin_notifications"])


def _to_out(entry: NotificationEntry) -> NotificationOut:
    return NotificationOut(
        id=entry.id,
        transfer_id=entry.transfer_id,
        url=entry.url,
        status=entry.status,
        attempts=entry.attempts,
        last_attempt_at=entry.last_attempt_at,
        next_attempt_at=entry.next_attempt_at,
        response_status_code=entry.response_status_code,
        response_body=entry.response_body,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
        dead_letter=entry.is_dead_letter,
    )


@router.get("", response_model=NotificationListResponse)
def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    status: str | None = Query(None, pattern="^(pending|sent|failed)$"),
    _admin=Depends(require_admin),
):
    with get_conn() as conn:
        entries = list_entries(conn, status=status, limit=limit)
    return {"notifications": [_to_out(e) for e in entries], "count": len(entries), "limit": limit}


@router.get("/dead-letters", response_model=NotificationListResponse)
def list_dead_letter_notifications(
    limit: int = Query(50, ge=1, le=200),
    _admin=Depends(require_admin),
):
    with get_conn() as conn:
        entries = list_dead_letters(conn, limit=limit)
    return {"notifications": [_to_out(e) for e in entries], "count": len(entries), "limit": limit}


@router.get("/summary", response_model=NotificationSummary)
def notification_summary(_admin=Depends(require_admin)):
    with get_conn() as conn:
        return summarize(conn, now=datetime.now(timezone.utc))
