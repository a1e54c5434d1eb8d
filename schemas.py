# schemas.py
from __future__ import annotations

from pydantic import BaseModel
from uuid import UUID
from datetime import datetime
from typing import Optional, List, Literal

NotificationStatus = Literal["pending", "sent", "failed"]


# -------- REGULATOR NOTIFICATIONS --------
class NotificationOut(BaseModel):
    id: UUID
    transfer_id: UUID
    url: str
    status: NotificationStatus
    attempts: int
    last_attempt_at: Optional[datetime] = None
    next_attempt_at: datetime
    response_status_code: Optional[int] = None
    response_body: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    dead_letter: bool = False


class NotificationListResponse(BaseModel):
    notifications: List[NotificationOut]
    count: int
    limit: int


class NotificationSummary(BaseModel):
    pending: int
    sent: int
    retrying: int
    dead_letter: int
    due: int
