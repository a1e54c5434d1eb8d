from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from app.transfers.model import Transfer

STATUS_PENDING = "pending"
STATUS_SENT = "sent"
STATUS_FAILED = "failed"

RETRYABLE_STATUSES = (STATUS_PENDING, STATUS_FAILED)

MAX_ATTEMPTS = 5


@dataclass
class NotificationEntry:
    """
    One obligation to tell the regulator about one transfer's terminal outcome.

    Rows are never deleted: an entry that used up MAX_ATTEMPTS stays behind
    as a dead-letter record.
    """

    transfer_id: UUID
    url: str
    next_attempt_at: datetime
    id: UUID = field(default_factory=uuid4)
    status: str = STATUS_PENDING
    attempts: int = 0
    last_attempt_at: Optional[datetime] = None
    response_status_code: Optional[int] = None
    response_body: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Terminal snapshot of the transfer, joined in by find_due
    transfer: Optional[Transfer] = None

    def is_due(self, now: datetime) -> bool:
        return (
            self.status in RETRYABLE_STATUSES
            and self.attempts < MAX_ATTEMPTS
            and self.next_attempt_at <= now
        )

    @property
    def is_dead_letter(self) -> bool:
        return self.status == STATUS_FAILED and self.attempts >= MAX_ATTEMPTS
