from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from uuid import UUID
from datetime import datetime

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"

TERMINAL_STATUSES = (COMPLETED, FAILED)
IN_FLIGHT_STATUSES = (PENDING, PROCESSING)


@dataclass
class Transfer:
    id: UUID
    status: str
    amount: Decimal
    created_at: datetime
    external_ref: Optional[str] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def has_external_ref(self) -> bool:
        return bool((self.external_ref or "").strip())
