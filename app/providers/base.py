# app/providers/base.py
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Protocol

if TYPE_CHECKING:
    from app.workers.deadline import Deadline


@dataclass(frozen=True)
class LedgerTransfer:
    external_ref: str
    # lower-cased as reported by the provider, e.g. "processing", "completed"
    status: str
    response: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class RegulatorResponse:
    status_code: int
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class LedgerClientProtocol(Protocol):
    def get_transfer_status(self, external_ref: str, *, deadline: "Deadline") -> LedgerTransfer: ...


class NotificationSink(Protocol):
    def send_transfer_notification(self, payload: dict[str, Any], *, deadline: "Deadline") -> RegulatorResponse: ...
