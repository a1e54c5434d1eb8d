from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from app.transfers.model import FAILED, Transfer
from app.transfers.state_machine import assert_transition
from app.workers.deadline import Deadline


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransferWriter(Protocol):
    def update_transfer(self, transfer: Transfer, *, from_status: Optional[str] = None) -> None: ...


class NotificationQueue(Protocol):
    def queue_transfer_notification(self, transfer: Transfer): ...


class TransferFailureHandler:
    """
    Moves a transfer to failed and queues the regulator notification.
    Reversal of funds belongs to the accounting side and is not done here.
    """

    def __init__(
        self,
        *,
        transfers: TransferWriter,
        notifications: NotificationQueue,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.transfers = transfers
        self.notifications = notifications
        self.logger = logger or logging.getLogger("settlement.failures")
        self.clock = clock

    def handle_failed_transfer(self, deadline: Deadline, transfer: Transfer, reason: str) -> Transfer:
        deadline.check()

        if transfer.status == FAILED:
            self.logger.info("transfer already failed transfer_id=%s", transfer.id)
            return transfer

        assert_transition(transfer.status, FAILED)

        failed = replace(
            transfer,
            status=FAILED,
            failed_at=self.clock(),
            completed_at=None,
            error_message=reason,
        )
        self.transfers.update_transfer(failed, from_status=transfer.status)
        self.logger.warning("transfer marked failed transfer_id=%s reason=%s", transfer.id, reason)

        self.notifications.queue_transfer_notification(failed)
        return failed
