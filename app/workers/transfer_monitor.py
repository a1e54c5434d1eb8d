# app/workers/transfer_monitor.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from app.errors import StaleUpdateError
from app.providers.base import LedgerClientProtocol
from app.transfers.model import COMPLETED, FAILED, PROCESSING, Transfer
from app.transfers.state_machine import InvalidTransition, assert_transition
from app.workers.deadline import Deadline, DeadlineExceeded
from services.metrics import increment_reconcile_outcome

MONITOR_BATCH_LIMIT = 100
STUCK_AFTER = timedelta(minutes=5)

REASON_NO_EXTERNAL_REF = "Transfer initiation failed; no external reference received."
REASON_FAILED_AT_PROVIDER = "Transfer failed at external provider."


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TransferStore(Protocol):
    def load_reconciliation_candidates(self, limit: int) -> list[Transfer]: ...
    def update_transfer(self, transfer: Transfer, *, from_status: Optional[str] = None) -> None: ...


class FailureHandler(Protocol):
    def handle_failed_transfer(self, deadline: Deadline, transfer: Transfer, reason: str): ...


class NotificationQueue(Protocol):
    def queue_transfer_notification(self, transfer: Transfer): ...


@dataclass
class MonitorSummary:
    loaded: int = 0
    outcomes: dict[str, int] = field(default_factory=dict)
    skipped: int = 0
    cancelled: bool = False

    def count(self, outcome: str) -> None:
        self.outcomes[outcome] = self.outcomes.get(outcome, 0) + 1

    def get(self, outcome: str) -> int:
        return self.outcomes.get(outcome, 0)


class TransferMonitor:
    """
    Reconciliation pass: polls the ledger for in-flight transfers and moves
    local state forward. Errors on one transfer are logged and the pass moves
    on; the transfer is simply looked at again on the next pass.
    """

    def __init__(
        self,
        *,
        transfers: TransferStore,
        ledger: LedgerClientProtocol,
        failure_handler: FailureHandler,
        notifications: NotificationQueue,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], datetime] = _now,
        batch_size: int = MONITOR_BATCH_LIMIT,
    ):
        self.transfers = transfers
        self.ledger = ledger
        self.failure_handler = failure_handler
        self.notifications = notifications
        self.logger = logger or logging.getLogger("settlement.monitor")
        self.clock = clock
        self.batch_size = batch_size

    def run_pass(self, deadline: Deadline) -> MonitorSummary:
        summary = MonitorSummary()
        self.logger.info("starting check for in-flight external transfers")

        try:
            deadline.check()
            candidates = self.transfers.load_reconciliation_candidates(self.batch_size)
        except DeadlineExceeded:
            summary.cancelled = True
            self.logger.warning("reconcile pass cancelled before loading transfers")
            return summary
        except Exception:
            self.logger.exception("failed to load in-flight external transfers")
            return summary

        summary.loaded = len(candidates)
        if not candidates:
            self.logger.info("no in-flight external transfers to monitor")
            return summary

        self.logger.info("found in-flight external transfers count=%s", len(candidates))

        for i, transfer in enumerate(candidates):
            try:
                outcome = self._reconcile(transfer, deadline)
            except DeadlineExceeded:
                summary.cancelled = True
                summary.skipped = len(candidates) - i
                self.logger.warning("reconcile pass stopped by deadline; left=%s", summary.skipped)
                break
            except Exception:
                outcome = "error"
                self.logger.exception("unexpected error reconciling transfer_id=%s", transfer.id)

            summary.count(outcome)
            increment_reconcile_outcome(outcome)

        self.logger.info("reconcile pass done loaded=%s outcomes=%s", summary.loaded, summary.outcomes)
        return summary

    def _reconcile(self, transfer: Transfer, deadline: Deadline) -> str:
        deadline.check()

        if not transfer.has_external_ref:
            if self.clock() - transfer.created_at > STUCK_AFTER:
                self.logger.warning("failing transfer that is missing external reference transfer_id=%s", transfer.id)
                return self._hand_to_failure_handler(transfer, deadline, REASON_NO_EXTERNAL_REF, "stuck_failed")
            return "initializing"

        self.logger.info(
            "checking status for external transfer transfer_id=%s external_ref=%s", transfer.id, transfer.external_ref
        )
        try:
            remote = self.ledger.get_transfer_status(transfer.external_ref, deadline=deadline)
        except DeadlineExceeded:
            raise
        except Exception as exc:
            self.logger.error(
                "failed to get transfer status from ledger transfer_id=%s external_ref=%s err=%s",
                transfer.id,
                transfer.external_ref,
                exc,
            )
            return "ledger_error"

        if remote.status == transfer.status:
            return "unchanged"

        self.logger.info(
            "status change detected for external transfer transfer_id=%s old_status=%s new_status=%s",
            transfer.id,
            transfer.status,
            remote.status,
        )

        if remote.status == COMPLETED:
            return self._mark_completed(transfer)
        if remote.status == FAILED:
            return self._hand_to_failure_handler(transfer, deadline, REASON_FAILED_AT_PROVIDER, "failed")
        if remote.status == PROCESSING:
            return self._persist(transfer, replace(transfer, status=PROCESSING), "processing")

        self.logger.warning(
            "unknown transfer status from ledger status=%s transfer_id=%s", remote.status, transfer.id
        )
        return "unknown_status"

    def _mark_completed(self, transfer: Transfer) -> str:
        completed = replace(transfer, status=COMPLETED, completed_at=self.clock())
        outcome = self._persist(transfer, completed, "completed")
        if outcome != "completed":
            return outcome

        try:
            self.notifications.queue_transfer_notification(completed)
        except Exception:
            self.logger.exception("failed to queue regulator notification transfer_id=%s", transfer.id)
            return "queue_error"
        return outcome

    def _persist(self, old: Transfer, new: Transfer, outcome: str) -> str:
        try:
            assert_transition(old.status, new.status)
        except InvalidTransition as exc:
            self.logger.warning("refusing transfer update transfer_id=%s: %s", old.id, exc)
            return "invalid_transition"

        try:
            self.transfers.update_transfer(new, from_status=old.status)
        except StaleUpdateError:
            self.logger.warning(
                "transfer changed by another runner; skipping transfer_id=%s expected_status=%s", old.id, old.status
            )
            return "stale_update"
        except Exception as exc:
            self.logger.error(
                "failed to update transfer status transfer_id=%s new_status=%s err=%s", old.id, new.status, exc
            )
            return "persist_error"
        return outcome

    def _hand_to_failure_handler(self, transfer: Transfer, deadline: Deadline, reason: str, outcome: str) -> str:
        try:
            self.failure_handler.handle_failed_transfer(deadline, transfer, reason)
        except DeadlineExceeded:
            raise
        except Exception as exc:
            self.logger.error("failed to handle failed transfer transfer_id=%s err=%s", transfer.id, exc)
            return "failure_handler_error"
        return outcome
