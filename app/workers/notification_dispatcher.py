# app/workers/notification_dispatcher.py
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from settings import settings
from app.errors import StaleUpdateError
from app.notifications.model import (
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SENT,
    NotificationEntry,
)
from app.notifications.payload import build_regulator_payload
from app.providers.base import NotificationSink
from app.providers.regulator import RegulatorDeliveryError
from app.transfers.model import Transfer
from app.workers.deadline import Deadline, DeadlineExceeded
from services.metrics import increment_notification_attempt, increment_notification_queued

DISPATCH_BATCH_LIMIT = 100
BASE_BACKOFF_SECONDS = 60
RESPONSE_BODY_LIMIT = 2000


def _now() -> datetime:
    return datetime.now(timezone.utc)


def next_attempt_at(attempts: int, now: datetime) -> datetime:
    # 1, 2, 4, 8, 16 minutes for attempts 1..5
    delay = BASE_BACKOFF_SECONDS << max(0, attempts - 1)
    return now + timedelta(seconds=delay)


class NotificationStore(Protocol):
    def create_entry(self, entry: NotificationEntry) -> bool: ...
    def update_entry(self, entry: NotificationEntry, *, expected_attempts: Optional[int] = None) -> None: ...
    def find_due(self, limit: int, now: datetime) -> list[NotificationEntry]: ...


@dataclass
class DispatchSummary:
    found: int = 0
    sent: int = 0
    failed: int = 0
    dead_lettered: int = 0
    persist_errors: int = 0
    stale_updates: int = 0
    skipped: int = 0
    cancelled: bool = False


class NotificationDispatcher:
    """
    Durable delivery queue for regulator notifications.

    queue_transfer_notification() records the obligation; process_pass() drains
    due entries with bounded exponential backoff. Delivery is at-least-once:
    if saving an attempt fails, the entry is picked up again as it was before.
    Two passes must never run at the same time (see scripts/worker_daemon.py).
    """

    def __init__(
        self,
        *,
        store: NotificationStore,
        sink: NotificationSink,
        webhook_url: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], datetime] = _now,
        batch_size: int = DISPATCH_BATCH_LIMIT,
    ):
        self.store = store
        self.sink = sink
        self.webhook_url = webhook_url if webhook_url is not None else (settings.REGULATOR_WEBHOOK_URL or "")
        self.logger = logger or logging.getLogger("settlement.dispatcher")
        self.clock = clock
        self.batch_size = batch_size

    # ------------------------------------------------------------------
    # Enqueue
    # ------------------------------------------------------------------

    def queue_transfer_notification(self, transfer: Transfer) -> Optional[NotificationEntry]:
        if not transfer.is_terminal:
            self.logger.warning(
                "not queueing regulator notification for non-terminal transfer transfer_id=%s status=%s",
                transfer.id,
                transfer.status,
            )
            return None

        entry = NotificationEntry(
            transfer_id=transfer.id,
            url=self.webhook_url,
            status=STATUS_PENDING,
            attempts=0,
            next_attempt_at=self.clock(),
        )

        # Raises NotificationQueueError when persistence fails
        created = self.store.create_entry(entry)
        if not created:
            self.logger.info("regulator notification already queued transfer_id=%s", transfer.id)
            return None

        increment_notification_queued()
        self.logger.info(
            "queued regulator notification transfer_id=%s notification_id=%s", transfer.id, entry.id
        )
        return entry

    # ------------------------------------------------------------------
    # Dispatch pass
    # ------------------------------------------------------------------

    def process_pass(self, deadline: Deadline) -> DispatchSummary:
        summary = DispatchSummary()
        self.logger.info("starting regulator notification pass")

        try:
            deadline.check()
            entries = self.store.find_due(self.batch_size, self.clock())
        except DeadlineExceeded:
            summary.cancelled = True
            self.logger.warning("notification pass cancelled before loading entries")
            return summary
        except Exception:
            self.logger.exception("failed to load due regulator notifications")
            return summary

        summary.found = len(entries)
        if not entries:
            self.logger.info("no due regulator notifications")
            return summary

        self.logger.info("found due regulator notifications count=%s", len(entries))

        for i, entry in enumerate(entries):
            try:
                self._process_entry(entry, deadline, summary)
            except DeadlineExceeded:
                summary.cancelled = True
                summary.skipped += len(entries) - i
                self.logger.warning("notification pass stopped by deadline; left=%s", len(entries) - i)
                break
            except Exception:
                summary.skipped += 1
                self.logger.exception("unexpected error processing notification_id=%s", entry.id)

        self.logger.info(
            "notification pass done found=%s sent=%s failed=%s dead_lettered=%s persist_errors=%s stale_updates=%s",
            summary.found,
            summary.sent,
            summary.failed,
            summary.dead_lettered,
            summary.persist_errors,
            summary.stale_updates,
        )
        return summary

    def _process_entry(self, entry: NotificationEntry, deadline: Deadline, summary: DispatchSummary) -> None:
        if entry.transfer is None:
            summary.skipped += 1
            self.logger.error("notification_id=%s has no transfer snapshot; skipping", entry.id)
            return

        payload = build_regulator_payload(entry.transfer)

        # Nothing is recorded if the pass is over before the call starts
        deadline.check()

        status_code: Optional[int] = None
        body: Optional[str] = None
        error: Optional[Exception] = None
        try:
            response = self.sink.send_transfer_notification(payload, deadline=deadline)
            status_code, body = response.status_code, response.body
        except DeadlineExceeded:
            raise
        except RegulatorDeliveryError as exc:
            error = exc
            status_code, body = exc.status_code, exc.body
        except Exception as exc:
            error = exc

        now = self.clock()
        attempts = entry.attempts + 1
        updated = replace(
            entry,
            attempts=attempts,
            last_attempt_at=now,
            response_status_code=status_code,
            response_body=body[:RESPONSE_BODY_LIMIT] if body is not None else None,
        )

        if error is None:
            updated.status = STATUS_SENT
        else:
            updated.status = STATUS_FAILED
            updated.next_attempt_at = next_attempt_at(attempts, now)

        try:
            self.store.update_entry(updated, expected_attempts=entry.attempts)
        except StaleUpdateError:
            summary.stale_updates += 1
            self.logger.warning(
                "notification attempt recorded by another runner notification_id=%s expected_attempts=%s",
                entry.id,
                entry.attempts,
            )
            return
        except Exception:
            # Entry stays due as it was; the attempt is counted when it is saved
            summary.persist_errors += 1
            self.logger.exception(
                "failed to save regulator notification attempt notification_id=%s attempt=%s", entry.id, attempts
            )
            return

        if error is None:
            summary.sent += 1
            increment_notification_attempt("sent")
            self.logger.info("sent regulator notification notification_id=%s attempt=%s", entry.id, attempts)
            return

        summary.failed += 1
        if updated.is_dead_letter:
            summary.dead_lettered += 1
            increment_notification_attempt("dead_letter")
            self.logger.error(
                "regulator notification exhausted retries notification_id=%s transfer_id=%s attempts=%s err=%s",
                entry.id,
                entry.transfer_id,
                attempts,
                error,
            )
        else:
            increment_notification_attempt("failed")
            self.logger.warning(
                "failed to send regulator notification notification_id=%s attempt=%s next_attempt_at=%s err=%s",
                entry.id,
                attempts,
                updated.next_attempt_at.isoformat(),
                error,
            )
