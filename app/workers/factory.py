from __future__ import annotations

import logging

from app.notifications.repository import PgNotificationStore
from app.providers.ledger import LedgerClient
from app.providers.regulator import RegulatorClient
from app.transfers.failures import TransferFailureHandler
from app.transfers.repository import PgTransferStore
from app.workers.notification_dispatcher import NotificationDispatcher
from app.workers.transfer_monitor import TransferMonitor


def build_dispatcher(*, logger: logging.Logger | None = None) -> NotificationDispatcher:
    return NotificationDispatcher(
        store=PgNotificationStore(),
        sink=RegulatorClient(),
        logger=logger,
    )


def build_monitor(*, logger: logging.Logger | None = None) -> TransferMonitor:
    dispatcher = build_dispatcher()
    transfers = PgTransferStore()
    return TransferMonitor(
        transfers=transfers,
        ledger=LedgerClient(),
        failure_handler=TransferFailureHandler(transfers=transfers, notifications=dispatcher),
        notifications=dispatcher,
        logger=logger,
    )
