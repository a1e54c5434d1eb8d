# tests/conftest.py

import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.transfers.model import Transfer
from app.workers.deadline import Deadline
from tests.fakes import (
    FakeLedger,
    FakeSink,
    FixedClock,
    InMemoryNotificationStore,
    InMemoryTransferStore,
    RecordingFailureHandler,
)


NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


def make_transfer(
    *,
    status: str = "pending",
    external_ref: str | None = "nw-ext-1",
    age: timedelta = timedelta(minutes=1),
    amount: str = "100.50",
    **kwargs,
) -> Transfer:
    return Transfer(
        id=uuid.uuid4(),
        status=status,
        amount=Decimal(amount),
        created_at=NOW - age,
        external_ref=external_ref,
        **kwargs,
    )


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture()
def deadline() -> Deadline:
    return Deadline(60)


@pytest.fixture()
def transfer_store() -> InMemoryTransferStore:
    return InMemoryTransferStore()


@pytest.fixture()
def notification_store(transfer_store: InMemoryTransferStore) -> InMemoryNotificationStore:
    return InMemoryNotificationStore(transfer_store)


@pytest.fixture()
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture()
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture()
def failure_handler() -> RecordingFailureHandler:
    return RecordingFailureHandler()


@pytest.fixture()
def test_logger() -> logging.Logger:
    return logging.getLogger("tests.settlement")
