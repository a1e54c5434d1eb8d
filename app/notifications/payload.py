from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from app.transfers.model import Transfer

# All reported transfers settle in USD
REGULATOR_CURRENCY = "USD"


def format_amount(amount: Decimal) -> str:
    # Column scale is dropped ("100.5000" -> "100.5"); never scientific notation
    return format(Decimal(amount).normalize(), "f")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def build_regulator_payload(transfer: Transfer) -> dict[str, Any]:
    """
    JSON body reported to the regulator for a transfer in a terminal status.
    Optional keys are left out rather than sent as null.
    """
    payload: dict[str, Any] = {
        "transfer_id": str(transfer.id),
        "status": transfer.status,
        "amount": format_amount(transfer.amount),
        "currency": REGULATOR_CURRENCY,
    }

    completed_at = _iso(transfer.completed_at)
    if completed_at:
        payload["completed_at"] = completed_at

    failed_at = _iso(transfer.failed_at)
    if failed_at:
        payload["failed_at"] = failed_at

    if transfer.error_message:
        payload["reason"] = transfer.error_message

    return payload
