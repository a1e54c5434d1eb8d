# app/providers/regulator.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from settings import settings
from app.providers.base import RegulatorResponse
from app.providers.http import HttpClient
from app.workers.deadline import Deadline

NOOP_BODY = "No-op: webhook URL not configured"


class RegulatorDeliveryError(Exception):
    def __init__(self, message: str, *, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RegulatorClient:
    """
    Notification Sink: POSTs a transfer outcome to the regulator webhook.

    With no webhook URL configured every delivery reports success immediately,
    so an unconfigured environment drains its queue instead of piling up retries.
    """

    def __init__(
        self,
        *,
        webhook_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_s: Optional[float] = None,
        http: Optional[HttpClient] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.webhook_url = (webhook_url if webhook_url is not None else settings.REGULATOR_WEBHOOK_URL or "").strip()
        self.api_key = (api_key if api_key is not None else settings.REGULATOR_WEBHOOK_API_KEY or "").strip()
        self.timeout_s = float(timeout_s if timeout_s is not None else settings.REGULATOR_HTTP_TIMEOUT_S)
        self._http = http or HttpClient(timeout_s=self.timeout_s)
        self.logger = logger or logging.getLogger("settlement.regulator")

    def _headers(self) -> Dict[str, str]:
        h = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.api_key:
            h["X-Api-Key"] = self.api_key
        return h

    def send_transfer_notification(self, payload: dict[str, Any], *, deadline: Deadline) -> RegulatorResponse:
        if not self.webhook_url:
            self.logger.info("regulator webhook url not configured; treating notification as sent")
            return RegulatorResponse(status_code=200, body=NOOP_BODY)

        timeout_s = deadline.bound(self.timeout_s)
        try:
            r = deadline.call(
                self._http.post, self.webhook_url, headers=self._headers(), json_body=payload, timeout_s=timeout_s
            )
        except httpx.HTTPError as exc:
            raise RegulatorDeliveryError(f"regulator client: webhook request failed: {exc}") from exc

        # 200 and 202 are both common; anything in 2xx counts as delivered
        if r.status_code < 200 or r.status_code >= 300:
            raise RegulatorDeliveryError(
                f"regulator client: webhook returned non-2xx status: {r.status_code}",
                status_code=r.status_code,
                body=r.text,
            )

        return RegulatorResponse(status_code=r.status_code, body=r.text)
