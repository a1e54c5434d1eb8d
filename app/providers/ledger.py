# app/providers/ledger.py
from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from settings import settings
from app.providers.base import LedgerTransfer
from app.providers.http import HttpClient
from app.workers.deadline import Deadline


class LedgerClientError(Exception):
    pass


class LedgerClient:
    """
    Read-only client for the external ledger provider's transfer API.
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_s: Optional[float] = None,
        http: Optional[HttpClient] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.LEDGER_API_BASE_URL or "").strip().rstrip("/")
        self.api_key = (api_key if api_key is not None else settings.LEDGER_API_KEY or "").strip()
        self.timeout_s = float(timeout_s if timeout_s is not None else settings.LEDGER_HTTP_TIMEOUT_S)
        self._http = http or HttpClient(timeout_s=self.timeout_s)
        self.logger = logger or logging.getLogger("settlement.ledger")

    def _headers(self) -> Dict[str, str]:
        h = {"Accept": "application/json"}
        if self.api_key:
            h["X-Api-Key"] = self.api_key
        return h

    def get_transfer_status(self, external_ref: str, *, deadline: Deadline) -> LedgerTransfer:
        ref = (external_ref or "").strip()
        if not ref:
            raise LedgerClientError("ledger client: external reference is required")
        if not self.base_url:
            raise LedgerClientError("ledger client: LEDGER_API_BASE_URL not set")

        timeout_s = deadline.bound(self.timeout_s)
        try:
            r = deadline.call(
                self._http.get, f"{self.base_url}/transfers/{ref}", headers=self._headers(), timeout_s=timeout_s
            )
        except httpx.HTTPError as exc:
            raise LedgerClientError(f"ledger client: get transfer request failed: {exc}") from exc

        if r.status_code != 200:
            raise LedgerClientError(f"ledger client: get transfer returned non-200 status: {r.status_code}")

        if not isinstance(r.json, dict):
            raise LedgerClientError("ledger client: failed to decode transfer response")

        status = str(r.json.get("status") or "").strip().lower()
        if not status:
            raise LedgerClientError("ledger client: transfer response has no status")

        self.logger.debug("ledger transfer external_ref=%s status=%s", ref, status)
        return LedgerTransfer(external_ref=ref, status=status, response=r.json)

    def health_check(self, *, deadline: Deadline) -> None:
        if not self.base_url:
            raise LedgerClientError("ledger client: LEDGER_API_BASE_URL not set")

        timeout_s = deadline.bound(self.timeout_s)
        try:
            r = deadline.call(self._http.get, f"{self.base_url}/health", headers=self._headers(), timeout_s=timeout_s)
        except httpx.HTTPError as exc:
            raise LedgerClientError(f"ledger client: health check request failed: {exc}") from exc

        if r.status_code != 200:
            raise LedgerClientError(f"ledger client: health check returned non-200 status: {r.status_code}")
