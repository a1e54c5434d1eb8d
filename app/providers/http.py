# app/providers/http.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import httpx


@dataclass
class HttpResponse:
    status_code: int
    json: Optional[Any]
    text: str


class HttpClient:
    def __init__(
        self,
        timeout_s: float = 20.0,
        follow_redirects: bool = True,
        transport: httpx.BaseTransport | None = None,
    ):
        self._client = httpx.Client(timeout=timeout_s, follow_redirects=follow_redirects, transport=transport)

    def post(
        self,
        url: str,
        *,
        headers: dict[str, str],
        json_body: Any = None,
        timeout_s: float | None = None,
    ) -> HttpResponse:
        r = self._client.post(url, headers=headers, json=json_body, **self._timeout_kwargs(timeout_s))
        return self._wrap(r)

    def get(
        self,
        url: str,
        *,
        headers: dict[str, str],
        timeout_s: float | None = None,
    ) -> HttpResponse:
        r = self._client.get(url, headers=headers, **self._timeout_kwargs(timeout_s))
        return self._wrap(r)

    def close(self) -> None:
        self._client.close()

    @staticmethod
    def _timeout_kwargs(timeout_s: float | None) -> dict[str, Any]:
        # Omitting the kwarg keeps the client default; passing None would disable timeouts
        if timeout_s is None:
            return {}
        return {"timeout": timeout_s}

    @staticmethod
    def _wrap(r: httpx.Response) -> HttpResponse:
        try:
            payload = r.json()
        except ValueError:
            payload = None
        return HttpResponse(status_code=r.status_code, json=payload, text=r.text)
