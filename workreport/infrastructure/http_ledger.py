"""Client for a remote ledger service exposing a small JSON API.

``POST {api_base}/reports/existing`` -> ``{"workers": {"<name>": true}}``
``POST {api_base}/reports``          -> ``{"failed_workers": ["<name>"]}``
"""
from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from workreport.core.periods import period_label
from workreport.core.schema import Report

from .ledger import CommitResult, LedgerError

logger = logging.getLogger(__name__)


class HttpLedgerClient:
    """Ledger implementation talking to the remote ledger over HTTP."""

    def __init__(
        self,
        api_base: str,
        *,
        token: str | None = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        parsed = urlparse(api_base)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("api_base must include scheme and host")

        self._api_base = api_base.rstrip("/")
        self._token = token
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    @staticmethod
    def _serialise_report(report: Report) -> dict[str, Any]:
        payload = report.model_dump(mode="json")
        if report.header.work_date is not None:
            payload["period"] = period_label(report.header.work_date)
        return payload

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict):
            return str(body.get("detail") or body.get("message") or body)
        return str(body)

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._api_base}{path}"
        try:
            response = await self._client.post(url, json=payload, headers=self._headers())
        except httpx.TransportError as exc:
            raise LedgerError(f"network error while contacting the ledger: {exc}", kind="network") from exc

        if response.status_code in (401, 403):
            raise LedgerError(self._error_detail(response), kind="auth_failure", status=response.status_code)
        if response.status_code == 404:
            raise LedgerError(self._error_detail(response), kind="missing_destination", status=404)
        if response.status_code >= 400:
            raise LedgerError(self._error_detail(response), status=response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            raise LedgerError("the ledger returned a malformed response") from exc
        if not isinstance(body, dict):
            raise LedgerError("the ledger returned a malformed response")
        return body

    # ------------------------------------------------------------------
    # Ledger protocol
    # ------------------------------------------------------------------
    async def check_existing(self, report: Report) -> dict[str, bool]:
        body = await self._post("/reports/existing", self._serialise_report(report))
        workers = body.get("workers") or {}
        return {str(name): bool(flag) for name, flag in workers.items()}

    async def commit(self, report: Report) -> CommitResult:
        body = await self._post("/reports", self._serialise_report(report))
        failed = [str(name) for name in body.get("failed_workers") or []]
        if failed:
            logger.info("ledger rejected %d worker(s)", len(failed))
        return CommitResult(failed_workers=failed)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
