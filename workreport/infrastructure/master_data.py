"""Providers of the authoritative product and employee lists."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Iterable, Literal, Protocol

import httpx

from workreport.core.schema import MasterData

logger = logging.getLogger(__name__)

MasterDataErrorType = Literal["UNAUTHORIZED", "NETWORK", "NOT_FOUND", "SERVER", "UNKNOWN"]


class MasterDataError(RuntimeError):
    """Structured failure shown to the reviewer as an informational dialog."""

    def __init__(
        self,
        message: str,
        *,
        error_type: MasterDataErrorType = "UNKNOWN",
        user_action: str | None = None,
        status: int | None = None,
        can_retry: bool = True,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type: MasterDataErrorType = error_type
        self.user_action = user_action
        self.status = status
        self.can_retry = can_retry

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "error_type": self.error_type,
            "user_action": self.user_action,
            "status": self.status,
            "can_retry": self.can_retry,
        }


class MasterDataProvider(Protocol):
    """Contract for master data sources."""

    async def fetch(self) -> MasterData:
        """Load the current product and employee lists."""

    async def reauthenticate(self) -> None:
        """Refresh credentials after an ``UNAUTHORIZED`` failure."""


class StaticMasterDataProvider:
    """Provider serving fixed lists, used when no remote source is configured."""

    def __init__(self, products: Iterable[str] = (), employees: Iterable[str] = ()) -> None:
        self._data = MasterData(products=frozenset(products), employees=frozenset(employees))

    async def fetch(self) -> MasterData:
        return self._data

    async def reauthenticate(self) -> None:  # pragma: no cover - nothing to refresh
        return None


TokenRefresher = Callable[[], Awaitable[str]]


class HttpMasterDataProvider:
    """Fetch ``{"products": [...], "employees": [...]}`` from an HTTP endpoint."""

    def __init__(
        self,
        url: str,
        *,
        token: str | None = None,
        token_refresher: TokenRefresher | None = None,
        timeout: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._token = token
        self._token_refresher = token_refresher
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    @staticmethod
    def _names(value: object) -> frozenset[str]:
        if not isinstance(value, list):
            return frozenset()
        return frozenset(str(item).strip() for item in value if item is not None and str(item).strip())

    async def fetch(self) -> MasterData:
        try:
            response = await self._client.get(self._url, headers=self._headers())
        except httpx.TransportError as exc:
            raise MasterDataError(
                "Could not reach the master data service.",
                error_type="NETWORK",
                user_action="Check the network connection and retry.",
            ) from exc

        status = response.status_code
        if status in (401, 403):
            raise MasterDataError(
                "The master data service rejected the credentials.",
                error_type="UNAUTHORIZED",
                user_action="Sign in again to reload master data.",
                status=status,
                can_retry=False,
            )
        if status == 404:
            raise MasterDataError(
                "The master data sheet was not found.",
                error_type="NOT_FOUND",
                user_action="Ask an administrator to check the master data location.",
                status=status,
                can_retry=False,
            )
        if status >= 500:
            raise MasterDataError(
                "The master data service is unavailable.",
                error_type="SERVER",
                user_action="Wait a moment and retry.",
                status=status,
            )
        if status >= 400:
            raise MasterDataError(f"Loading master data failed ({status}).", status=status)

        try:
            body = response.json()
        except ValueError as exc:
            raise MasterDataError("The master data response could not be read.") from exc
        if not isinstance(body, dict):
            raise MasterDataError("The master data response could not be read.")

        data = MasterData(products=self._names(body.get("products")), employees=self._names(body.get("employees")))
        logger.info("loaded %d product(s) and %d employee(s)", len(data.products), len(data.employees))
        return data

    async def reauthenticate(self) -> None:
        if self._token_refresher is None:
            raise MasterDataError(
                "Re-authentication is not available.",
                error_type="UNAUTHORIZED",
                can_retry=False,
            )
        self._token = await self._token_refresher()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


_provider: MasterDataProvider = StaticMasterDataProvider()


def configure_master_data_provider(provider: MasterDataProvider) -> None:
    """Install the master data provider used by new review sessions."""

    global _provider
    _provider = provider


def get_master_data_provider() -> MasterDataProvider:
    return _provider
