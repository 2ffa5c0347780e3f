"""OANDA v20 REST transport.

Async wrapper over the read-only endpoints the journal uses:

- /accounts                                   → accounts for the token
- /accounts/{id}/summary                      → lastTransactionID
- /accounts/{id}/instruments                  → tradeable instruments
- /accounts/{id}/trades?state=&count=         → closed / open trades
- /accounts/{id}/trades/{tradeId}             → trade detail (closingTransactionIDs)
- /accounts/{id}/transactions/{tid}           → one transaction
- /accounts/{id}/transactions/idrange         → transactions in an id range
- /instruments/{instrument}/candles           → OHLC candles

Requests go through a blocking ``requests.Session`` run in a worker thread so
the event loop stays free. Every method returns the decoded JSON body. HTTP
failures are mapped through ``classify_http_error``; transport failures
become ``NetworkError``.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import requests

from ....domain.exceptions import NetworkError, classify_http_error
from ....utils.logging_setup import get_logger

logger = get_logger(__name__)

BASE_URLS = {
    "practice": "https://api-fxpractice.oanda.com/v3",
    "live": "https://api-fxtrade.oanda.com/v3",
}

TRADE_PAGE_COUNT = 500


class OandaClient:
    """Async OANDA v20 REST client bound to one account."""

    def __init__(
        self,
        api_key: str,
        account_id: str,
        environment: str = "practice",
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Args:
            api_key: Personal access token.
            account_id: Account the trade/transaction endpoints are scoped to.
            environment: "practice" or "live".
            timeout: Per-request timeout in seconds.
            session: Optional pre-built session (tests inject a mock).
        """
        if environment not in BASE_URLS:
            raise ValueError(f"Unknown OANDA environment: {environment}")

        self.account_id = account_id
        self.environment = environment
        self.base_url = BASE_URLS[environment]
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept-Datetime-Format": "RFC3339",
        })

    async def __aenter__(self) -> "OandaClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await asyncio.to_thread(self._session.close)

    # -------------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------------

    async def list_accounts(self) -> List[Dict[str, Any]]:
        data = await self._get("/accounts")
        return data.get("accounts", [])

    async def get_account_summary(self) -> Dict[str, Any]:
        data = await self._get(f"/accounts/{self.account_id}/summary")
        return data.get("account", {})

    async def list_instruments(self) -> List[Dict[str, Any]]:
        data = await self._get(f"/accounts/{self.account_id}/instruments")
        return data.get("instruments", [])

    async def list_trades(self, state: str, count: int = TRADE_PAGE_COUNT) -> List[Dict[str, Any]]:
        """
        List trades in one state.

        Args:
            state: "CLOSED" or "OPEN".
            count: Max trades returned (API limit 500).
        """
        data = await self._get(
            f"/accounts/{self.account_id}/trades",
            params={"state": state, "count": count},
        )
        return data.get("trades", [])

    async def get_trade(self, trade_id: str) -> Dict[str, Any]:
        data = await self._get(f"/accounts/{self.account_id}/trades/{trade_id}")
        return data.get("trade", {})

    async def get_transaction(self, transaction_id: str) -> Dict[str, Any]:
        data = await self._get(f"/accounts/{self.account_id}/transactions/{transaction_id}")
        return data.get("transaction", {})

    async def get_transaction_range(self, from_id: int, to_id: int) -> List[Dict[str, Any]]:
        """Fetch transactions with ids in [from_id, to_id] (inclusive)."""
        data = await self._get(
            f"/accounts/{self.account_id}/transactions/idrange",
            params={"from": from_id, "to": to_id},
        )
        return data.get("transactions", [])

    async def get_candles(
        self,
        instrument: str,
        granularity: str = "H1",
        count: int = 500,
        price: str = "M",
        from_time: Optional[str] = None,
        to_time: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch OHLC candles.

        ``count`` is ignored by the API when both from/to are given, so it is
        only sent when the range is open-ended.
        """
        params: Dict[str, Any] = {"granularity": granularity, "price": price}
        if from_time:
            params["from"] = from_time
        if to_time:
            params["to"] = to_time
        if not (from_time and to_time):
            params["count"] = count
        data = await self._get(f"/instruments/{instrument}/candles", params=params)
        return data.get("candles", [])

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await asyncio.to_thread(self._get_sync, path, params)

    def _get_sync(self, path: str, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
        except requests.RequestException as e:
            raise NetworkError(f"Request to {path} failed: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
                message = body.get("errorMessage", "") if isinstance(body, dict) else ""
            except ValueError:
                message = response.text[:200]
            logger.debug(f"GET {path} -> {response.status_code}: {message}")
            raise classify_http_error(response.status_code, message)

        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(f"Invalid JSON from {path}: {e}") from e
