"""
Broker ledger client.

Fetches the account's closed and open trades from OANDA and normalizes them
into broker-owned ``Trade`` records. Also carries the instrument helpers used
by the chart collaborator and the connection check behind ``verify``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from ....domain.exceptions import AuthError, NetworkError, TradeflowError
from ....models.candle import Candle
from ....models.trade import Trade, TradeDirection, TradeStatus
from ....utils.logging_setup import get_logger
from ....utils.timezone import format_iso_z, parse_rfc3339
from .client import OandaClient

logger = get_logger(__name__)

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def clean_symbol(symbol: str) -> str:
    """Strip separators and uppercase ("EUR_USD" -> "EURUSD")."""
    return _NON_ALNUM.sub("", symbol).upper()


def find_best_match_symbol(symbol: str, instruments: List[str]) -> str:
    """
    Map a journal symbol to an OANDA instrument name.

    Args:
        symbol: Symbol as shown in the journal, e.g. "EURUSD" or "XAUUSD".
        instruments: Instrument names available on the account.

    Returns:
        An exact or separator-insensitive match from ``instruments`` when one
        exists, otherwise a best guess in ``AAA_BBB`` form.
    """
    if symbol in instruments:
        return symbol

    target = clean_symbol(symbol)
    for name in instruments:
        if clean_symbol(name) == target:
            return name

    if target.endswith("USD") and len(target) > 3:
        return f"{target.replace('USD', '', 1)}_USD"
    if len(target) == 6 and not any(c.isdigit() for c in target):
        return f"{target[:3]}_{target[3:]}"
    return f"{target}_USD"


@dataclass
class ConnectionCheck:
    """Outcome of ``verify_connection``."""
    success: bool
    message: str
    instruments: List[str] = field(default_factory=list)


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _attached_price(raw: Mapping[str, Any], key: str) -> float:
    order = raw.get(key) or {}
    return _to_float(order.get("price"), 0.0)


def normalize_trade(raw: Mapping[str, Any], closed: bool) -> Trade:
    """
    Convert one raw OANDA trade into a broker-owned Trade.

    Args:
        raw: Trade object from ``/trades``.
        closed: Whether the trade came from the CLOSED listing.
    """
    initial_units = _to_float(raw.get("initialUnits"))
    direction = TradeDirection.LONG if initial_units > 0 else TradeDirection.SHORT

    if closed:
        pnl = _to_float(raw.get("realizedPL"))
        if pnl > 0:
            status = TradeStatus.WIN
        elif pnl < 0:
            status = TradeStatus.LOSS
        else:
            status = TradeStatus.BREAK_EVEN
        exit_price: Optional[float] = _to_float(raw.get("averageClosePrice"), 0.0)
        exit_time = parse_rfc3339(raw.get("closeTime"))
    else:
        pnl = _to_float(raw.get("unrealizedPL"))
        status = TradeStatus.OPEN
        exit_price = None
        exit_time = None

    return Trade(
        id=str(raw["id"]),
        symbol=clean_symbol(str(raw.get("instrument", ""))),
        direction=direction,
        status=status,
        entry_price=_to_float(raw.get("price")),
        quantity=abs(initial_units),
        stop_loss=_attached_price(raw, "stopLossOrder"),
        take_profit=_attached_price(raw, "takeProfitOrder"),
        entry_time=parse_rfc3339(raw.get("openTime")),
        exit_price=exit_price,
        exit_time=exit_time,
        pnl=pnl,
    )


class BrokerLedgerClient:
    """
    Read-only view of the broker's trade ledger.

    ``fetch`` is all-or-nothing: either both listings succeed and the full
    normalized list is returned, or an exception propagates and the caller
    keeps whatever it had before.
    """

    def __init__(self, client: OandaClient) -> None:
        self._client = client

    @property
    def account_id(self) -> str:
        return self._client.account_id

    async def fetch(self) -> List[Trade]:
        """
        Fetch and normalize closed then open trades.

        Returns:
            Trades sorted by entry time, most recent first.

        Raises:
            AuthError: Credentials rejected (401/403).
            NetworkError: Any other transport or HTTP failure.
        """
        closed_raw = await self._client.list_trades("CLOSED")
        open_raw = await self._client.list_trades("OPEN")

        trades: List[Trade] = []
        for raw, closed in [(r, True) for r in closed_raw] + [(r, False) for r in open_raw]:
            try:
                trades.append(normalize_trade(raw, closed))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                raise NetworkError(f"Malformed trade in ledger response: {e}") from e

        trades.sort(key=lambda t: t.entry_time.timestamp() if t.entry_time else float("-inf"), reverse=True)
        logger.info(
            f"Ledger fetched: {len(closed_raw)} closed, {len(open_raw)} open "
            f"(account {self.account_id})"
        )
        return trades

    async def fetch_instruments(self) -> List[str]:
        """Instrument names tradeable on the account; empty on failure."""
        try:
            instruments = await self._client.list_instruments()
        except TradeflowError as e:
            logger.warning(f"Failed to fetch instruments list: {e}")
            return []
        return [i["name"] for i in instruments if i.get("name")]

    async def verify_connection(self) -> ConnectionCheck:
        """
        Check the token against the account list and load instruments.

        Never raises; failures are reported in the returned ConnectionCheck.
        """
        try:
            accounts = await self._client.list_accounts()
        except AuthError as e:
            if e.status_code == 401:
                return ConnectionCheck(False, "Invalid API Key or Wrong Environment.")
            return ConnectionCheck(False, f"Connection failed: {e}")
        except NetworkError as e:
            return ConnectionCheck(False, f"Network Error: {e}")

        if not self.account_id:
            return ConnectionCheck(True, "Connection Verified! API Key is valid.")

        if not any(acc.get("id") == self.account_id for acc in accounts):
            return ConnectionCheck(
                False,
                "API Key is valid, but Account ID not found in this account list. "
                "Check environment (Live/Practice).",
            )

        instruments = await self.fetch_instruments()
        return ConnectionCheck(
            True,
            f"Verified! Loaded {len(instruments)} instruments for account {self.account_id}.",
            instruments,
        )

    async def fetch_candles(
        self,
        symbol: str,
        granularity: str = "H1",
        count: int = 500,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        instruments: Optional[List[str]] = None,
    ) -> List[Candle]:
        """
        Fetch mid-price candles for a journal symbol.

        Raises:
            AuthError / NetworkError: Propagated from the transport.
        """
        instrument = find_best_match_symbol(symbol, instruments or [])
        raw = await self._client.get_candles(
            instrument,
            granularity=granularity,
            count=count,
            from_time=format_iso_z(start) if start else None,
            to_time=format_iso_z(end) if end else None,
        )

        candles: List[Candle] = []
        for c in raw:
            mid: Dict[str, Any] = c.get("mid") or {}
            time = parse_rfc3339(c.get("time"))
            if time is None or not mid:
                continue
            candles.append(Candle(
                time=time,
                open=_to_float(mid.get("o")),
                high=_to_float(mid.get("h")),
                low=_to_float(mid.get("l")),
                close=_to_float(mid.get("c")),
                volume=int(c.get("volume") or 0),
            ))
        return candles
