"""
services/kucoin_service/kucoin_client.py
----------------------------------------
Async client for the KuCoin Futures REST API (aiohttp).

Auth (API key version 2):
    KC-API-SIGN       = base64(hmac_sha256(secret, timestamp + METHOD + path + body))
    KC-API-PASSPHRASE = base64(hmac_sha256(secret, passphrase))

Every transport problem and every response whose code is not "200000" is
raised as VenueError. Callers decide whether that is fatal.
"""

import asyncio
import base64
import hashlib
import hmac
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import aiohttp

from core.errors import VenueError
from models.contract import ContractSpec, Fill, OrderResult, VenuePosition

logger = logging.getLogger("kucoin_client")

SUCCESS_CODE = "200000"
CONTRACT_NOT_FOUND = "CONTRACT_NOT_FOUND"


def _to_float(value, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _ms_to_datetime(value) -> Optional[datetime]:
    ms = _to_float(value, 0.0)
    if ms <= 0:
        return None
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


class KuCoinClient:
    def __init__(
        self,
        api_key: str,
        api_secret: str,
        api_passphrase: str,
        base_url: str = "https://api-futures.kucoin.com",
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self.api_passphrase = api_passphrase
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session
        self.is_connected = False

    # ======================================================
    # 🔐 AUTH
    # ======================================================
    def _hmac_b64(self, message: str) -> str:
        digest = hmac.new(
            self.api_secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
        ).digest()
        return base64.b64encode(digest).decode("utf-8")

    def _headers(self, method: str, request_path: str, body: str = "") -> Dict[str, str]:
        timestamp = str(int(time.time() * 1000))
        return {
            "KC-API-KEY": self.api_key,
            "KC-API-SIGN": self._hmac_b64(timestamp + method.upper() + request_path + body),
            "KC-API-TIMESTAMP": timestamp,
            "KC-API-PASSPHRASE": self._hmac_b64(self.api_passphrase),
            "KC-API-KEY-VERSION": "2",
            "Content-Type": "application/json",
        }

    # ======================================================
    # 🧾 HTTP
    # ======================================================
    async def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self.session

    async def _request(self, method: str, endpoint: str, params: Optional[dict] = None, data: Optional[dict] = None):
        query = urlencode(params or {})
        request_path = f"{endpoint}?{query}" if query else endpoint
        body = json.dumps(data, separators=(",", ":")) if data is not None else ""
        headers = self._headers(method, request_path, body)

        session = await self._get_session()
        try:
            async with session.request(
                method, self.base_url + request_path, data=body or None, headers=headers
            ) as response:
                try:
                    payload = await response.json(content_type=None)
                except (aiohttp.ContentTypeError, json.JSONDecodeError):
                    text = await response.text()
                    raise VenueError(f"HTTP {response.status}: {text[:200]}", endpoint) from None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise VenueError(f"{type(e).__name__}: {e}", endpoint) from e

        if not isinstance(payload, dict):
            raise VenueError(f"unexpected payload {payload!r}", endpoint)

        code = str(payload.get("code"))
        if code != SUCCESS_CODE:
            raise VenueError(payload.get("msg") or "Unknown error", endpoint, code)

        return payload.get("data")

    async def _get(self, endpoint: str, params: Optional[dict] = None):
        return await self._request("GET", endpoint, params=params)

    async def _post(self, endpoint: str, data: dict):
        return await self._request("POST", endpoint, data=data)

    # ======================================================
    # 🔌 CONNECTION
    # ======================================================
    async def connect(self) -> bool:
        """Checks credentials by reading the balance. Raises VenueError."""
        logger.info("🔌 Connecting to KuCoin Futures API...")
        try:
            await self.get_balance()
        except VenueError:
            self.is_connected = False
            raise
        self.is_connected = True
        logger.info("✅ Connected to KuCoin Futures")
        return True

    async def close(self):
        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.is_connected = False

    # ======================================================
    # 💰 ACCOUNT
    # ======================================================
    async def get_balance(self) -> float:
        """Available USDT on the futures account."""
        data = await self._get("/api/v1/account-overview", {"currency": "USDT"})
        balance = _to_float((data or {}).get("availableBalance"))
        logger.info(f"💰 USDT balance: {balance}")
        return balance

    # ======================================================
    # 📄 MARKET DATA
    # ======================================================
    async def get_contract_info(self, symbol: str) -> ContractSpec:
        contracts = await self._get("/api/v1/contracts/active") or []
        contract = next((c for c in contracts if c.get("symbol") == symbol), None)
        if contract is None:
            raise VenueError(f"Contract {symbol} not found", "/api/v1/contracts/active", CONTRACT_NOT_FOUND)

        return ContractSpec(
            symbol=contract["symbol"],
            tick_size=_to_float(contract.get("tickSize")),
            lot_size=_to_float(contract.get("lotSize"), 1.0),
            multiplier=_to_float(contract.get("multiplier"), 1.0),
            min_order_qty=_to_float(contract.get("minOrderQty"), 1.0) or 1.0,
            max_order_qty=_to_float(contract.get("maxOrderQty"), 1_000_000.0) or 1_000_000.0,
            status=str(contract.get("status", "")),
            max_leverage=_to_float(contract.get("maxLeverage"), 100.0),
        )

    async def get_price(self, symbol: str) -> float:
        ticker = await self._get("/api/v1/ticker", {"symbol": symbol}) or {}
        price = _to_float(ticker.get("price"))
        if price <= 0:
            raise VenueError(f"No price for {symbol}", "/api/v1/ticker")
        logger.info(f"📈 {symbol} price: {price}")
        return price

    # ======================================================
    # 🚀 ORDERS
    # ======================================================
    async def _market_order(self, symbol: str, side: str, quantity: int, leverage: int, margin_mode: str, close: bool):
        client_oid = str(uuid.uuid4())
        order = {
            "clientOid": client_oid,
            "side": side.lower(),
            "symbol": symbol,
            "type": "market",
            "leverage": str(leverage),
            "size": int(quantity),
            "marginMode": margin_mode,
        }
        if close:
            order["closeOrder"] = True

        result = await self._post("/api/v1/orders", order) or {}
        order_id = result.get("orderId")
        if not order_id:
            raise VenueError(f"order accepted without orderId: {result}", "/api/v1/orders")

        return OrderResult(
            order_id=str(order_id),
            client_oid=client_oid,
            symbol=symbol,
            side=side.lower(),
            quantity=int(quantity),
        )

    async def open_market_order(
        self, symbol: str, side: str, quantity: int, leverage: int, margin_mode: str = "CROSS"
    ) -> OrderResult:
        logger.info(f"🚀 Opening {side} market order: {quantity} lots {symbol} ({margin_mode}, {leverage}x)")
        result = await self._market_order(symbol, side, quantity, leverage, margin_mode, close=False)
        logger.info(f"✅ Market order opened: {result.order_id}")
        return result

    async def close_market_order(
        self, symbol: str, side: str, quantity: int, leverage: int, margin_mode: str = "CROSS"
    ) -> OrderResult:
        logger.info(f"🔻 Closing position: {side} {quantity} lots {symbol} ({margin_mode})")
        result = await self._market_order(symbol, side, quantity, leverage, margin_mode, close=True)
        logger.info(f"✅ Close order submitted: {result.order_id}")
        return result

    # ======================================================
    # 📌 POSITIONS / FILLS
    # ======================================================
    async def get_open_positions(self, symbol: Optional[str] = None) -> List[VenuePosition]:
        rows = await self._get("/api/v1/positions") or []
        positions = []
        for row in rows:
            qty = _to_float(row.get("currentQty"))
            if qty == 0:
                continue
            if symbol and row.get("symbol") != symbol:
                continue
            positions.append(
                VenuePosition(
                    symbol=row.get("symbol", ""),
                    side="buy" if qty > 0 else "sell",
                    size=abs(qty),
                    entry_price=_to_float(row.get("avgEntryPrice")),
                    mark_price=_to_float(row.get("markPrice")),
                    unrealized_pnl=_to_float(row.get("unrealisedPnl")),
                    leverage=_to_float(row.get("realLeverage"), 1.0),
                )
            )
        return positions

    async def get_trade_history(self, symbol: Optional[str] = None) -> List[Fill]:
        """Fills of the last 24h, newest first."""
        rows: List[Dict[str, Any]] = await self._get("/api/v1/recentFills") or []
        fills = [
            Fill(
                symbol=row.get("symbol", ""),
                side=str(row.get("side", "")).lower(),
                price=_to_float(row.get("price")),
                size=_to_float(row.get("size")),
                order_id=str(row.get("orderId", "")),
                created_at=_ms_to_datetime(row.get("createdAt")),
            )
            for row in rows
            if not symbol or row.get("symbol") == symbol
        ]
        fills.sort(key=lambda f: f.created_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        return fills
