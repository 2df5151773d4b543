"""
Binance REST API Client

This module provides an async HTTP client for the Binance spot and USD-M
futures REST APIs. It handles:
- HTTP requests over one aiohttp session
- HMAC-SHA256 request signing for account/trade endpoints
- Mapping HTTP and Binance error codes to connector errors
- Decoding JSON with exact decimals (parse_float=Decimal)

It deliberately does NOT retry: a retried order submission could be a
duplicate order. Rate limits surface as RateLimitError for the caller to
handle.

API Documentation:
    Spot:    https://developers.binance.com/docs/binance-spot-api-docs/rest-api
    Futures: https://developers.binance.com/docs/derivatives/usds-margined-futures

Sandbox:
    sandbox=True switches to the demo endpoints configured in settings
    (binance_spot_sandbox_url / binance_perp_sandbox_url).

Usage:
    async with BinanceAPIClient(api_key="...", secret_key="...") as client:
        info = await client.get_exchange_info(MarketType.SPOT)
        order = await client.new_order(MarketType.SPOT, {...})
"""

import asyncio
import hashlib
import hmac
import json
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import aiohttp

from unitrade.core.config import settings
from unitrade.core.errors import (
    AuthError,
    ExchangeAPIError,
    NetworkError,
    OrderNotFound,
    RateLimitError,
)
from unitrade.core.logging import get_logger, log_api_request, log_api_response
from unitrade.core.schemas import MarketType
from unitrade.core.utils.time import current_utc_timestamp


# Binance error codes with a dedicated meaning
UNKNOWN_ORDER_CODES = {-2011, -2013}
AUTH_ERROR_CODES = {-1002, -1022, -2014, -2015}
NO_NEED_TO_CHANGE_MARGIN_TYPE = -4046


class BinanceAPIClient:
    """
    Async HTTP client for Binance spot and USD-M futures REST APIs.

    Attributes:
        spot_url: Base URL for /api/v3 endpoints
        perp_url: Base URL for /fapi endpoints
        session: aiohttp ClientSession (created on enter or on first request)

    Example:
        >>> async with BinanceAPIClient() as client:
        ...     tickers = await client.get_ticker_24hr(MarketType.PERP)
        ...     print(f"Fetched {len(tickers)} tickers")

    Notes:
        - Public endpoints need no credentials
        - Signed endpoints raise AuthError before any request when the key
          or secret is missing
        - Credentials and signatures never appear in log output
    """

    SPOT_KLINES_MAX = 1000
    PERP_KLINES_MAX = 1500

    def __init__(
        self,
        api_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        sandbox: bool = False,
        proxy: Optional[str] = None,
        base_url: Optional[str] = None,
        recv_window: Optional[int] = None,
        timeout: Optional[int] = None
    ):
        """
        Initialize the Binance API client.

        Args:
            api_key: Binance API key (only needed for signed endpoints)
            secret_key: Binance API secret used for HMAC signing
            sandbox: Use the demo/testnet endpoints
            proxy: HTTP proxy URL for every request
            base_url: Override both spot and futures base URLs (e.g. a gateway
                      that serves /api and /fapi paths)
            recv_window: recvWindow in ms for signed requests
            timeout: Total request timeout in seconds
        """
        self.api_key = api_key
        self._secret_key = secret_key
        self.proxy = proxy
        self.recv_window = recv_window or settings.binance_recv_window
        self.timeout = timeout or settings.request_timeout
        self.logger = get_logger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None

        if base_url:
            self.spot_url = self.perp_url = base_url.rstrip("/")
        elif sandbox:
            self.spot_url = settings.binance_spot_sandbox_url
            self.perp_url = settings.binance_perp_sandbox_url
        else:
            self.spot_url = settings.binance_spot_base_url
            self.perp_url = settings.binance_perp_base_url

    # ============================================
    # Session Management
    # ============================================

    async def open(self) -> None:
        """Create the HTTP session (idempotent)."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
            self.logger.debug("BinanceAPIClient session created")

    async def close(self) -> None:
        """Close the HTTP session (idempotent)."""
        if self.session is not None and not self.session.closed:
            await self.session.close()
            self.logger.debug("BinanceAPIClient session closed")
        self.session = None

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ============================================
    # HTTP Request Handler
    # ============================================

    def _base_url(self, market_type: MarketType) -> str:
        return self.perp_url if market_type is MarketType.PERP else self.spot_url

    def _sign(self, query: str) -> str:
        """HMAC-SHA256 hex digest of the query string."""
        return hmac.new(self._secret_key.encode(), query.encode(), hashlib.sha256).hexdigest()

    async def _request(
        self,
        method: str,
        market_type: MarketType,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        signed: bool = False
    ) -> Any:
        """
        Send one request and decode the JSON response.

        Args:
            method: HTTP method ("GET", "POST", "DELETE")
            market_type: Selects the spot or futures base URL
            path: API endpoint path (e.g. "/api/v3/order")
            params: Query parameters; None values are dropped
            signed: Add timestamp, recvWindow and signature

        Returns:
            Decoded JSON; every JSON number with a fraction is a Decimal

        Raises:
            AuthError: Missing credentials, HTTP 401/403, bad key/signature codes
            RateLimitError: HTTP 429 or 418
            OrderNotFound: Binance reports an unknown order
            NetworkError: Timeout, connection failure, HTTP 5xx
            ExchangeAPIError: Any other error response
        """
        params = {key: value for key, value in (params or {}).items() if value is not None}
        log_api_request("binance", method, path, params, log=self.logger)

        headers = {}
        if self.api_key:
            headers["X-MBX-APIKEY"] = self.api_key

        if signed:
            if not self.api_key or not self._secret_key:
                raise AuthError(f"Binance {path} requires an API key and secret key")
            params["recvWindow"] = self.recv_window
            params["timestamp"] = current_utc_timestamp(milliseconds=True)
            query = urlencode(params)
            query = f"{query}&signature={self._sign(query)}"
        else:
            query = urlencode(params)

        url = f"{self._base_url(market_type)}{path}"
        if query:
            url = f"{url}?{query}"

        await self.open()
        started = time.monotonic()

        try:
            async with self.session.request(
                method,
                url,
                headers=headers,
                proxy=self.proxy,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as resp:
                text = await resp.text()
                log_api_response("binance", path, resp.status, time.monotonic() - started, log=self.logger)

                if resp.status == 200:
                    try:
                        return json.loads(text, parse_float=Decimal)
                    except ValueError as e:
                        raise ExchangeAPIError(f"Invalid JSON from Binance {path}: {e}", status=200)

                self._raise_for_status(resp.status, text, path)

        except asyncio.TimeoutError as e:
            self.logger.error(f"Timeout on {method} {path} after {self.timeout}s")
            raise NetworkError(f"Timeout on {method} {path}") from e

        except aiohttp.ClientError as e:
            self.logger.error(f"Request failed on {method} {path}: {e}")
            raise NetworkError(f"{method} {path} failed: {e}") from e

    def _raise_for_status(self, status: int, text: str, path: str) -> None:
        """Translate a non-200 response into a connector error."""
        code = None
        message = text
        try:
            payload = json.loads(text)
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            code = payload.get("code")
            message = payload.get("msg", text)

        self.logger.warning(f"HTTP {status} on {path}: code={code} msg={message}")

        if status in (429, 418):
            raise RateLimitError(f"Binance rate limit (HTTP {status}) on {path}: {message}")
        if status in (401, 403) or code in AUTH_ERROR_CODES:
            raise AuthError(f"Binance rejected credentials on {path}: {message}")
        if code in UNKNOWN_ORDER_CODES and "order" in str(message).lower():
            raise OrderNotFound(f"Binance: {message}")
        if status >= 500:
            raise NetworkError(f"Binance server error (HTTP {status}) on {path}: {message}")

        raise ExchangeAPIError(f"Binance error {code} on {path}: {message}", status=status, code=code)

    # ============================================
    # Market Data Endpoints
    # ============================================

    async def get_exchange_info(self, market_type: MarketType) -> Dict[str, Any]:
        """
        Fetch trading rules for every symbol.

        Binance Endpoint:
            GET /api/v3/exchangeInfo (spot)
            GET /fapi/v1/exchangeInfo (futures)

        Response Format (abridged):
            {
              "symbols": [
                {
                  "symbol": "BTCUSDT", "status": "TRADING",
                  "baseAsset": "BTC", "quoteAsset": "USDT",
                  "filters": [
                    {"filterType": "PRICE_FILTER", "tickSize": "0.01", ...},
                    {"filterType": "LOT_SIZE", "stepSize": "0.00001", ...}
                  ]
                }
              ]
            }
        """
        path = "/fapi/v1/exchangeInfo" if market_type is MarketType.PERP else "/api/v3/exchangeInfo"
        data = await self._request("GET", market_type, path)
        self.logger.info(f"Fetched {len(data.get('symbols', []))} {market_type.value} symbols from Binance")
        return data

    async def get_ticker_24hr(self, market_type: MarketType, symbol: Optional[str] = None) -> Any:
        """
        Fetch 24h statistics; one dict for `symbol`, a list for all symbols.

        Binance Endpoint:
            GET /api/v3/ticker/24hr (spot)
            GET /fapi/v1/ticker/24hr (futures; no bid/ask fields)
        """
        path = "/fapi/v1/ticker/24hr" if market_type is MarketType.PERP else "/api/v3/ticker/24hr"
        return await self._request("GET", market_type, path, {"symbol": symbol})

    async def get_klines(
        self,
        market_type: MarketType,
        symbol: str,
        interval: str,
        limit: int,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None
    ) -> List[List[Any]]:
        """
        Fetch candlesticks.

        Binance Endpoint:
            GET /api/v3/klines (spot, max 1000)
            GET /fapi/v1/klines (futures, max 1500)

        Response Format:
            [
              [
                1499040000000,      // Open time
                "0.01634000",       // Open
                "0.80000000",       // High
                "0.01575800",       // Low
                "0.01577100",       // Close
                "148976.11427815",  // Volume
                1499644799999,      // Close time
                ...
              ]
            ]
        """
        if market_type is MarketType.PERP:
            path, max_limit = "/fapi/v1/klines", self.PERP_KLINES_MAX
        else:
            path, max_limit = "/api/v3/klines", self.SPOT_KLINES_MAX

        params = {
            "symbol": symbol,
            "interval": interval,
            "limit": min(limit, max_limit),
            "startTime": start_time,
            "endTime": end_time,
        }

        data = await self._request("GET", market_type, path, params)
        self.logger.debug(f"Fetched {len(data)} {interval} klines for {symbol}")
        return data

    # ============================================
    # Trade Endpoints (signed)
    # ============================================

    def _order_path(self, market_type: MarketType) -> str:
        return "/fapi/v1/order" if market_type is MarketType.PERP else "/api/v3/order"

    async def new_order(self, market_type: MarketType, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Submit an order.

        Binance Endpoint:
            POST /api/v3/order (spot, newOrderRespType=RESULT so status is included)
            POST /fapi/v1/order (futures)
        """
        params = dict(params)
        if market_type is MarketType.SPOT:
            params.setdefault("newOrderRespType", "RESULT")
        return await self._request("POST", market_type, self._order_path(market_type), params, signed=True)

    async def cancel_order(self, market_type: MarketType, symbol: str, order_id: str) -> Dict[str, Any]:
        """DELETE /api/v3/order or /fapi/v1/order."""
        params = {"symbol": symbol, "orderId": order_id}
        return await self._request("DELETE", market_type, self._order_path(market_type), params, signed=True)

    async def get_order(self, market_type: MarketType, symbol: str, order_id: str) -> Dict[str, Any]:
        """GET /api/v3/order or /fapi/v1/order."""
        params = {"symbol": symbol, "orderId": order_id}
        return await self._request("GET", market_type, self._order_path(market_type), params, signed=True)

    # ============================================
    # Account Endpoints (signed)
    # ============================================

    async def get_spot_account(self) -> Dict[str, Any]:
        """
        GET /api/v3/account

        Response Format (abridged):
            {"balances": [{"asset": "BTC", "free": "0.1", "locked": "0.0"}]}
        """
        params = {"omitZeroBalances": "true"}
        return await self._request("GET", MarketType.SPOT, "/api/v3/account", params, signed=True)

    async def get_futures_balance(self) -> List[Dict[str, Any]]:
        """
        GET /fapi/v2/balance

        Response Format (abridged):
            [{"asset": "USDT", "balance": "122.6", "availableBalance": "100.1", ...}]
        """
        return await self._request("GET", MarketType.PERP, "/fapi/v2/balance", signed=True)

    async def get_position_risk(self) -> List[Dict[str, Any]]:
        """
        GET /fapi/v2/positionRisk

        Response Format (abridged):
            [{"symbol": "BTCUSDT", "positionAmt": "0.010", "entryPrice": "43000.0",
              "markPrice": "43210.5", "unRealizedProfit": "2.10", "liquidationPrice": "0",
              "leverage": "10", "marginType": "cross", "positionSide": "BOTH",
              "updateTime": 1704110400000}]
        """
        return await self._request("GET", MarketType.PERP, "/fapi/v2/positionRisk", signed=True)

    async def get_position_mode(self) -> Dict[str, Any]:
        """
        GET /fapi/v1/positionSide/dual

        Response Format:
            {"dualSidePosition": true}    # true: hedge mode, false: one-way mode
        """
        return await self._request("GET", MarketType.PERP, "/fapi/v1/positionSide/dual", signed=True)

    async def change_leverage(self, symbol: str, leverage: int) -> Dict[str, Any]:
        """POST /fapi/v1/leverage"""
        params = {"symbol": symbol, "leverage": leverage}
        return await self._request("POST", MarketType.PERP, "/fapi/v1/leverage", params, signed=True)

    async def change_margin_type(self, symbol: str, margin_type: str) -> Dict[str, Any]:
        """
        POST /fapi/v1/marginType

        Binance answers code -4046 when the symbol already uses the requested
        margin type; that is reported as success.
        """
        params = {"symbol": symbol, "marginType": margin_type}
        try:
            return await self._request("POST", MarketType.PERP, "/fapi/v1/marginType", params, signed=True)
        except ExchangeAPIError as e:
            if e.code != NO_NEED_TO_CHANGE_MARGIN_TYPE:
                raise
            self.logger.debug(f"{symbol} already uses {margin_type} margin")
            return {"code": 200, "msg": "success"}
