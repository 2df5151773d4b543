"""
Binance Exchange Connector

This module implements the ExchangeConnector contract for Binance spot and
USD-M perpetual futures. It converts Binance's wire JSON into the connector
payload vocabulary (see core/connector.py); everything canonical happens in
the core.

API Documentation:
    Spot:    https://developers.binance.com/docs/binance-spot-api-docs/rest-api
    Futures: https://developers.binance.com/docs/derivatives/usds-margined-futures

Endpoints Used:
    Spot (api.binance.com):
        - GET    /api/v3/exchangeInfo   - Market metadata
        - GET    /api/v3/ticker/24hr    - 24h statistics
        - GET    /api/v3/klines         - Candlesticks
        - POST   /api/v3/order          - Place order
        - DELETE /api/v3/order          - Cancel order
        - GET    /api/v3/order          - Query order
        - GET    /api/v3/account        - Balances

    USD-M Futures (fapi.binance.com):
        - GET    /fapi/v1/exchangeInfo  - Market metadata (PERPETUAL contracts only)
        - GET    /fapi/v1/ticker/24hr   - 24h statistics
        - GET    /fapi/v1/klines        - Candlesticks
        - POST/DELETE/GET /fapi/v1/order
        - GET    /fapi/v2/balance       - Balances
        - GET    /fapi/v2/positionRisk  - Positions
        - GET    /fapi/v1/positionSide/dual - Position mode
        - POST   /fapi/v1/leverage      - Leverage
        - POST   /fapi/v1/marginType    - Margin type

Precision:
    Binance publishes tick and step sizes ("0.01000000"); the number of
    fractional digits they imply becomes pricePrecision / amountPrecision.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from unitrade.core.connector import ExchangeConnector
from unitrade.core.exchange_manager import ExchangeConfig
from unitrade.core.logging import get_logger
from unitrade.core.numeric import div_truncated, parse_decimal, precision_from_step, sub
from unitrade.core.schemas import MarketType
from unitrade.core.utils.time import datetime_to_timestamp
from .api_client import BinanceAPIClient

logger = get_logger(__name__)

# Binance reports quantities with at most 8 fractional digits
_AVERAGE_PRICE_PLACES = 8


def _step_precision(step: Optional[str], fallback: Any) -> int:
    if step is not None and not parse_decimal(step).is_zero():
        return precision_from_step(step)
    return int(fallback)


def _nonzero(value: Any) -> Optional[Any]:
    if value is None or parse_decimal(value).is_zero():
        return None
    return value


def _ms(dt: Optional[datetime]) -> Optional[int]:
    return datetime_to_timestamp(dt, milliseconds=True) if dt is not None else None


class BinanceConnector(ExchangeConnector):
    """
    Binance Spot + USD-M Futures Connector

    Attributes:
        name: Exchange identifier ("binance")
        client: BinanceAPIClient performing the HTTP calls

    Example:
        >>> connector = BinanceConnector(BinanceAPIClient())
        >>> await connector.fetch_markets(MarketType.SPOT)
        [{"id": "BTCUSDT", "base": "BTC", "quote": "USDT", "type": "spot", ...}]
        >>> await connector.shutdown()
    """

    name = "binance"

    def __init__(self, client: BinanceAPIClient):
        self.client = client

    # ============================================
    # Lifecycle
    # ============================================

    async def initialize(self) -> None:
        await self.client.open()
        logger.debug("Binance connector initialized")

    async def shutdown(self) -> None:
        await self.client.close()
        logger.debug("Binance connector shut down")

    # ============================================
    # Market Data
    # ============================================

    async def fetch_markets(self, market_type: MarketType) -> List[Dict[str, Any]]:
        info = await self.client.get_exchange_info(market_type)

        markets = []
        for item in info["symbols"]:
            if market_type is MarketType.PERP and item.get("contractType") != "PERPETUAL":
                continue
            markets.append(self._market_payload(item, market_type))

        return markets

    def _market_payload(self, item: Dict[str, Any], market_type: MarketType) -> Dict[str, Any]:
        filters = {f["filterType"]: f for f in item.get("filters", [])}
        price_filter = filters.get("PRICE_FILTER", {})
        lot_size = filters.get("LOT_SIZE", {})
        # spot uses NOTIONAL (minNotional), futures MIN_NOTIONAL (notional)
        notional = filters.get("NOTIONAL") or filters.get("MIN_NOTIONAL") or {}

        payload = {
            "id": item["symbol"],
            "base": item["baseAsset"],
            "quote": item["quoteAsset"],
            "type": market_type.value,
            "active": item.get("status") == "TRADING",
            "pricePrecision": _step_precision(
                price_filter.get("tickSize"), item.get("pricePrecision", item.get("quotePrecision", 8))
            ),
            "amountPrecision": _step_precision(
                lot_size.get("stepSize"), item.get("quantityPrecision", item.get("baseAssetPrecision", 8))
            ),
            "minQty": _nonzero(lot_size.get("minQty")),
            "maxQty": _nonzero(lot_size.get("maxQty")),
            "minPrice": _nonzero(price_filter.get("minPrice")),
            "maxPrice": _nonzero(price_filter.get("maxPrice")),
            "minNotional": _nonzero(notional.get("minNotional", notional.get("notional"))),
        }

        if market_type is MarketType.PERP:
            payload["settle"] = item.get("marginAsset") or item["quoteAsset"]
            payload["contractSize"] = "1"

        return payload

    async def fetch_ticker(self, market_type: MarketType, native_symbol: str) -> Dict[str, Any]:
        return await self.client.get_ticker_24hr(market_type, native_symbol)

    async def fetch_tickers(self, market_type: MarketType) -> List[Dict[str, Any]]:
        return await self.client.get_ticker_24hr(market_type)

    async def fetch_ohlcv(
        self,
        market_type: MarketType,
        native_symbol: str,
        timeframe: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[List[Any]]:
        rows = await self.client.get_klines(
            market_type,
            native_symbol,
            timeframe,
            limit=limit or 500,
            start_time=_ms(since),
            end_time=_ms(until),
        )
        return [row[:6] for row in rows]

    # ============================================
    # Orders
    # ============================================

    async def place_order(self, market_type: MarketType, request: Dict[str, Any]) -> Dict[str, Any]:
        return await self.client.new_order(market_type, request)

    async def cancel_order(self, market_type: MarketType, native_symbol: str, order_id: str) -> Dict[str, Any]:
        return await self.client.cancel_order(market_type, native_symbol, order_id)

    async def fetch_order(self, market_type: MarketType, native_symbol: str, order_id: str) -> Dict[str, Any]:
        order = dict(await self.client.get_order(market_type, native_symbol, order_id))

        # spot orders carry cumulative quote quantity instead of an average price
        if "avgPrice" not in order and order.get("cummulativeQuoteQty") is not None:
            executed = parse_decimal(order.get("executedQty", "0"))
            if not executed.is_zero():
                order["avgPrice"] = div_truncated(
                    order["cummulativeQuoteQty"], executed, _AVERAGE_PRICE_PLACES
                )

        return order

    # ============================================
    # Account
    # ============================================

    async def fetch_balance(self, market_type: MarketType) -> List[Dict[str, Any]]:
        if market_type is MarketType.SPOT:
            account = await self.client.get_spot_account()
            return [
                {"asset": item["asset"], "free": item["free"], "locked": item["locked"]}
                for item in account["balances"]
            ]

        balances = []
        for item in await self.client.get_futures_balance():
            wallet = parse_decimal(item["balance"])
            available = parse_decimal(item["availableBalance"])
            # available can exceed the wallet balance with unrealized profit
            locked = max(sub(wallet, available), Decimal(0))
            balances.append({"asset": item["asset"], "free": available, "locked": locked})
        return balances

    async def fetch_positions(self) -> List[Dict[str, Any]]:
        positions = []
        for item in await self.client.get_position_risk():
            position = dict(item)
            if position.get("marginType"):
                position["marginType"] = str(position["marginType"]).upper()
            positions.append(position)
        return positions

    async def fetch_position_mode(self) -> Dict[str, Any]:
        return await self.client.get_position_mode()

    async def set_leverage(self, native_symbol: str, leverage: int) -> Dict[str, Any]:
        return await self.client.change_leverage(native_symbol, leverage)

    async def set_margin_type(self, native_symbol: str, margin_type: str) -> Dict[str, Any]:
        return await self.client.change_margin_type(native_symbol, margin_type)


# ============================================
# Factory
# ============================================

def create_connector(config: ExchangeConfig) -> BinanceConnector:
    """
    Build a BinanceConnector from an ExchangeConfig.

    Recognized `config.options`:
        recv_window: recvWindow in ms for signed requests
        timeout: Request timeout in seconds

    No network I/O happens here.
    """
    client = BinanceAPIClient(
        api_key=config.api_key.get_secret_value() if config.api_key else None,
        secret_key=config.secret_key.get_secret_value() if config.secret_key else None,
        sandbox=config.sandbox,
        proxy=config.proxy,
        base_url=config.base_url,
        recv_window=config.options.get("recv_window"),
        timeout=config.options.get("timeout"),
    )
    if config.debug:
        client.logger.setLevel("DEBUG")

    logger.debug(f"Binance connector created (spot={client.spot_url}, perp={client.perp_url})")
    return BinanceConnector(client)


__all__ = ["BinanceAPIClient", "BinanceConnector", "create_connector"]
