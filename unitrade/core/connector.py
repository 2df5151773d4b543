"""
Exchange Connector: Abstract Contract for Exchange I/O

This module defines the abstract base class every exchange connector must
implement. A connector is the only component that talks to an exchange: it
owns the HTTP session, request signing and the exchange's wire format. The
trading facade never sees any of that.

Design Philosophy:
    "Connectors move bytes, the core gives them meaning"

    A connector returns native payloads (plain dicts / lists keyed with the
    vocabulary below) and never builds canonical models. Market lookup,
    symbol translation, precision handling and enum mapping all happen in
    the core, once, for every exchange.

Payload Vocabulary:
    Numbers are text or Decimal (JSON decoded with parse_float=Decimal),
    never float. Enum codes are upper case native codes:

        side:          BUY, SELL
        type:          MARKET, LIMIT
        status:        NEW, PARTIALLY_FILLED, FILLED, CANCELED, EXPIRED, REJECTED
        positionSide:  LONG, SHORT, BOTH
        marginType:    ISOLATED, CROSSED
        timeInForce:   GTC, IOC, FOK

Failures:
    Connectors raise NetworkError, AuthError, RateLimitError or
    ExchangeAPIError (see core/errors.py), and OrderNotFound when the
    exchange reports an unknown order. Connectors do not retry.

Example:
    class BinanceConnector(ExchangeConnector):
        name = "binance"

        async def fetch_ticker(self, market_type, native_symbol):
            # GET /api/v3/ticker/24hr?symbol=BTCUSDT
            ...
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from unitrade.core.schemas import MarketType


class ExchangeConnector(ABC):
    """
    Abstract Base Class for Exchange Connectors

    Class Attributes:
        name: Unique identifier for the exchange (lowercase, e.g. "binance")

    Abstract Methods (MUST be implemented by all connectors):
        - fetch_markets: Static market metadata for one market type
        - fetch_ticker / fetch_tickers: 24h statistics
        - fetch_ohlcv: Candlesticks
        - place_order / cancel_order / fetch_order: Order lifecycle
        - fetch_balance: Account balances
        - fetch_positions: Perpetual positions
        - set_leverage / set_margin_type: Perpetual account settings
        - fetch_position_mode: Perpetual one-way or hedge mode

    Optional Methods (can be overridden):
        - initialize: Open sessions
        - shutdown: Release sessions
    """

    name: str
    """Unique exchange identifier (lowercase). Example: "binance" """

    # ============================================
    # Market Data
    # ============================================

    @abstractmethod
    async def fetch_markets(self, market_type: MarketType) -> List[Dict[str, Any]]:
        """
        Fetch static metadata for every market of one type.

        Returns:
            List of dicts with keys:
                id, base, quote, settle (perp only), type ("spot"|"perp"),
                active, pricePrecision, amountPrecision and optionally
                minQty, maxQty, minPrice, maxPrice, minNotional, contractSize

        Example:
            >>> await connector.fetch_markets(MarketType.SPOT)
            [{"id": "BTCUSDT", "base": "BTC", "quote": "USDT", "type": "spot",
              "active": True, "pricePrecision": 2, "amountPrecision": 5, ...}]
        """
        ...

    @abstractmethod
    async def fetch_ticker(self, market_type: MarketType, native_symbol: str) -> Dict[str, Any]:
        """
        Fetch 24h statistics for one native symbol.

        Returns:
            Dict with lastPrice, bidPrice, askPrice, openPrice, highPrice,
            lowPrice, volume, quoteVolume, priceChangePercent, closeTime (ms).
            Keys the exchange does not provide may be missing.
        """
        ...

    @abstractmethod
    async def fetch_tickers(self, market_type: MarketType) -> List[Dict[str, Any]]:
        """Fetch 24h statistics for every symbol; same keys as fetch_ticker plus `symbol`."""
        ...

    @abstractmethod
    async def fetch_ohlcv(
        self,
        market_type: MarketType,
        native_symbol: str,
        timeframe: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[List[Any]]:
        """
        Fetch candlesticks.

        Returns:
            Rows of [open_time_ms, open, high, low, close, volume], in any order
        """
        ...

    # ============================================
    # Orders
    # ============================================

    @abstractmethod
    async def place_order(self, market_type: MarketType, request: Dict[str, Any]) -> Dict[str, Any]:
        """
        Submit an order.

        Args:
            market_type: Market the native symbol belongs to
            request: Native order request built by the facade:
                symbol, side, type, quantity, and when relevant price,
                timeInForce, newClientOrderId, positionSide, reduceOnly.
                Decimal fields are fixed-point text already truncated to the
                market's precision.

        Returns:
            Dict with orderId, clientOrderId, status and transactTime or updateTime
        """
        ...

    @abstractmethod
    async def cancel_order(self, market_type: MarketType, native_symbol: str, order_id: str) -> Dict[str, Any]:
        """Cancel an order. Raises OrderNotFound when the exchange does not know it."""
        ...

    @abstractmethod
    async def fetch_order(self, market_type: MarketType, native_symbol: str, order_id: str) -> Dict[str, Any]:
        """
        Fetch one order.

        Returns:
            Dict with orderId, clientOrderId, side, type, status, origQty,
            price, executedQty, avgPrice, timeInForce, time or updateTime,
            and for perpetuals positionSide and reduceOnly

        Raises:
            OrderNotFound: The exchange does not know the order
        """
        ...

    # ============================================
    # Account
    # ============================================

    @abstractmethod
    async def fetch_balance(self, market_type: MarketType) -> List[Dict[str, Any]]:
        """Fetch balances as dicts with asset, free, locked."""
        ...

    @abstractmethod
    async def fetch_positions(self) -> List[Dict[str, Any]]:
        """
        Fetch perpetual positions.

        Returns:
            Dicts with symbol, positionAmt (signed), entryPrice, markPrice,
            liquidationPrice, unRealizedProfit, leverage, marginType,
            updateTime, and positionSide when the account is in hedge mode
        """
        ...

    @abstractmethod
    async def fetch_position_mode(self) -> Dict[str, Any]:
        """
        Fetch the perpetual account's position mode.

        Returns:
            Dict with dualSidePosition: true when the account runs separate
            long and short legs (hedge mode)
        """
        ...

    @abstractmethod
    async def set_leverage(self, native_symbol: str, leverage: int) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def set_margin_type(self, native_symbol: str, margin_type: str) -> Dict[str, Any]:
        """Set margin mode; `margin_type` is the native code (ISOLATED or CROSSED)."""
        ...

    # ============================================
    # Optional Lifecycle Methods
    # ============================================

    async def initialize(self) -> None:
        """
        Prepare the connector (e.g. open the HTTP session).

        Optional; default does nothing. Must be idempotent.
        """
        pass

    async def shutdown(self) -> None:
        """
        Release connector resources.

        Optional; default does nothing. Safe to call more than once.
        """
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name='{self.name}')>"
