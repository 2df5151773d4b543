"""
Exchange Interface: Capability Contracts for Trading Facades

This module defines what a caller can do with an exchange, independent of
which exchange it is. Capabilities are small abstract base classes; the Spot
and Perp interfaces combine them:

    SpotExchange = MarketDataCapable + AccountCapable + OrderCapable
    PerpExchange = SpotExchange capabilities + LeverageCapable + PositionCapable

Design Philosophy:
    "Program to an interface, not an implementation"

    Strategy code receives a SpotExchange or PerpExchange and never needs to
    know whether Binance or another connector sits underneath:

        async def buy_dip(spot: SpotExchange):
            ticker = await spot.fetch_ticker("BTC/USDT")
            ...

    isinstance(exchange.perp, LeverageCapable) is True, while
    isinstance(exchange.spot, LeverageCapable) is False, so optional
    features can be checked without try/except.

Common Behavior (every operation):
    1. Arguments are validated (InvalidArgument) before anything else
    2. The symbol is resolved through the Market Registry
       (RegistryNotLoaded / MarketNotFound)
    3. Amounts and prices are truncated to the market's precision
    4. The connector is called; failures surface as ConnectorError
    5. The native payload is normalized into canonical models
"""

from abc import ABC, abstractmethod
from typing import List, Tuple, Union

from unitrade.core.numeric import NumericInput
from unitrade.core.options import Option
from unitrade.core.schemas import (
    OHLCV,
    Balances,
    MarginType,
    Market,
    MarketType,
    NewOrder,
    Order,
    OrderSide,
    PerpOrderSide,
    Position,
    Ticker,
    Timeframe,
)


# ============================================
# Capabilities
# ============================================

class MarketDataCapable(ABC):
    """Market metadata and public market data."""

    market_type: MarketType

    @abstractmethod
    async def load_markets(self, reload: bool = False) -> Tuple[Market, ...]:
        """
        Load (or reload) market metadata into the registry.

        Must be awaited once before any other operation; operations never
        load implicitly.

        Raises:
            ConnectorError: The fetch failed; previously loaded markets stay in use
        """
        ...

    @abstractmethod
    async def fetch_markets(self) -> List[Market]:
        """Fetch current market metadata without replacing the loaded registry."""
        ...

    @abstractmethod
    def get_market(self, symbol: str) -> Market:
        """
        Look up a loaded market by canonical symbol.

        Raises:
            RegistryNotLoaded: load_markets() never succeeded
            MarketNotFound: Symbol unknown
        """
        ...

    @abstractmethod
    def get_markets(self) -> Tuple[Market, ...]:
        ...

    @abstractmethod
    async def fetch_ticker(self, symbol: str) -> Ticker:
        """
        Fetch the 24h ticker for one symbol.

        Example:
            >>> ticker = await exchange.spot.fetch_ticker("BTC/USDT")
            >>> ticker.last
            Decimal('43250.10')
        """
        ...

    @abstractmethod
    async def fetch_tickers(self, *options: Option) -> List[Ticker]:
        """
        Fetch tickers for every loaded market, or for with_symbols(...) only.

        Symbols the exchange reports but the registry does not know are skipped.
        """
        ...

    @abstractmethod
    async def fetch_ohlcv(
        self,
        symbol: str,
        timeframe: Union[Timeframe, str],
        *options: Option
    ) -> List[OHLCV]:
        """
        Fetch candlesticks, oldest first.

        Options:
            with_limit(n): number of candles (default from settings)
            with_since(dt) / with_time_window(since, until): time range

        Raises:
            InvalidArgument: Unknown timeframe, non-positive limit, since > until
        """
        ...


class AccountCapable(ABC):
    """Account balances."""

    @abstractmethod
    async def fetch_balance(self) -> Balances:
        """
        Fetch balances of this market type's account.

        Example:
            >>> balances = await exchange.spot.fetch_balance()
            >>> balances.get("USDT").free
            Decimal('120.5')
        """
        ...


class OrderCapable(ABC):
    """Order lifecycle. The library keeps no local order state."""

    @abstractmethod
    async def create_order(
        self,
        symbol: str,
        side: Union[OrderSide, PerpOrderSide],
        amount: NumericInput,
        *options: Option
    ) -> NewOrder:
        """
        Place an order.

        Order type is market unless with_price(...) is given (then limit) or
        with_order_type(...) says otherwise. Limit orders default to GTC.

        Raises:
            InvalidArgument: Bad amount/price, amount below the market minimum
            MissingRequiredField: Limit order without price
            InvalidOptionCombination: Market order with price, leverage or
                                      margin options on an order
            ConnectorError: The exchange rejected or failed the request
        """
        ...

    @abstractmethod
    async def cancel_order(self, symbol: str, order_id: str) -> None:
        """
        Cancel an order.

        Raises:
            OrderNotFound: The exchange does not know the order
        """
        ...

    @abstractmethod
    async def fetch_order(self, symbol: str, order_id: str) -> Order:
        """
        Fetch the current state of an order.

        Raises:
            OrderNotFound: The exchange does not know the order
            UnknownEnumValue: The exchange reported an unmapped status/side/type
        """
        ...


class LeverageCapable(ABC):
    """Per-symbol leverage and margin mode (perpetuals)."""

    @abstractmethod
    async def set_leverage(self, symbol: str, leverage: int) -> None:
        """
        Set leverage for one symbol.

        Raises:
            InvalidArgument: leverage is not a positive integer
        """
        ...

    @abstractmethod
    async def set_margin_type(self, symbol: str, margin_type: MarginType) -> None:
        ...


class PositionCapable(ABC):
    """Open positions (perpetuals)."""

    @abstractmethod
    async def fetch_positions(self, *options: Option) -> List[Position]:
        """
        Fetch open positions; with_symbols(...) restricts the result.

        Flat positions (size zero) are omitted.
        """
        ...


# ============================================
# Market Type Interfaces
# ============================================

class SpotExchange(MarketDataCapable, AccountCapable, OrderCapable):
    """Everything available on a spot market."""

    market_type = MarketType.SPOT


class PerpExchange(MarketDataCapable, AccountCapable, OrderCapable, LeverageCapable, PositionCapable):
    """
    Everything available on a perpetual futures market.

    create_order takes a PerpOrderSide (OPEN_LONG, CLOSE_SHORT, ...) and
    fetch_order returns a PerpOrder.
    """

    market_type = MarketType.PERP
