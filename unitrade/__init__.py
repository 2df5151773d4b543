"""
unitrade: Unified Exchange Trading Client

One canonical vocabulary (symbols, sides, order types, exact decimal
amounts) for spot and perpetual trading across exchanges.

Quick Start:
    from unitrade import ExchangeConfig, OrderSide, new_exchange, with_price

    async with new_exchange("binance", ExchangeConfig(sandbox=True)) as exchange:
        await exchange.spot.load_markets()
        ticker = await exchange.spot.fetch_ticker("BTC/USDT")
        print(ticker.last)
"""

from unitrade.core.errors import (
    AuthError,
    ConnectorError,
    ConnectorFailure,
    DivisionByZero,
    ExchangeAPIError,
    ExchangeNotSupported,
    InvalidArgument,
    InvalidNumericLiteral,
    InvalidOptionCombination,
    MarketNotFound,
    MissingRequiredField,
    NetworkError,
    OrderNotFound,
    PrecisionOverflow,
    RateLimitError,
    RegistryNotLoaded,
    UnitradeError,
    UnknownEnumValue,
)
from unitrade.core.exchange_manager import Exchange, ExchangeConfig, ExchangeManager, new_exchange
from unitrade.core.options import (
    RequestOptions,
    apply_options,
    with_client_order_id,
    with_hedge_mode,
    with_leverage,
    with_limit,
    with_margin_type,
    with_order_type,
    with_price,
    with_reduce_only,
    with_since,
    with_symbols,
    with_time_in_force,
    with_time_window,
)
from unitrade.core.schemas import (
    OHLCV,
    Balance,
    Balances,
    MarginType,
    Market,
    MarketType,
    NewOrder,
    Order,
    OrderSide,
    OrderStatus,
    OrderType,
    PerpOrder,
    PerpOrderSide,
    Position,
    PositionSide,
    Ticker,
    TimeInForce,
    Timeframe,
)

__version__ = "0.1.0"
