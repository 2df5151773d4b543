"""
Canonical Data Schemas

This module defines the exchange-agnostic models returned by every facade
operation. Regardless of which exchange produced the data, callers receive
these types.

Key Principles:
    - Every numeric field is a DecimalValue (exact decimal, floats refused)
    - Every model is frozen; a returned object is a point-in-time snapshot
    - Enumerations are closed; unknown upstream codes are an error, never a default
    - Symbols are canonical: "BTC/USDT" (spot) or "BTC/USDT:USDT" (perp)

Models:
    - Market: static per-symbol trading metadata (owned by MarketRegistry)
    - Ticker: 24h statistics snapshot
    - OHLCV: one candlestick
    - NewOrder: acknowledgement returned by create_order
    - Order / PerpOrder: full order snapshot returned by fetch_order
    - Position: perpetual position snapshot
    - Balance / Balances: account balances
"""

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field

from unitrade.core.numeric import DecimalValue


# ============================================
# Enumerations
# ============================================

class MarketType(str, Enum):
    """Market family a symbol belongs to."""

    SPOT = "spot"
    PERP = "perp"


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class PerpOrderSide(str, Enum):
    """
    Direction of a perpetual order expressed as position intent.

    Each value knows the native order side, the position side it touches and
    whether it can only reduce exposure:

        OPEN_LONG   -> BUY,  LONG,  reduce_only=False
        OPEN_SHORT  -> SELL, SHORT, reduce_only=False
        CLOSE_LONG  -> SELL, LONG,  reduce_only=True
        CLOSE_SHORT -> BUY,  SHORT, reduce_only=True
    """

    OPEN_LONG = "open_long"
    OPEN_SHORT = "open_short"
    CLOSE_LONG = "close_long"
    CLOSE_SHORT = "close_short"

    @property
    def order_side(self) -> OrderSide:
        if self in (PerpOrderSide.OPEN_LONG, PerpOrderSide.CLOSE_SHORT):
            return OrderSide.BUY
        return OrderSide.SELL

    @property
    def position_side(self) -> "PositionSide":
        if self in (PerpOrderSide.OPEN_LONG, PerpOrderSide.CLOSE_LONG):
            return PositionSide.LONG
        return PositionSide.SHORT

    @property
    def reduce_only(self) -> bool:
        return self in (PerpOrderSide.CLOSE_LONG, PerpOrderSide.CLOSE_SHORT)


class OrderType(str, Enum):
    MARKET = "market"
    LIMIT = "limit"


class OrderStatus(str, Enum):
    NEW = "new"
    OPEN = "open"
    PARTIALLY_FILLED = "partially_filled"
    FILLED = "filled"
    CANCELED = "canceled"
    EXPIRED = "expired"
    REJECTED = "rejected"


class TimeInForce(str, Enum):
    """GTC: good till cancel; IOC: immediate or cancel; FOK: fill or kill."""

    GTC = "GTC"
    IOC = "IOC"
    FOK = "FOK"


class MarginType(str, Enum):
    ISOLATED = "isolated"
    CROSS = "cross"


class PositionSide(str, Enum):
    LONG = "long"
    SHORT = "short"


class Timeframe(str, Enum):
    """Candlestick intervals accepted by fetch_ohlcv."""

    M1 = "1m"
    M3 = "3m"
    M5 = "5m"
    M15 = "15m"
    M30 = "30m"
    H1 = "1h"
    H2 = "2h"
    H4 = "4h"
    H6 = "6h"
    H8 = "8h"
    H12 = "12h"
    D1 = "1d"
    D3 = "3d"
    W1 = "1w"
    MO1 = "1M"


# ============================================
# Base Model
# ============================================

class CanonicalModel(BaseModel):
    """Base for all canonical snapshots: immutable, no unknown fields."""

    model_config = ConfigDict(frozen=True, extra="forbid")


# ============================================
# Market
# ============================================

class Market(CanonicalModel):
    """
    Market Metadata

    Static trading metadata for one symbol. Created and replaced wholesale by
    MarketRegistry on every (re)load; never mutated.

    Attributes:
        symbol: Canonical symbol ("BTC/USDT" or "BTC/USDT:USDT")
        id: Exchange-native identifier ("BTCUSDT")
        base / quote / settle: Asset codes; settle only for perpetuals
        type: MarketType.SPOT or MarketType.PERP
        active: Whether the market currently accepts orders
        price_precision: Fractional digits allowed in prices
        amount_precision: Fractional digits allowed in amounts
        min_amount / max_amount: Order size limits in base asset
        min_price / max_price: Price limits
        min_cost: Minimum notional (price * amount)
        contract_size: Base units per contract (perpetuals)

    Example:
        >>> Market(symbol="BTC/USDT", id="BTCUSDT", base="BTC", quote="USDT",
        ...        type=MarketType.SPOT, price_precision=2, amount_precision=4)
    """

    symbol: str
    id: str
    base: str
    quote: str
    settle: Optional[str] = None
    type: MarketType
    active: bool = True
    price_precision: int = Field(..., ge=0)
    amount_precision: int = Field(..., ge=0)
    min_amount: Optional[DecimalValue] = None
    max_amount: Optional[DecimalValue] = None
    min_price: Optional[DecimalValue] = None
    max_price: Optional[DecimalValue] = None
    min_cost: Optional[DecimalValue] = None
    contract_size: Optional[DecimalValue] = None


# ============================================
# Market Data
# ============================================

class Ticker(CanonicalModel):
    """
    24h Ticker Snapshot

    Fields an exchange does not report (e.g. bid/ask on some perpetual
    endpoints) are None. Not retained anywhere; re-fetch for fresh values.
    """

    symbol: str
    last: Optional[DecimalValue] = None
    bid: Optional[DecimalValue] = None
    ask: Optional[DecimalValue] = None
    open: Optional[DecimalValue] = None
    high: Optional[DecimalValue] = None
    low: Optional[DecimalValue] = None
    volume: Optional[DecimalValue] = Field(None, description="24h volume in base asset")
    quote_volume: Optional[DecimalValue] = Field(None, description="24h volume in quote asset")
    change_percent: Optional[DecimalValue] = Field(None, description="24h price change in percent")
    timestamp: Optional[datetime] = Field(None, description="Close time of the 24h window, when reported")


class OHLCV(CanonicalModel):
    """One candlestick. A series is a list sorted ascending by timestamp."""

    timestamp: datetime = Field(..., description="Candle open time in UTC")
    open: DecimalValue
    high: DecimalValue
    low: DecimalValue
    close: DecimalValue
    volume: DecimalValue


# ============================================
# Orders
# ============================================

class NewOrder(CanonicalModel):
    """
    Order Acknowledgement

    Returned by create_order. The library keeps no order state; call
    fetch_order to observe fills and status changes.
    """

    id: str
    client_order_id: Optional[str] = None
    symbol: str
    side: OrderSide
    type: OrderType
    amount: DecimalValue
    price: Optional[DecimalValue] = None
    status: OrderStatus
    timestamp: Optional[datetime] = None


class Order(CanonicalModel):
    """Full order snapshot returned by fetch_order."""

    id: str
    client_order_id: Optional[str] = None
    symbol: str
    side: OrderSide
    type: OrderType
    amount: DecimalValue
    price: Optional[DecimalValue] = None
    filled: DecimalValue
    remaining: DecimalValue
    average: Optional[DecimalValue] = None
    status: OrderStatus
    time_in_force: Optional[TimeInForce] = None
    timestamp: Optional[datetime] = None


class PerpOrder(Order):
    """Perpetual order snapshot; adds the position leg the order acts on."""

    position_side: Optional[PositionSide] = None
    reduce_only: bool = False


# ============================================
# Positions
# ============================================

class Position(CanonicalModel):
    """
    Perpetual Position Snapshot

    `size` is always positive; direction is carried by `side`.
    """

    symbol: str
    side: PositionSide
    size: DecimalValue
    entry_price: DecimalValue
    mark_price: Optional[DecimalValue] = None
    liquidation_price: Optional[DecimalValue] = None
    unrealized_pnl: Optional[DecimalValue] = None
    leverage: Optional[DecimalValue] = None
    margin_type: Optional[MarginType] = None
    timestamp: Optional[datetime] = None


# ============================================
# Balances
# ============================================

class Balance(CanonicalModel):
    currency: str
    free: DecimalValue
    used: DecimalValue
    total: DecimalValue


class Balances(Mapping):
    """
    Read-only mapping of currency code to Balance.

    Example:
        >>> balances["USDT"].free
        Decimal('120.5')
        >>> balances.get("DOGE").total   # unknown currency -> zero balance
        Decimal('0')
    """

    def __init__(self, balances: Dict[str, Balance]):
        self._balances = MappingProxyType(dict(balances))

    def __getitem__(self, currency: str) -> Balance:
        return self._balances[currency]

    def __iter__(self) -> Iterator[str]:
        return iter(self._balances)

    def __len__(self) -> int:
        return len(self._balances)

    def get(self, currency: str, default: Optional[Balance] = None) -> Balance:
        if currency in self._balances:
            return self._balances[currency]
        if default is not None:
            return default
        return Balance(currency=currency, free=0, used=0, total=0)

    def __repr__(self) -> str:
        return f"Balances({dict(self._balances)!r})"
