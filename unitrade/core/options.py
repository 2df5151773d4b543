"""
Request Options

Optional request parameters are expressed as composable option values
instead of long keyword lists. Each `with_*` constructor returns a function
that takes a RequestOptions and returns a copy with one field (or one small
group of related fields) replaced.

Composition rules:
    - Options are applied left to right
    - Last write wins when two options set the same field
    - Applying options never validates anything; each operation checks the
      finished RequestOptions and raises MissingRequiredField or
      InvalidOptionCombination itself
    - Options an operation does not use are ignored

Usage:
    from unitrade.core.options import with_price, with_time_in_force

    await exchange.spot.create_order(
        "DOGE/USDT", OrderSide.BUY, "50",
        with_price("0.11"),
        with_time_in_force(TimeInForce.IOC),
    )
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

from unitrade.core.schemas import MarginType, OrderType, TimeInForce


class RequestOptions(BaseModel):
    """
    Finished set of optional request fields.

    Every field defaults to None, meaning "not set". `price` holds the
    caller's literal unparsed; it is parsed by the operation that uses it so
    the resulting InvalidNumericLiteral surfaces at the call site.
    """

    model_config = ConfigDict(frozen=True)

    limit: Optional[int] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    symbols: Optional[Tuple[str, ...]] = None
    order_type: Optional[OrderType] = None
    price: Optional[Any] = None
    client_order_id: Optional[str] = None
    time_in_force: Optional[TimeInForce] = None
    hedge_mode: Optional[bool] = None
    reduce_only: Optional[bool] = None
    leverage: Optional[int] = None
    margin_type: Optional[MarginType] = None


Option = Callable[[RequestOptions], RequestOptions]


def _setter(**fields) -> Option:
    def apply(options: RequestOptions) -> RequestOptions:
        return options.model_copy(update=fields)
    return apply


def apply_options(*options: Option, base: Optional[RequestOptions] = None) -> RequestOptions:
    """
    Fold options left to right into a RequestOptions.

    Args:
        *options: Option functions produced by the with_* constructors
        base: Starting value (defaults to all fields unset)

    Returns:
        RequestOptions: the finished, immutable request options

    Example:
        >>> opts = apply_options(with_limit(10), with_limit(20))
        >>> opts.limit
        20
    """
    result = base if base is not None else RequestOptions()
    for option in options:
        result = option(result)
    return result


# ============================================
# Market Data Options
# ============================================

def with_limit(limit: int) -> Option:
    """Maximum number of records (candles, trades) to return."""
    return _setter(limit=limit)


def with_since(since: datetime) -> Option:
    """Start of the requested time window."""
    return _setter(since=since)


def with_time_window(since: datetime, until: datetime) -> Option:
    """Start and end of the requested time window, set together."""
    return _setter(since=since, until=until)


def with_symbols(*symbols: Union[str, Iterable[str]]) -> Option:
    """
    Restrict a multi-symbol query (fetch_tickers, fetch_positions).

    Accepts either several symbols or one iterable of symbols:
        with_symbols("BTC/USDT", "ETH/USDT")
        with_symbols(["BTC/USDT", "ETH/USDT"])
    """
    if len(symbols) == 1 and not isinstance(symbols[0], str):
        symbols = tuple(symbols[0])
    return _setter(symbols=tuple(symbols))


# ============================================
# Order Options
# ============================================

def with_order_type(order_type: OrderType) -> Option:
    return _setter(order_type=order_type)


def with_price(price: Union[str, int, Decimal]) -> Option:
    """Limit price; kept as given until the order is built."""
    return _setter(price=price)


def with_client_order_id(client_order_id: str) -> Option:
    return _setter(client_order_id=client_order_id)


def with_time_in_force(time_in_force: TimeInForce) -> Option:
    return _setter(time_in_force=time_in_force)


def with_hedge_mode(hedge_mode: bool = True) -> Option:
    """Perpetuals: account runs separate long and short position legs."""
    return _setter(hedge_mode=hedge_mode)


def with_reduce_only(reduce_only: bool = True) -> Option:
    return _setter(reduce_only=reduce_only)


# ============================================
# Perpetual Account Options
# ============================================

def with_leverage(leverage: int) -> Option:
    return _setter(leverage=leverage)


def with_margin_type(margin_type: MarginType) -> Option:
    return _setter(margin_type=margin_type)
