"""
Unified Trading Facade

SpotTrading and PerpTrading implement the SpotExchange / PerpExchange
interfaces on top of one ExchangeConnector. Every operation runs the same
pipeline:

    1. validate arguments            -> InvalidArgument (no network)
    2. resolve symbol in registry    -> RegistryNotLoaded / MarketNotFound
    3. truncate amount/price         -> toward zero, market precision
    4. call the connector            -> failures wrapped in ConnectorError
    5. normalize the native payload  -> canonical models; unknown enum
                                        codes raise UnknownEnumValue

Nothing here retries, caches orders or loads markets implicitly.

Native enum codes are translated through the fixed tables below. A code
missing from a table is an error, never a default: reporting an unknown
order status as "open" would misrepresent what the exchange did.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from time import monotonic
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from unitrade.core.config import settings
from unitrade.core.connector import ExchangeConnector
from unitrade.core.errors import (
    ConnectorError,
    InvalidArgument,
    InvalidOptionCombination,
    MissingRequiredField,
    OrderNotFound,
    UnknownEnumValue,
)
from unitrade.core.exchange_interface import PerpExchange, SpotExchange
from unitrade.core.logging import get_logger
from unitrade.core.market_registry import MarketRegistry
from unitrade.core.numeric import NumericInput, add, format_fixed, mul, parse_decimal, sub, truncate
from unitrade.core.options import Option, RequestOptions, apply_options
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
from unitrade.core.utils import generate_client_order_id, to_utc_datetime

logger = get_logger(__name__)


# ============================================
# Native Code Tables
# ============================================

ORDER_SIDES: Dict[str, OrderSide] = {
    "BUY": OrderSide.BUY,
    "SELL": OrderSide.SELL,
}

ORDER_TYPES: Dict[str, OrderType] = {
    "MARKET": OrderType.MARKET,
    "LIMIT": OrderType.LIMIT,
    "LIMIT_MAKER": OrderType.LIMIT,
}

ORDER_STATUSES: Dict[str, OrderStatus] = {
    "NEW": OrderStatus.NEW,
    "OPEN": OrderStatus.OPEN,
    "PENDING_CANCEL": OrderStatus.OPEN,
    "PARTIALLY_FILLED": OrderStatus.PARTIALLY_FILLED,
    "FILLED": OrderStatus.FILLED,
    "CANCELED": OrderStatus.CANCELED,
    "EXPIRED": OrderStatus.EXPIRED,
    "EXPIRED_IN_MATCH": OrderStatus.EXPIRED,
    "REJECTED": OrderStatus.REJECTED,
}

TIME_IN_FORCE: Dict[str, TimeInForce] = {
    "GTC": TimeInForce.GTC,
    "IOC": TimeInForce.IOC,
    "FOK": TimeInForce.FOK,
}

# BOTH is the single leg of a one-way account; direction then comes from the sign
POSITION_SIDES: Dict[str, Optional[PositionSide]] = {
    "LONG": PositionSide.LONG,
    "SHORT": PositionSide.SHORT,
    "BOTH": None,
}

MARGIN_TYPES: Dict[str, MarginType] = {
    "ISOLATED": MarginType.ISOLATED,
    "CROSSED": MarginType.CROSS,
    "CROSS": MarginType.CROSS,
}

NATIVE_ORDER_SIDES = {OrderSide.BUY: "BUY", OrderSide.SELL: "SELL"}
NATIVE_ORDER_TYPES = {OrderType.MARKET: "MARKET", OrderType.LIMIT: "LIMIT"}
NATIVE_POSITION_SIDES = {PositionSide.LONG: "LONG", PositionSide.SHORT: "SHORT"}
NATIVE_MARGIN_TYPES = {MarginType.ISOLATED: "ISOLATED", MarginType.CROSS: "CROSSED"}


def map_native_code(table: Dict[str, Any], field: str, code: Any) -> Any:
    """Translate a native enum code, raising UnknownEnumValue when it is not in `table`."""
    try:
        return table[code]
    except (KeyError, TypeError):
        raise UnknownEnumValue(field, code)


# ============================================
# Argument Validation
# ============================================

def _require_symbol(symbol: Any) -> str:
    if not isinstance(symbol, str) or not symbol.strip():
        raise InvalidArgument(f"symbol must be a non-empty string, got {symbol!r}")
    return symbol


def _require_order_id(order_id: Any) -> str:
    if isinstance(order_id, bool) or not isinstance(order_id, (str, int)) or not str(order_id).strip():
        raise InvalidArgument(f"order_id must be a non-empty string, got {order_id!r}")
    return str(order_id)


def _require_positive(name: str, value: NumericInput) -> Decimal:
    number = parse_decimal(value)
    if number <= 0:
        raise InvalidArgument(f"{name} must be greater than 0, got {value}")
    return number


def _require_positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgument(f"{name} must be a positive integer, got {value!r}")
    return value


def _require_enum(enum_type, name: str, value: Any):
    try:
        return enum_type(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_type)
        raise InvalidArgument(f"Invalid {name} {value!r}. Must be one of: {choices}")


def _require_datetime(name: str, value: Any) -> Optional[datetime]:
    """Naive datetimes are taken as UTC, the same rule datetime_to_timestamp applies."""
    if value is None:
        return None
    if not isinstance(value, datetime):
        raise InvalidArgument(f"{name} must be a datetime, got {value!r}")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _require_symbols(symbols: Optional[Tuple[str, ...]]) -> Optional[Tuple[str, ...]]:
    if symbols is None:
        return None
    if not symbols:
        raise InvalidArgument("with_symbols() needs at least one symbol")
    return tuple(_require_symbol(symbol) for symbol in symbols)


# ============================================
# Payload Helpers
# ============================================

def _optional_decimal(raw: Dict[str, Any], key: str) -> Optional[Decimal]:
    value = raw.get(key)
    if value is None or value == "":
        return None
    return parse_decimal(value)


def _nonzero_decimal(raw: Dict[str, Any], key: str) -> Optional[Decimal]:
    """Binance-style payloads report "0.00000000" for 'no price'."""
    value = _optional_decimal(raw, key)
    if value is None or value.is_zero():
        return None
    return value


def _timestamp(raw: Dict[str, Any], *keys: str) -> Optional[datetime]:
    for key in keys:
        value = raw.get(key)
        if value not in (None, "", 0, "0"):
            return to_utc_datetime(value)
    return None


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def ticker_from_payload(raw: Dict[str, Any], symbol: str) -> Ticker:
    return Ticker(
        symbol=symbol,
        last=_optional_decimal(raw, "lastPrice"),
        bid=_optional_decimal(raw, "bidPrice"),
        ask=_optional_decimal(raw, "askPrice"),
        open=_optional_decimal(raw, "openPrice"),
        high=_optional_decimal(raw, "highPrice"),
        low=_optional_decimal(raw, "lowPrice"),
        volume=_optional_decimal(raw, "volume"),
        quote_volume=_optional_decimal(raw, "quoteVolume"),
        change_percent=_optional_decimal(raw, "priceChangePercent"),
        timestamp=_timestamp(raw, "closeTime"),
    )


def ohlcv_from_row(row: List[Any]) -> OHLCV:
    return OHLCV(
        timestamp=to_utc_datetime(row[0]),
        open=row[1],
        high=row[2],
        low=row[3],
        close=row[4],
        volume=row[5],
    )


# ============================================
# Shared Facade
# ============================================

class _TradingFacade:
    """
    Behavior shared by SpotTrading and PerpTrading.

    Holds the connector and this market type's MarketRegistry; subclasses
    only add what differs (order sides, perp-only operations).
    """

    market_type: MarketType

    def __init__(self, connector: ExchangeConnector):
        self._connector = connector
        self._registry = MarketRegistry(connector, self.market_type)

    @property
    def registry(self) -> MarketRegistry:
        return self._registry

    @property
    def exchange_name(self) -> str:
        return self._connector.name

    # ============================================
    # Connector Boundary
    # ============================================

    async def _call(self, operation: str, symbol: Optional[str], method, *args):
        """
        Await one connector method, wrapping any failure in ConnectorError.

        OrderNotFound passes through unchanged; task cancellation is a
        BaseException and is never intercepted.
        """
        try:
            return await method(*args)
        except OrderNotFound:
            raise
        except Exception as e:
            target = f"{operation}({symbol})" if symbol else operation
            logger.warning(f"{self.exchange_name} {self.market_type.value} {target} failed: {e}")
            raise ConnectorError(operation, e, symbol) from e

    @contextmanager
    def _normalizing(self, operation: str, symbol: Optional[str] = None) -> Iterator[None]:
        """Turn malformed connector payloads into ConnectorError."""
        try:
            yield
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning(f"{self.exchange_name} returned a malformed {operation} payload: {e}")
            raise ConnectorError(operation, e, symbol) from e

    # ============================================
    # Markets
    # ============================================

    async def load_markets(self, reload: bool = False) -> Tuple[Market, ...]:
        return await self._registry.load_markets(reload)

    async def fetch_markets(self) -> List[Market]:
        return await self._registry.fetch_markets()

    def get_market(self, symbol: str) -> Market:
        return self._registry.get_market(_require_symbol(symbol))

    def get_markets(self) -> Tuple[Market, ...]:
        return self._registry.get_markets()

    def _markets_for(self, symbols: Optional[Tuple[str, ...]]) -> Dict[str, Market]:
        """Native id -> Market for the requested symbols, or for every loaded market."""
        if symbols is None:
            markets = self._registry.get_markets()
        else:
            markets = [self._registry.get_market(symbol) for symbol in symbols]
        return {market.id: market for market in markets}

    # ============================================
    # Market Data
    # ============================================

    async def fetch_ticker(self, symbol: str) -> Ticker:
        market = self.get_market(symbol)

        raw = await self._call(
            "fetch_ticker", symbol, self._connector.fetch_ticker, self.market_type, market.id
        )

        with self._normalizing("fetch_ticker", symbol):
            return ticker_from_payload(raw, market.symbol)

    async def fetch_tickers(self, *options: Option) -> List[Ticker]:
        opts = apply_options(*options)
        symbols = _require_symbols(opts.symbols)
        wanted = self._markets_for(symbols)

        raws = await self._call("fetch_tickers", None, self._connector.fetch_tickers, self.market_type)

        tickers = []
        with self._normalizing("fetch_tickers"):
            for raw in raws:
                market = wanted.get(raw["symbol"])
                if market is not None:
                    tickers.append(ticker_from_payload(raw, market.symbol))

        logger.debug(f"{self.exchange_name} {self.market_type.value}: {len(tickers)} tickers")
        return tickers

    async def fetch_ohlcv(
        self,
        symbol: str,
        timeframe: Union[Timeframe, str],
        *options: Option
    ) -> List[OHLCV]:
        _require_symbol(symbol)
        timeframe = _require_enum(Timeframe, "timeframe", timeframe)
        opts = apply_options(*options)

        limit = opts.limit if opts.limit is not None else settings.default_ohlcv_limit
        _require_positive_int("limit", limit)
        since = _require_datetime("since", opts.since)
        until = _require_datetime("until", opts.until)
        if since is not None and until is not None and since > until:
            raise InvalidArgument(f"since ({since}) is after until ({until})")

        market = self._registry.get_market(symbol)

        rows = await self._call(
            "fetch_ohlcv", symbol, self._connector.fetch_ohlcv,
            self.market_type, market.id, timeframe.value, since, until, limit
        )

        with self._normalizing("fetch_ohlcv", symbol):
            candles = [ohlcv_from_row(row) for row in rows]

        candles.sort(key=lambda candle: candle.timestamp)
        return candles

    # ============================================
    # Account
    # ============================================

    async def fetch_balance(self) -> Balances:
        # balances need no symbol, but an unloaded registry still fails first
        self._registry.get_markets()

        raws = await self._call("fetch_balance", None, self._connector.fetch_balance, self.market_type)

        balances: Dict[str, Balance] = {}
        with self._normalizing("fetch_balance"):
            for raw in raws:
                free = parse_decimal(raw["free"])
                used = parse_decimal(raw["locked"])
                currency = raw["asset"].upper()
                balances[currency] = Balance(currency=currency, free=free, used=used, total=add(free, used))

        return Balances(balances)

    # ============================================
    # Orders
    # ============================================

    def _resolve_order(
        self,
        opts: RequestOptions
    ) -> Tuple[OrderType, Optional[Decimal], Optional[TimeInForce], str]:
        """Validate order options; returns (type, price, time in force, client order id)."""
        if opts.leverage is not None or opts.margin_type is not None:
            raise InvalidOptionCombination(
                "Leverage and margin type cannot be passed to create_order; "
                "call set_leverage() / set_margin_type() before placing the order"
            )

        price = _require_positive("price", opts.price) if opts.price is not None else None

        if opts.order_type is not None:
            order_type = _require_enum(OrderType, "order_type", opts.order_type)
        else:
            order_type = OrderType.LIMIT if price is not None else OrderType.MARKET

        time_in_force = None
        if order_type is OrderType.MARKET:
            if price is not None:
                raise InvalidOptionCombination("A market order cannot carry a price")
            if opts.time_in_force is not None:
                raise InvalidOptionCombination("A market order cannot carry a time in force")
        else:
            if price is None:
                raise MissingRequiredField("A limit order requires a price (use with_price)")
            time_in_force = _require_enum(TimeInForce, "time_in_force", opts.time_in_force or TimeInForce.GTC)

        client_order_id = opts.client_order_id
        if client_order_id is None:
            client_order_id = generate_client_order_id(self.exchange_name, settings.client_order_id_prefix)
        elif not isinstance(client_order_id, str) or not client_order_id.strip():
            raise InvalidArgument(f"client_order_id must be a non-empty string, got {client_order_id!r}")

        return order_type, price, time_in_force, client_order_id

    def _fit_to_market(
        self,
        market: Market,
        amount: Decimal,
        price: Optional[Decimal]
    ) -> Tuple[Decimal, Optional[Decimal]]:
        """Truncate amount and price to the market's precision and check its limits."""
        fitted_amount = truncate(amount, market.amount_precision)
        if fitted_amount.is_zero():
            raise InvalidArgument(
                f"amount {amount} is zero at {market.symbol} amount precision {market.amount_precision}"
            )
        if market.min_amount is not None and fitted_amount < market.min_amount:
            raise InvalidArgument(f"amount {fitted_amount} is below {market.symbol} minimum {market.min_amount}")
        if market.max_amount is not None and market.max_amount > 0 and fitted_amount > market.max_amount:
            raise InvalidArgument(f"amount {fitted_amount} is above {market.symbol} maximum {market.max_amount}")

        if price is None:
            return fitted_amount, None

        fitted_price = truncate(price, market.price_precision)
        if fitted_price.is_zero():
            raise InvalidArgument(
                f"price {price} is zero at {market.symbol} price precision {market.price_precision}"
            )
        if market.min_price is not None and fitted_price < market.min_price:
            raise InvalidArgument(f"price {fitted_price} is below {market.symbol} minimum {market.min_price}")
        if market.max_price is not None and market.max_price > 0 and fitted_price > market.max_price:
            raise InvalidArgument(f"price {fitted_price} is above {market.symbol} maximum {market.max_price}")
        if market.min_cost is not None and mul(fitted_price, fitted_amount) < market.min_cost:
            raise InvalidArgument(
                f"order value {mul(fitted_price, fitted_amount)} is below {market.symbol} "
                f"minimum notional {market.min_cost}"
            )

        return fitted_amount, fitted_price

    def _order_request(
        self,
        market: Market,
        side: OrderSide,
        order_type: OrderType,
        amount: Decimal,
        price: Optional[Decimal],
        time_in_force: Optional[TimeInForce],
        client_order_id: str
    ) -> Dict[str, Any]:
        request = {
            "symbol": market.id,
            "side": NATIVE_ORDER_SIDES[side],
            "type": NATIVE_ORDER_TYPES[order_type],
            "quantity": format_fixed(amount, market.amount_precision),
            "newClientOrderId": client_order_id,
        }
        if order_type is OrderType.LIMIT:
            request["price"] = format_fixed(price, market.price_precision)
            request["timeInForce"] = time_in_force.value
        return request

    async def _submit_order(
        self,
        market: Market,
        side: OrderSide,
        order_type: OrderType,
        amount: Decimal,
        price: Optional[Decimal],
        client_order_id: str,
        request: Dict[str, Any]
    ) -> NewOrder:
        raw = await self._call(
            "create_order", market.symbol, self._connector.place_order, self.market_type, request
        )

        with self._normalizing("create_order", market.symbol):
            order = NewOrder(
                id=str(raw["orderId"]),
                client_order_id=raw.get("clientOrderId") or client_order_id,
                symbol=market.symbol,
                side=side,
                type=order_type,
                amount=amount,
                price=price,
                status=map_native_code(ORDER_STATUSES, "status", raw["status"]),
                timestamp=_timestamp(raw, "transactTime", "updateTime"),
            )

        logger.info(
            f"{self.exchange_name} {self.market_type.value} order {order.id} placed: "
            f"{order.side.value} {request['quantity']} {market.symbol} {order.type.value}"
            + (f" @ {request['price']}" if "price" in request else "")
        )
        return order

    async def cancel_order(self, symbol: str, order_id: str) -> None:
        _require_symbol(symbol)
        order_id = _require_order_id(order_id)
        market = self._registry.get_market(symbol)

        await self._call(
            "cancel_order", symbol, self._connector.cancel_order, self.market_type, market.id, order_id
        )
        logger.info(f"{self.exchange_name} {self.market_type.value} order {order_id} canceled ({symbol})")

    async def _fetch_order_payload(self, symbol: str, order_id: str) -> Tuple[Market, Dict[str, Any]]:
        _require_symbol(symbol)
        order_id = _require_order_id(order_id)
        market = self._registry.get_market(symbol)

        raw = await self._call(
            "fetch_order", symbol, self._connector.fetch_order, self.market_type, market.id, order_id
        )
        return market, raw

    def _order_fields(self, raw: Dict[str, Any], market: Market) -> Dict[str, Any]:
        amount = parse_decimal(raw["origQty"])
        filled = _optional_decimal(raw, "executedQty") or Decimal(0)
        time_in_force = raw.get("timeInForce")

        return dict(
            id=str(raw["orderId"]),
            client_order_id=raw.get("clientOrderId") or None,
            symbol=market.symbol,
            side=map_native_code(ORDER_SIDES, "side", raw["side"]),
            type=map_native_code(ORDER_TYPES, "type", raw["type"]),
            amount=amount,
            price=_nonzero_decimal(raw, "price"),
            filled=filled,
            remaining=sub(amount, filled),
            average=_nonzero_decimal(raw, "avgPrice"),
            status=map_native_code(ORDER_STATUSES, "status", raw["status"]),
            time_in_force=map_native_code(TIME_IN_FORCE, "timeInForce", time_in_force) if time_in_force else None,
            timestamp=_timestamp(raw, "time", "updateTime"),
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(exchange='{self.exchange_name}', markets={len(self._registry)})>"


# ============================================
# Spot
# ============================================

class SpotTrading(_TradingFacade, SpotExchange):
    """
    Spot market facade.

    Example:
        >>> spot = exchange.spot
        >>> await spot.load_markets()
        >>> order = await spot.create_order("DOGE/USDT", OrderSide.BUY, "50", with_price("0.11"))
        >>> order.status
        <OrderStatus.NEW: 'new'>
    """

    market_type = MarketType.SPOT

    async def create_order(
        self,
        symbol: str,
        side: OrderSide,
        amount: NumericInput,
        *options: Option
    ) -> NewOrder:
        _require_symbol(symbol)
        side = _require_enum(OrderSide, "side", side)
        amount = _require_positive("amount", amount)
        order_type, price, time_in_force, client_order_id = self._resolve_order(apply_options(*options))

        market = self._registry.get_market(symbol)
        amount, price = self._fit_to_market(market, amount, price)

        request = self._order_request(market, side, order_type, amount, price, time_in_force, client_order_id)
        return await self._submit_order(market, side, order_type, amount, price, client_order_id, request)

    async def fetch_order(self, symbol: str, order_id: str) -> Order:
        market, raw = await self._fetch_order_payload(symbol, order_id)

        with self._normalizing("fetch_order", symbol):
            return Order(**self._order_fields(raw, market))


# ============================================
# Perpetual
# ============================================

class PerpTrading(_TradingFacade, PerpExchange):
    """
    Perpetual futures facade.

    Orders are expressed as position intent (PerpOrderSide). In one-way mode
    the native position side is BOTH and closing orders are sent
    reduce-only; in hedge mode the native position side names the leg.
    The mode comes from with_hedge_mode, else the hedge_mode given at
    construction, else the account setting queried from the exchange.

    Leverage and margin type must be set with set_leverage() and
    set_margin_type() before placing an order that relies on them; passing
    them to create_order raises InvalidOptionCombination.
    """

    market_type = MarketType.PERP

    def __init__(self, connector: ExchangeConnector, hedge_mode: Optional[bool] = None):
        super().__init__(connector)
        self.hedge_mode = hedge_mode
        self._detected_hedge_mode: Optional[bool] = None
        self._detected_at = 0.0

    async def _resolve_hedge_mode(self, requested: Optional[bool]) -> bool:
        """
        Position mode for one order: the with_hedge_mode option, else the
        configured hedge_mode, else the account's mode as reported by the
        exchange (cached for settings.position_mode_ttl seconds).
        """
        if requested is not None:
            return requested
        if self.hedge_mode is not None:
            return self.hedge_mode

        now = monotonic()
        if self._detected_hedge_mode is None or now - self._detected_at >= settings.position_mode_ttl:
            raw = await self._call("fetch_position_mode", None, self._connector.fetch_position_mode)
            with self._normalizing("fetch_position_mode"):
                self._detected_hedge_mode = _flag(raw["dualSidePosition"])
            self._detected_at = now
            logger.info(
                f"{self.exchange_name} perp account is in "
                f"{'hedge' if self._detected_hedge_mode else 'one-way'} mode"
            )

        return self._detected_hedge_mode

    async def create_order(
        self,
        symbol: str,
        side: PerpOrderSide,
        amount: NumericInput,
        *options: Option
    ) -> NewOrder:
        _require_symbol(symbol)
        side = _require_enum(PerpOrderSide, "side", side)
        amount = _require_positive("amount", amount)
        opts = apply_options(*options)
        order_type, price, time_in_force, client_order_id = self._resolve_order(opts)

        if opts.reduce_only and not side.reduce_only:
            raise InvalidOptionCombination(f"{side.value} opens exposure and cannot be reduce-only")

        market = self._registry.get_market(symbol)
        amount, price = self._fit_to_market(market, amount, price)

        hedge_mode = await self._resolve_hedge_mode(opts.hedge_mode)
        if hedge_mode and opts.reduce_only:
            raise InvalidOptionCombination("reduce_only cannot be used in hedge mode; use a CLOSE_* side")
        reduce_only = side.reduce_only if opts.reduce_only is None else opts.reduce_only

        request = self._order_request(
            market, side.order_side, order_type, amount, price, time_in_force, client_order_id
        )
        if hedge_mode:
            request["positionSide"] = NATIVE_POSITION_SIDES[side.position_side]
        else:
            request["positionSide"] = "BOTH"
            if reduce_only:
                request["reduceOnly"] = "true"

        return await self._submit_order(market, side.order_side, order_type, amount, price, client_order_id, request)

    async def fetch_order(self, symbol: str, order_id: str) -> PerpOrder:
        market, raw = await self._fetch_order_payload(symbol, order_id)

        with self._normalizing("fetch_order", symbol):
            position_side = raw.get("positionSide")
            return PerpOrder(
                **self._order_fields(raw, market),
                position_side=map_native_code(POSITION_SIDES, "positionSide", position_side) if position_side else None,
                reduce_only=_flag(raw.get("reduceOnly", False)),
            )

    # ============================================
    # Positions
    # ============================================

    async def fetch_positions(self, *options: Option) -> List[Position]:
        opts = apply_options(*options)
        symbols = _require_symbols(opts.symbols)
        wanted = self._markets_for(symbols)

        raws = await self._call("fetch_positions", None, self._connector.fetch_positions)

        positions = []
        with self._normalizing("fetch_positions"):
            for raw in raws:
                market = wanted.get(raw["symbol"])
                if market is None:
                    continue
                position = self._position_from_payload(raw, market)
                if position is not None:
                    positions.append(position)

        return positions

    def _position_from_payload(self, raw: Dict[str, Any], market: Market) -> Optional[Position]:
        signed_size = parse_decimal(raw["positionAmt"])
        if signed_size.is_zero():
            return None

        side = map_native_code(POSITION_SIDES, "positionSide", raw.get("positionSide") or "BOTH")
        if side is None:
            side = PositionSide.LONG if signed_size > 0 else PositionSide.SHORT

        margin_type = raw.get("marginType")
        return Position(
            symbol=market.symbol,
            side=side,
            size=abs(signed_size),
            entry_price=parse_decimal(raw["entryPrice"]),
            mark_price=_optional_decimal(raw, "markPrice"),
            liquidation_price=_nonzero_decimal(raw, "liquidationPrice"),
            unrealized_pnl=_optional_decimal(raw, "unRealizedProfit"),
            leverage=_optional_decimal(raw, "leverage"),
            margin_type=map_native_code(MARGIN_TYPES, "marginType", margin_type) if margin_type else None,
            timestamp=_timestamp(raw, "updateTime"),
        )

    # ============================================
    # Leverage / Margin
    # ============================================

    async def set_leverage(self, symbol: str, leverage: int) -> None:
        _require_symbol(symbol)
        _require_positive_int("leverage", leverage)
        market = self._registry.get_market(symbol)

        await self._call("set_leverage", symbol, self._connector.set_leverage, market.id, leverage)
        logger.info(f"{self.exchange_name} leverage for {symbol} set to {leverage}x")

    async def set_margin_type(self, symbol: str, margin_type: MarginType) -> None:
        _require_symbol(symbol)
        margin_type = _require_enum(MarginType, "margin_type", margin_type)
        market = self._registry.get_market(symbol)

        await self._call(
            "set_margin_type", symbol, self._connector.set_margin_type,
            market.id, NATIVE_MARGIN_TYPES[margin_type]
        )
        logger.info(f"{self.exchange_name} margin type for {symbol} set to {margin_type.value}")
