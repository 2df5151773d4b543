"""
Unit Tests for PerpTrading

These tests verify that:
- Position intent (OPEN_LONG, CLOSE_SHORT, ...) maps to the right native order
- One-way and hedge mode requests differ only where the exchange expects
- The account position mode is queried only when no mode is given, and cached
- Positions are normalized from signed native sizes
- Leverage and margin type are set through their own operations only

Run with:
    pytest tests/unit/test_perp_trading.py -v
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from unitrade.core.errors import (
    ConnectorError,
    ExchangeAPIError,
    InvalidArgument,
    InvalidOptionCombination,
    MarketNotFound,
    RegistryNotLoaded,
    UnknownEnumValue,
)
from unitrade.core.exchange_interface import LeverageCapable, PerpExchange, PositionCapable
from unitrade.core.options import (
    with_hedge_mode,
    with_leverage,
    with_margin_type,
    with_price,
    with_reduce_only,
    with_symbols,
)
from unitrade.core.schemas import (
    MarginType,
    MarketType,
    OrderSide,
    PerpOrder,
    PerpOrderSide,
    PositionSide,
)
from unitrade.core.trading import PerpTrading


BTC_PERP = "BTC/USDT:USDT"
ETH_PERP = "ETH/USDT:USDT"


def placed_request(connector):
    (market_type, request), = connector.calls_to("place_order")
    assert market_type is MarketType.PERP
    return request


# ============================================
# Position Intent
# ============================================

class TestPerpOrderSide:
    """Tests for the PerpOrderSide mapping"""

    @pytest.mark.parametrize("side, order_side, position_side, reduce_only", [
        (PerpOrderSide.OPEN_LONG, OrderSide.BUY, PositionSide.LONG, False),
        (PerpOrderSide.OPEN_SHORT, OrderSide.SELL, PositionSide.SHORT, False),
        (PerpOrderSide.CLOSE_LONG, OrderSide.SELL, PositionSide.LONG, True),
        (PerpOrderSide.CLOSE_SHORT, OrderSide.BUY, PositionSide.SHORT, True),
    ])
    def test_mapping(self, side, order_side, position_side, reduce_only):
        assert side.order_side is order_side
        assert side.position_side is position_side
        assert side.reduce_only is reduce_only


class TestPerpCapabilities:
    """Tests for the perp facade's interface"""

    def test_perp_capabilities(self, perp):
        assert isinstance(perp, PerpExchange)
        assert isinstance(perp, LeverageCapable)
        assert isinstance(perp, PositionCapable)


# ============================================
# One-way Mode
# ============================================

class TestOneWayOrders:
    """Tests for create_order without hedge mode"""

    @pytest.mark.asyncio
    async def test_open_long(self, loaded_perp, connector):
        order = await loaded_perp.create_order(BTC_PERP, PerpOrderSide.OPEN_LONG, "0.0105")

        request = placed_request(connector)
        assert request["symbol"] == "BTCUSDT"
        assert request["side"] == "BUY"
        assert request["type"] == "MARKET"
        assert request["quantity"] == "0.010"
        assert request["positionSide"] == "BOTH"
        assert "reduceOnly" not in request

        assert order.symbol == BTC_PERP
        assert order.side is OrderSide.BUY
        assert order.amount == Decimal("0.01")

    @pytest.mark.asyncio
    async def test_close_long_is_reduce_only(self, loaded_perp, connector):
        order = await loaded_perp.create_order(BTC_PERP, PerpOrderSide.CLOSE_LONG, "0.5")

        request = placed_request(connector)
        assert request["side"] == "SELL"
        assert request["positionSide"] == "BOTH"
        assert request["reduceOnly"] == "true"
        assert order.side is OrderSide.SELL

    @pytest.mark.asyncio
    async def test_explicit_reduce_only_on_close(self, loaded_perp, connector):
        await loaded_perp.create_order(BTC_PERP, PerpOrderSide.CLOSE_SHORT, "0.5", with_reduce_only())

        request = placed_request(connector)
        assert request["side"] == "BUY"
        assert request["reduceOnly"] == "true"

    @pytest.mark.asyncio
    async def test_limit_price_truncated(self, loaded_perp, connector):
        order = await loaded_perp.create_order(
            BTC_PERP, PerpOrderSide.OPEN_SHORT, "0.001", with_price("43250.19")
        )

        request = placed_request(connector)
        assert request["type"] == "LIMIT"
        assert request["price"] == "43250.1"
        assert request["timeInForce"] == "GTC"
        assert order.price == Decimal("43250.1")

    @pytest.mark.asyncio
    async def test_spot_form_symbol_refused(self, loaded_perp, connector):
        with pytest.raises(MarketNotFound):
            await loaded_perp.create_order("BTC/USDT", PerpOrderSide.OPEN_LONG, "0.01")
        assert connector.calls_to("place_order") == []


# ============================================
# Hedge Mode
# ============================================

class TestHedgeModeOrders:
    """Tests for create_order in hedge mode"""

    @pytest.mark.asyncio
    async def test_hedge_mode_option_names_the_leg(self, loaded_perp, connector):
        await loaded_perp.create_order(BTC_PERP, PerpOrderSide.CLOSE_LONG, "0.5", with_hedge_mode())

        request = placed_request(connector)
        assert request["side"] == "SELL"
        assert request["positionSide"] == "LONG"
        assert "reduceOnly" not in request

    @pytest.mark.asyncio
    async def test_hedge_mode_from_constructor(self, connector):
        perp = PerpTrading(connector, hedge_mode=True)
        await perp.load_markets()

        await perp.create_order(ETH_PERP, PerpOrderSide.OPEN_SHORT, "1")

        request = placed_request(connector)
        assert request["symbol"] == "ETHUSDT"
        assert request["side"] == "SELL"
        assert request["positionSide"] == "SHORT"

    @pytest.mark.asyncio
    async def test_option_overrides_constructor(self, connector):
        perp = PerpTrading(connector, hedge_mode=True)
        await perp.load_markets()

        await perp.create_order(ETH_PERP, PerpOrderSide.OPEN_LONG, "1", with_hedge_mode(False))

        assert placed_request(connector)["positionSide"] == "BOTH"


class TestPositionModeDetection:
    """Tests for querying the account position mode when none is configured"""

    @pytest.mark.asyncio
    async def test_hedge_account_detected(self, loaded_perp, connector):
        connector.responses["fetch_position_mode"] = {"dualSidePosition": True}

        await loaded_perp.create_order(BTC_PERP, PerpOrderSide.CLOSE_LONG, "0.5")

        request = placed_request(connector)
        assert request["positionSide"] == "LONG"
        assert "reduceOnly" not in request
        assert connector.calls_to("fetch_position_mode") == [()]

    @pytest.mark.asyncio
    async def test_one_way_account_detected(self, loaded_perp, connector):
        await loaded_perp.create_order(BTC_PERP, PerpOrderSide.CLOSE_LONG, "0.5")

        request = placed_request(connector)
        assert request["positionSide"] == "BOTH"
        assert request["reduceOnly"] == "true"

    @pytest.mark.asyncio
    async def test_reduce_only_rejected_on_detected_hedge_account(self, loaded_perp, connector):
        connector.responses["fetch_position_mode"] = {"dualSidePosition": True}

        with pytest.raises(InvalidOptionCombination):
            await loaded_perp.create_order(BTC_PERP, PerpOrderSide.CLOSE_LONG, "0.5", with_reduce_only())
        assert connector.calls_to("place_order") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("perp_kwargs, options", [
        ({"hedge_mode": False}, ()),
        ({"hedge_mode": True}, ()),
        ({}, (with_hedge_mode(),)),
        ({}, (with_hedge_mode(False),)),
    ], ids=["configured-one-way", "configured-hedge", "option-hedge", "option-one-way"])
    async def test_explicit_mode_skips_query(self, connector, perp_kwargs, options):
        perp = PerpTrading(connector, **perp_kwargs)
        await perp.load_markets()

        await perp.create_order(BTC_PERP, PerpOrderSide.OPEN_LONG, "0.01", *options)

        assert connector.calls_to("fetch_position_mode") == []

    @pytest.mark.asyncio
    async def test_mode_cached_until_expiry(self, loaded_perp, connector, monkeypatch):
        clock = [1000.0]
        monkeypatch.setattr("unitrade.core.trading.monotonic", lambda: clock[0])
        monkeypatch.setattr("unitrade.core.trading.settings.position_mode_ttl", 300)

        await loaded_perp.create_order(BTC_PERP, PerpOrderSide.OPEN_LONG, "0.01")
        clock[0] += 299
        await loaded_perp.create_order(BTC_PERP, PerpOrderSide.OPEN_LONG, "0.01")
        assert len(connector.calls_to("fetch_position_mode")) == 1

        connector.responses["fetch_position_mode"] = {"dualSidePosition": True}
        clock[0] += 1
        await loaded_perp.create_order(BTC_PERP, PerpOrderSide.OPEN_LONG, "0.01")

        assert len(connector.calls_to("fetch_position_mode")) == 2
        assert [request["positionSide"] for _, request in connector.calls_to("place_order")] == [
            "BOTH", "BOTH", "LONG"
        ]

    @pytest.mark.asyncio
    async def test_query_failure_is_wrapped(self, loaded_perp, connector):
        connector.responses["fetch_position_mode"] = ExchangeAPIError("Invalid API-key", status=401, code=-2015)

        with pytest.raises(ConnectorError) as exc_info:
            await loaded_perp.create_order(BTC_PERP, PerpOrderSide.OPEN_LONG, "0.01")

        assert exc_info.value.operation == "fetch_position_mode"
        assert connector.calls_to("place_order") == []

    @pytest.mark.asyncio
    async def test_malformed_mode_payload(self, loaded_perp, connector):
        connector.responses["fetch_position_mode"] = {}

        with pytest.raises(ConnectorError):
            await loaded_perp.create_order(BTC_PERP, PerpOrderSide.OPEN_LONG, "0.01")
        assert connector.calls_to("place_order") == []


# ============================================
# Rejected Combinations
# ============================================

class TestInvalidPerpOrders:
    """Tests for option conflicts; none of them reach the connector"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("side, options", [
        (PerpOrderSide.CLOSE_LONG, (with_hedge_mode(), with_reduce_only())),
        (PerpOrderSide.OPEN_LONG, (with_reduce_only(),)),
        (PerpOrderSide.OPEN_LONG, (with_leverage(20),)),
        (PerpOrderSide.OPEN_LONG, (with_margin_type(MarginType.ISOLATED),)),
    ], ids=["reduce-only-in-hedge-mode", "reduce-only-on-open", "leverage", "margin-type"])
    async def test_conflicts(self, loaded_perp, connector, side, options):
        with pytest.raises(InvalidOptionCombination):
            await loaded_perp.create_order(BTC_PERP, side, "0.01", *options)
        assert connector.calls_to("place_order") == []

    @pytest.mark.asyncio
    async def test_spot_side_rejected(self, loaded_perp, connector):
        with pytest.raises(InvalidArgument):
            await loaded_perp.create_order(BTC_PERP, OrderSide.BUY, "0.01")
        assert connector.calls_to("place_order") == []

    @pytest.mark.asyncio
    async def test_side_accepted_by_value(self, loaded_perp, connector):
        await loaded_perp.create_order(BTC_PERP, "open_long", "0.01")
        assert placed_request(connector)["side"] == "BUY"


# ============================================
# Orders
# ============================================

class TestFetchPerpOrder:
    """Tests for PerpTrading.fetch_order"""

    ORDER = {
        "symbol": "BTCUSDT",
        "orderId": 4611875134427365377,
        "clientOrderId": "unitrade-binance-0123456789abcdef",
        "price": "0",
        "avgPrice": "43251.3",
        "origQty": "0.010",
        "executedQty": "0.010",
        "status": "FILLED",
        "timeInForce": "GTC",
        "type": "MARKET",
        "side": "SELL",
        "positionSide": "LONG",
        "reduceOnly": True,
        "time": 1704110400000,
        "updateTime": 1704110400123,
    }

    @pytest.mark.asyncio
    async def test_perp_order_fields(self, loaded_perp, connector):
        connector.responses["fetch_order"] = self.ORDER

        order = await loaded_perp.fetch_order(BTC_PERP, "4611875134427365377")

        assert isinstance(order, PerpOrder)
        assert order.id == "4611875134427365377"
        assert order.symbol == BTC_PERP
        assert order.side is OrderSide.SELL
        assert order.position_side is PositionSide.LONG
        assert order.reduce_only is True
        assert order.price is None
        assert order.average == Decimal("43251.3")
        assert order.remaining == Decimal(0)
        assert order.timestamp == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

        assert connector.calls_to("fetch_order") == [(MarketType.PERP, "BTCUSDT", "4611875134427365377")]

    @pytest.mark.asyncio
    async def test_one_way_order(self, loaded_perp, connector):
        connector.responses["fetch_order"] = dict(self.ORDER, positionSide="BOTH", reduceOnly="false")

        order = await loaded_perp.fetch_order(BTC_PERP, "1")

        assert order.position_side is None
        assert order.reduce_only is False


# ============================================
# Positions
# ============================================

class TestFetchPositions:
    """Tests for fetch_positions"""

    POSITIONS = [
        {
            "symbol": "BTCUSDT", "positionAmt": "-0.250", "entryPrice": "43000.0",
            "markPrice": "43100.50000000", "liquidationPrice": "0", "unRealizedProfit": "-25.12500000",
            "leverage": "10", "marginType": "CROSSED", "positionSide": "BOTH",
            "updateTime": 1704110400000,
        },
        {
            "symbol": "ETHUSDT", "positionAmt": "0.000", "entryPrice": "0.0",
            "marginType": "CROSSED", "positionSide": "BOTH", "updateTime": 0,
        },
        {
            "symbol": "XRPUSDT", "positionAmt": "100", "entryPrice": "0.61",
            "marginType": "CROSSED", "positionSide": "BOTH",
        },
        {
            "symbol": "ETHUSDT", "positionAmt": "1.5", "entryPrice": "2300.25",
            "liquidationPrice": "1850.10", "leverage": "5", "marginType": "ISOLATED",
            "positionSide": "LONG", "updateTime": 1704110400000,
        },
    ]

    @pytest.mark.asyncio
    async def test_positions_normalized(self, loaded_perp, connector):
        connector.responses["fetch_positions"] = self.POSITIONS

        positions = await loaded_perp.fetch_positions()

        assert [(p.symbol, p.side) for p in positions] == [
            (BTC_PERP, PositionSide.SHORT),
            (ETH_PERP, PositionSide.LONG),
        ]

        btc, eth = positions
        assert btc.size == Decimal("0.25")
        assert btc.entry_price == Decimal("43000")
        assert btc.mark_price == Decimal("43100.5")
        assert btc.liquidation_price is None
        assert btc.unrealized_pnl == Decimal("-25.125")
        assert btc.leverage == Decimal("10")
        assert btc.margin_type is MarginType.CROSS

        assert eth.size == Decimal("1.5")
        assert eth.liquidation_price == Decimal("1850.10")
        assert eth.margin_type is MarginType.ISOLATED

    @pytest.mark.asyncio
    async def test_with_symbols(self, loaded_perp, connector):
        connector.responses["fetch_positions"] = self.POSITIONS

        positions = await loaded_perp.fetch_positions(with_symbols(ETH_PERP))

        assert [p.symbol for p in positions] == [ETH_PERP]

    @pytest.mark.asyncio
    async def test_unknown_margin_type(self, loaded_perp, connector):
        connector.responses["fetch_positions"] = [dict(self.POSITIONS[0], marginType="PORTFOLIO")]

        with pytest.raises(UnknownEnumValue):
            await loaded_perp.fetch_positions()

    @pytest.mark.asyncio
    async def test_before_load(self, perp):
        with pytest.raises(RegistryNotLoaded):
            await perp.fetch_positions()


# ============================================
# Leverage / Margin
# ============================================

class TestLeverageAndMargin:
    """Tests for set_leverage and set_margin_type"""

    @pytest.mark.asyncio
    async def test_set_leverage(self, loaded_perp, connector):
        result = await loaded_perp.set_leverage(BTC_PERP, 10)

        assert result is None
        assert connector.calls_to("set_leverage") == [("BTCUSDT", 10)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("leverage", [0, -3, "10", 2.5, True])
    async def test_invalid_leverage(self, loaded_perp, connector, leverage):
        with pytest.raises(InvalidArgument):
            await loaded_perp.set_leverage(BTC_PERP, leverage)
        assert connector.calls_to("set_leverage") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("margin_type, native", [
        (MarginType.CROSS, "CROSSED"),
        (MarginType.ISOLATED, "ISOLATED"),
        ("isolated", "ISOLATED"),
    ])
    async def test_set_margin_type(self, loaded_perp, connector, margin_type, native):
        await loaded_perp.set_margin_type(BTC_PERP, margin_type)

        assert connector.calls_to("set_margin_type") == [("BTCUSDT", native)]

    @pytest.mark.asyncio
    async def test_invalid_margin_type(self, loaded_perp, connector):
        with pytest.raises(InvalidArgument):
            await loaded_perp.set_margin_type(BTC_PERP, "CROSSED")
        assert connector.calls_to("set_margin_type") == []

    @pytest.mark.asyncio
    async def test_exchange_rejection_is_wrapped(self, loaded_perp, connector):
        cause = ExchangeAPIError("Leverage 200 is not valid", status=400, code=-4028)
        connector.responses["set_leverage"] = cause

        with pytest.raises(ConnectorError) as exc_info:
            await loaded_perp.set_leverage(BTC_PERP, 125)

        assert exc_info.value.operation == "set_leverage"
        assert exc_info.value.symbol == BTC_PERP
        assert exc_info.value.cause.code == -4028

    @pytest.mark.asyncio
    async def test_perp_balance_uses_perp_market_type(self, loaded_perp, connector):
        connector.responses["fetch_balance"] = [{"asset": "USDT", "free": "900", "locked": "100"}]

        balances = await loaded_perp.fetch_balance()

        assert balances["USDT"].total == Decimal("1000")
        assert connector.calls_to("fetch_balance") == [(MarketType.PERP,)]
