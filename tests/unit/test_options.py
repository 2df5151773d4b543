"""
Unit Tests for Request Options

These tests verify that:
- Options apply left to right with last-write-wins
- Group options set their fields together
- Applying options never validates and never mutates the base

Run with:
    pytest tests/unit/test_options.py -v
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

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
from unitrade.core.schemas import MarginType, OrderType, TimeInForce


JAN_1 = datetime(2024, 1, 1, tzinfo=timezone.utc)
JAN_2 = datetime(2024, 1, 2, tzinfo=timezone.utc)
JAN_3 = datetime(2024, 1, 3, tzinfo=timezone.utc)


class TestApplyOptions:
    """Tests for apply_options composition"""

    def test_no_options_leaves_everything_unset(self):
        opts = apply_options()
        assert opts == RequestOptions()
        assert opts.limit is None
        assert opts.price is None

    def test_last_write_wins(self):
        """Verify [with_limit(5), with_limit(10)] yields limit 10"""
        assert apply_options(with_limit(5), with_limit(10)).limit == 10
        assert apply_options(with_limit(10), with_limit(5)).limit == 5

    def test_independent_fields_accumulate(self):
        opts = apply_options(
            with_limit(50),
            with_order_type(OrderType.LIMIT),
            with_price("0.11"),
            with_client_order_id("my-order-1"),
            with_time_in_force(TimeInForce.IOC),
            with_hedge_mode(),
            with_reduce_only(),
            with_leverage(5),
            with_margin_type(MarginType.ISOLATED),
        )

        assert opts.limit == 50
        assert opts.order_type is OrderType.LIMIT
        assert opts.price == "0.11"
        assert opts.client_order_id == "my-order-1"
        assert opts.time_in_force is TimeInForce.IOC
        assert opts.hedge_mode is True
        assert opts.reduce_only is True
        assert opts.leverage == 5
        assert opts.margin_type is MarginType.ISOLATED

    def test_base_is_not_mutated(self):
        base = apply_options(with_limit(1))
        derived = apply_options(with_limit(2), base=base)

        assert base.limit == 1
        assert derived.limit == 2

    def test_result_is_frozen(self):
        opts = apply_options(with_limit(1))
        with pytest.raises(ValidationError):
            opts.limit = 2

    def test_no_validation_while_composing(self):
        """Conflicting options compose fine; the consuming operation rejects them"""
        opts = apply_options(with_order_type(OrderType.MARKET), with_price("not-a-number"))
        assert opts.order_type is OrderType.MARKET
        assert opts.price == "not-a-number"


class TestTimeWindow:
    """Tests for since/until options"""

    def test_time_window_sets_both_bounds(self):
        opts = apply_options(with_time_window(JAN_1, JAN_3))
        assert opts.since == JAN_1
        assert opts.until == JAN_3

    def test_since_overrides_only_the_start(self):
        opts = apply_options(with_time_window(JAN_1, JAN_3), with_since(JAN_2))
        assert opts.since == JAN_2
        assert opts.until == JAN_3


class TestPriceAndSymbols:
    """Tests for literal-preserving options"""

    def test_price_literal_kept_verbatim(self):
        assert apply_options(with_price("0.1100")).price == "0.1100"

    def test_symbols_varargs_and_iterable(self):
        assert apply_options(with_symbols("BTC/USDT", "ETH/USDT")).symbols == ("BTC/USDT", "ETH/USDT")
        assert apply_options(with_symbols(["BTC/USDT"])).symbols == ("BTC/USDT",)

    def test_hedge_mode_can_be_disabled(self):
        assert apply_options(with_hedge_mode(), with_hedge_mode(False)).hedge_mode is False
