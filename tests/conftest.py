"""
Shared Test Fixtures

FakeConnector implements ExchangeConnector entirely in memory. It records
every call and serves canned native payloads, so facade and registry tests
run without any network access.

Overriding a response:
    connector.responses["fetch_ticker"] = {...}            # plain value
    connector.responses["fetch_ticker"] = NetworkError()   # raised
    connector.responses["fetch_ticker"] = lambda *args: {...}  # computed
"""

import copy
import inspect
from typing import Any, Dict, List, Tuple

import pytest
import pytest_asyncio

from unitrade.core.connector import ExchangeConnector
from unitrade.core.schemas import MarketType
from unitrade.core.trading import PerpTrading, SpotTrading


# ============================================
# Canned Native Payloads
# ============================================

SPOT_MARKETS = [
    {
        "id": "BTCUSDT", "base": "BTC", "quote": "USDT", "type": "spot", "active": True,
        "pricePrecision": 2, "amountPrecision": 4,
        "minQty": "0.001", "maxQty": "9000", "minNotional": "5",
    },
    {
        "id": "DOGEUSDT", "base": "DOGE", "quote": "USDT", "type": "spot", "active": True,
        "pricePrecision": 4, "amountPrecision": 0,
        "minQty": "1",
    },
    {
        "id": "ETHBTC", "base": "ETH", "quote": "BTC", "type": "spot", "active": True,
        "pricePrecision": 6, "amountPrecision": 2,
    },
]

PERP_MARKETS = [
    {
        "id": "BTCUSDT", "base": "BTC", "quote": "USDT", "settle": "USDT", "type": "perp",
        "active": True, "pricePrecision": 1, "amountPrecision": 3,
        "minQty": "0.001", "contractSize": "1",
    },
    {
        "id": "ETHUSDT", "base": "ETH", "quote": "USDT", "settle": "USDT", "type": "perp",
        "active": True, "pricePrecision": 2, "amountPrecision": 3,
    },
]

TICKER = {
    "lastPrice": "43250.10",
    "bidPrice": "43250.00",
    "askPrice": "43250.20",
    "openPrice": "42000.00",
    "highPrice": "43500.00",
    "lowPrice": "41800.50",
    "volume": "1523.4411",
    "quoteVolume": "65432100.12",
    "priceChangePercent": "2.976",
    "closeTime": 1704110400000,
}


class FakeConnector(ExchangeConnector):
    """In-memory connector recording calls as (method, args) tuples."""

    name = "fake"

    def __init__(self):
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.initialized = False
        self.shut_down = False
        self.responses: Dict[str, Any] = {
            "fetch_markets": lambda market_type: (
                SPOT_MARKETS if market_type is MarketType.SPOT else PERP_MARKETS
            ),
            "fetch_ticker": TICKER,
            "fetch_tickers": [
                dict(TICKER, symbol="BTCUSDT"),
                dict(TICKER, symbol="DOGEUSDT", lastPrice="0.0812"),
                dict(TICKER, symbol="XRPUSDT", lastPrice="0.61"),
            ],
            "fetch_ohlcv": [],
            "place_order": {
                "orderId": 28,
                "clientOrderId": None,
                "status": "NEW",
                "transactTime": 1704110400000,
            },
            "cancel_order": {"orderId": 28, "status": "CANCELED"},
            "fetch_order": {},
            "fetch_balance": [],
            "fetch_positions": [],
            "set_leverage": {"leverage": 10},
            "set_margin_type": {"code": 200, "msg": "success"},
            "fetch_position_mode": {"dualSidePosition": False},
        }

    def calls_to(self, method: str) -> List[Tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]

    async def _respond(self, method: str, *args):
        self.calls.append((method, args))
        response = self.responses[method]
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            response = response(*args)
            if inspect.isawaitable(response):
                response = await response
        return copy.deepcopy(response)

    async def fetch_markets(self, market_type):
        return await self._respond("fetch_markets", market_type)

    async def fetch_ticker(self, market_type, native_symbol):
        return await self._respond("fetch_ticker", market_type, native_symbol)

    async def fetch_tickers(self, market_type):
        return await self._respond("fetch_tickers", market_type)

    async def fetch_ohlcv(self, market_type, native_symbol, timeframe, since=None, until=None, limit=None):
        return await self._respond("fetch_ohlcv", market_type, native_symbol, timeframe, since, until, limit)

    async def place_order(self, market_type, request):
        return await self._respond("place_order", market_type, request)

    async def cancel_order(self, market_type, native_symbol, order_id):
        return await self._respond("cancel_order", market_type, native_symbol, order_id)

    async def fetch_order(self, market_type, native_symbol, order_id):
        return await self._respond("fetch_order", market_type, native_symbol, order_id)

    async def fetch_balance(self, market_type):
        return await self._respond("fetch_balance", market_type)

    async def fetch_positions(self):
        return await self._respond("fetch_positions")

    async def set_leverage(self, native_symbol, leverage):
        return await self._respond("set_leverage", native_symbol, leverage)

    async def set_margin_type(self, native_symbol, margin_type):
        return await self._respond("set_margin_type", native_symbol, margin_type)

    async def fetch_position_mode(self):
        return await self._respond("fetch_position_mode")

    async def initialize(self):
        self.initialized = True

    async def shutdown(self):
        self.shut_down = True


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def connector():
    """Fresh FakeConnector per test"""
    return FakeConnector()


@pytest.fixture
def spot(connector):
    """SpotTrading facade with an unloaded registry"""
    return SpotTrading(connector)


@pytest.fixture
def perp(connector):
    """PerpTrading facade with an unloaded registry; the fake account is in one-way mode"""
    return PerpTrading(connector)


@pytest_asyncio.fixture
async def loaded_spot(spot):
    """SpotTrading facade with markets loaded"""
    await spot.load_markets()
    return spot


@pytest_asyncio.fixture
async def loaded_perp(perp):
    """PerpTrading facade with markets loaded"""
    await perp.load_markets()
    return perp
