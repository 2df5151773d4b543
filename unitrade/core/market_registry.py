"""
Market Registry

Per-exchange, per-market-type cache of Market metadata, plus the bijective
translation between canonical symbols ("BTC/USDT", "BTC/USDT:USDT") and the
exchange's native identifiers ("BTCUSDT").

Lifecycle:
    EMPTY ──load_markets()──> LOADING ──success──> LOADED
      ^                          │                   │
      └──────── failure ─────────┘    load_markets(reload=True)
                                                     │
                          failure keeps the old snapshot, stays LOADED

Snapshot Model:
    Every load builds a brand new _Snapshot (read-only dicts + a tuple) from
    one connector response and installs it with a single attribute
    assignment. Readers take one reference to the current snapshot and work
    on it, so they see either the old or the new mapping in full and never
    wait for a reload in progress. Loads themselves are serialized by an
    asyncio.Lock, so at most one fetch is in flight per registry.

Usage:
    registry = MarketRegistry(connector, MarketType.SPOT)
    await registry.load_markets()

    market = registry.get_market("BTC/USDT")
    registry.to_native("BTC/USDT")      # "BTCUSDT"
    registry.to_canonical("BTCUSDT")    # "BTC/USDT"
"""

import asyncio
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Tuple

from unitrade.core.connector import ExchangeConnector
from unitrade.core.errors import (
    ConnectorError,
    InvalidArgument,
    MarketNotFound,
    RegistryNotLoaded,
    UnitradeError,
)
from unitrade.core.logging import get_logger
from unitrade.core.schemas import Market, MarketType

logger = get_logger(__name__)


# ============================================
# Canonical Symbols
# ============================================

def canonical_symbol(base: str, quote: str, settle: Optional[str] = None) -> str:
    """
    Build a canonical symbol.

    Examples:
        >>> canonical_symbol("BTC", "USDT")
        'BTC/USDT'
        >>> canonical_symbol("BTC", "USDT", "USDT")
        'BTC/USDT:USDT'
    """
    parts = [("base", base), ("quote", quote)]
    if settle is not None:
        parts.append(("settle", settle))

    for field, code in parts:
        if not isinstance(code, str) or not code.strip():
            raise InvalidArgument(f"{field} asset code must be a non-empty string, got {code!r}")
        if "/" in code or ":" in code:
            raise InvalidArgument(f"{field} asset code cannot contain '/' or ':': {code!r}")

    symbol = f"{base.strip().upper()}/{quote.strip().upper()}"
    if settle is not None:
        symbol = f"{symbol}:{settle.strip().upper()}"
    return symbol


def parse_symbol(symbol: str) -> Tuple[str, str, Optional[str]]:
    """
    Split a canonical symbol into (base, quote, settle).

    Raises:
        InvalidArgument: If the text is not of the form BASE/QUOTE or
                         BASE/QUOTE:SETTLE

    Examples:
        >>> parse_symbol("ETH/USDT:USDT")
        ('ETH', 'USDT', 'USDT')
        >>> parse_symbol("ETH/USDT")
        ('ETH', 'USDT', None)
    """
    if not isinstance(symbol, str):
        raise InvalidArgument(f"Symbol must be a string, got {type(symbol).__name__}")

    pair, sep, settle = symbol.partition(":")
    base, slash, quote = pair.partition("/")
    if not slash or not base or not quote or "/" in quote or (sep and (not settle or ":" in settle)):
        raise InvalidArgument(f"Malformed symbol {symbol!r}; expected BASE/QUOTE or BASE/QUOTE:SETTLE")

    return base, quote, settle if sep else None


# ============================================
# Registry
# ============================================

class RegistryState(str, Enum):
    EMPTY = "empty"
    LOADING = "loading"
    LOADED = "loaded"


class _Snapshot(NamedTuple):
    by_symbol: Mapping[str, Market]
    by_id: Mapping[str, Market]
    markets: Tuple[Market, ...]


def market_from_payload(raw: Dict[str, Any], market_type: MarketType) -> Market:
    """
    Normalize one connector market payload.

    Raises:
        KeyError: required key missing
        ValueError: wrong market type, missing settle asset, malformed numbers
                    (InvalidArgument and pydantic's ValidationError are both
                    ValueError subclasses)
    """
    payload_type = MarketType(raw["type"])
    if payload_type is not market_type:
        raise ValueError(f"Market {raw['id']!r} has type {payload_type.value}, expected {market_type.value}")

    settle = raw.get("settle") or None
    if market_type is MarketType.PERP:
        if settle is None:
            raise ValueError(f"Perpetual market {raw['id']!r} has no settle asset")
    else:
        settle = None

    return Market(
        symbol=canonical_symbol(raw["base"], raw["quote"], settle),
        id=raw["id"],
        base=raw["base"].strip().upper(),
        quote=raw["quote"].strip().upper(),
        settle=settle.strip().upper() if settle else None,
        type=market_type,
        active=raw.get("active", True),
        price_precision=raw["pricePrecision"],
        amount_precision=raw["amountPrecision"],
        min_amount=raw.get("minQty"),
        max_amount=raw.get("maxQty"),
        min_price=raw.get("minPrice"),
        max_price=raw.get("maxPrice"),
        min_cost=raw.get("minNotional"),
        contract_size=raw.get("contractSize") if market_type is MarketType.PERP else None,
    )


class MarketRegistry:
    """
    Market metadata cache for one (exchange, market type).

    Caller-owned: each Exchange object creates its own registries; there is
    no process-wide instance.

    Attributes:
        market_type: MarketType this registry holds
        state: Current RegistryState
    """

    def __init__(self, connector: ExchangeConnector, market_type: MarketType):
        self._connector = connector
        self.market_type = market_type
        self._snapshot: Optional[_Snapshot] = None
        self._loading = False
        self._load_lock = asyncio.Lock()

    # ============================================
    # State
    # ============================================

    @property
    def state(self) -> RegistryState:
        if self._loading:
            return RegistryState.LOADING
        if self._snapshot is not None:
            return RegistryState.LOADED
        return RegistryState.EMPTY

    @property
    def is_loaded(self) -> bool:
        """True once any load has succeeded (also while a reload is running)."""
        return self._snapshot is not None

    def _current(self) -> _Snapshot:
        snapshot = self._snapshot
        if snapshot is None:
            raise RegistryNotLoaded(
                f"{self._connector.name} {self.market_type.value} markets are not loaded; "
                f"call load_markets() first"
            )
        return snapshot

    # ============================================
    # Loading
    # ============================================

    async def load_markets(self, reload: bool = False) -> Tuple[Market, ...]:
        """
        Load market metadata from the connector.

        Args:
            reload: Fetch again even if markets are already loaded

        Returns:
            Tuple[Market, ...]: the markets now installed

        Raises:
            ConnectorError: The fetch failed or returned inconsistent data.
                            A previously loaded snapshot stays in place.
        """
        async with self._load_lock:
            if self._snapshot is not None and not reload:
                return self._snapshot.markets

            self._loading = True
            try:
                raw_markets = await self._fetch("load_markets")
                snapshot = self._build_snapshot(raw_markets)
                self._snapshot = snapshot
            finally:
                self._loading = False

        logger.info(
            f"Loaded {len(snapshot.markets)} {self.market_type.value} markets from {self._connector.name}"
        )
        return snapshot.markets

    async def fetch_markets(self) -> List[Market]:
        """
        Fetch and normalize current market metadata without installing it.

        Raises:
            ConnectorError: The fetch failed or returned inconsistent data
        """
        raw_markets = await self._fetch("fetch_markets")
        return list(self._build_snapshot(raw_markets, operation="fetch_markets").markets)

    async def _fetch(self, operation: str) -> List[Dict[str, Any]]:
        try:
            return await self._connector.fetch_markets(self.market_type)
        except Exception as e:
            logger.warning(f"{self._connector.name} {operation} failed: {e}")
            raise ConnectorError(operation, e) from e

    def _build_snapshot(self, raw_markets: List[Dict[str, Any]], operation: str = "load_markets") -> _Snapshot:
        by_symbol: Dict[str, Market] = {}
        by_id: Dict[str, Market] = {}

        try:
            for raw in raw_markets:
                market = market_from_payload(raw, self.market_type)
                if market.symbol in by_symbol:
                    raise ValueError(f"Duplicate canonical symbol {market.symbol}")
                if market.id in by_id:
                    raise ValueError(
                        f"Native id {market.id!r} maps to both {by_id[market.id].symbol} and {market.symbol}"
                    )
                by_symbol[market.symbol] = market
                by_id[market.id] = market
        except (KeyError, TypeError, ValueError, UnitradeError) as e:
            logger.warning(f"{self._connector.name} returned inconsistent market data: {e}")
            raise ConnectorError(operation, e) from e

        return _Snapshot(
            by_symbol=MappingProxyType(by_symbol),
            by_id=MappingProxyType(by_id),
            markets=tuple(by_symbol.values()),
        )

    # ============================================
    # Lookups
    # ============================================

    def get_market(self, symbol: str) -> Market:
        """
        Look up a market by canonical symbol.

        Raises:
            RegistryNotLoaded: No load has succeeded yet
            MarketNotFound: Symbol not in the loaded snapshot
        """
        snapshot = self._current()
        market = snapshot.by_symbol.get(symbol)
        if market is None:
            raise MarketNotFound(
                f"Market {symbol} not found on {self._connector.name} {self.market_type.value}"
            )
        return market

    def get_markets(self) -> Tuple[Market, ...]:
        """All loaded markets, in connector order."""
        return self._current().markets

    def to_native(self, symbol: str) -> str:
        return self.get_market(symbol).id

    def to_canonical(self, native_id: str) -> str:
        snapshot = self._current()
        market = snapshot.by_id.get(native_id)
        if market is None:
            raise MarketNotFound(
                f"Native symbol {native_id} not found on {self._connector.name} {self.market_type.value}"
            )
        return market.symbol

    def __contains__(self, symbol: object) -> bool:
        snapshot = self._snapshot
        return snapshot is not None and symbol in snapshot.by_symbol

    def __len__(self) -> int:
        snapshot = self._snapshot
        return len(snapshot.markets) if snapshot is not None else 0

    def __repr__(self) -> str:
        return (
            f"<MarketRegistry(exchange='{self._connector.name}', "
            f"type='{self.market_type.value}', state='{self.state.value}', markets={len(self)})>"
        )
