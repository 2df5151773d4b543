"""
Exchange Manager: Factory for Exchange Objects

This module turns an exchange name plus an ExchangeConfig into a ready
Exchange object exposing the Spot and Perp facades.

Design Benefits:
    - Caller-owned: every ExchangeManager (and every Exchange it creates)
      is an independent instance; live and sandbox accounts can coexist in
      one process
    - Adding an exchange means registering one connector factory
    - Creating an exchange performs no network I/O; the first request (or
      initialize()) opens the HTTP session, and load_markets() must still be
      awaited explicitly

Architecture Pattern:
    Registry/Factory:
    - ExchangeManager maps names to connector factories
    - A factory builds an ExchangeConnector from an ExchangeConfig
    - Exchange wraps the connector in SpotTrading and PerpTrading

Example Usage:
    from unitrade import ExchangeConfig, OrderSide, new_exchange, with_price

    config = ExchangeConfig(api_key="...", secret_key="...", sandbox=True)
    async with new_exchange("binance", config) as exchange:
        await exchange.spot.load_markets()
        order = await exchange.spot.create_order(
            "DOGE/USDT", OrderSide.BUY, "50", with_price("0.11")
        )
"""

from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from unitrade.core.connector import ExchangeConnector
from unitrade.core.errors import ExchangeNotSupported
from unitrade.core.logging import get_logger
from unitrade.core.trading import PerpTrading, SpotTrading

logger = get_logger(__name__)


# ============================================
# Configuration
# ============================================

class ExchangeConfig(BaseModel):
    """
    Per-exchange runtime configuration.

    Attributes:
        api_key: API key (needed for account and order endpoints)
        secret_key: API secret used by the connector to sign requests
        password: API passphrase, for exchanges that use one
        sandbox: Use the exchange's demo/testnet endpoints
        proxy: HTTP proxy URL
        base_url: Override the exchange's REST base URL
        hedge_mode: Perpetual account runs separate long/short legs; None
                    asks the exchange for the account setting
        debug: Log every request/response of this exchange at DEBUG level
        options: Exchange-specific extras (e.g. {"recv_window": 10000})

    Unknown keys are rejected so typos fail loudly.
    """

    model_config = ConfigDict(extra="forbid")

    api_key: Optional[SecretStr] = None
    secret_key: Optional[SecretStr] = None
    password: Optional[SecretStr] = None
    sandbox: bool = False
    proxy: Optional[str] = None
    base_url: Optional[str] = None
    hedge_mode: Optional[bool] = None
    debug: bool = False
    options: Dict[str, Any] = Field(default_factory=dict)


ConnectorFactory = Callable[[ExchangeConfig], ExchangeConnector]


# ============================================
# Exchange Object
# ============================================

class Exchange:
    """
    One configured exchange: a connector plus its Spot and Perp facades.

    Attributes:
        name: Exchange identifier ("binance")
        spot: SpotTrading facade
        perp: PerpTrading facade
        config: The ExchangeConfig it was built from

    Example:
        >>> exchange = new_exchange("binance")
        >>> await exchange.perp.load_markets()
        >>> ticker = await exchange.perp.fetch_ticker("BTC/USDT:USDT")
        >>> await exchange.shutdown()
    """

    def __init__(self, connector: ExchangeConnector, config: ExchangeConfig):
        self._connector = connector
        self._config = config
        self._spot = SpotTrading(connector)
        self._perp = PerpTrading(connector, hedge_mode=config.hedge_mode)

    @property
    def name(self) -> str:
        return self._connector.name

    @property
    def spot(self) -> SpotTrading:
        return self._spot

    @property
    def perp(self) -> PerpTrading:
        return self._perp

    @property
    def config(self) -> ExchangeConfig:
        return self._config

    @property
    def connector(self) -> ExchangeConnector:
        return self._connector

    async def initialize(self) -> None:
        """Open connector resources (HTTP session). Optional; requests open it lazily."""
        await self._connector.initialize()
        logger.info(f"{self.name} initialized")

    async def shutdown(self) -> None:
        """Release connector resources. Safe to call more than once."""
        await self._connector.shutdown()
        logger.info(f"{self.name} shut down")

    async def __aenter__(self) -> "Exchange":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()

    def __repr__(self) -> str:
        return f"<Exchange(name='{self.name}', sandbox={self._config.sandbox})>"


# ============================================
# Manager
# ============================================

class ExchangeManager:
    """
    Registry of connector factories.

    Example:
        >>> manager = ExchangeManager()
        >>> manager.list_exchanges()
        ['binance']
        >>> manager.register("paper", lambda config: PaperConnector())
        >>> exchange = manager.create_exchange("paper")
    """

    def __init__(self):
        # Import here to avoid circular imports
        # Exchange packages import from core, so we can't import at module level
        from unitrade.exchanges.binance import create_connector as create_binance

        self._factories: Dict[str, ConnectorFactory] = {
            "binance": create_binance,
        }

        logger.debug(f"ExchangeManager created with: {', '.join(self._factories)}")

    def register(self, name: str, factory: ConnectorFactory) -> None:
        """
        Register (or replace) a connector factory.

        Args:
            name: Exchange name (case-insensitive)
            factory: Callable building an ExchangeConnector from an ExchangeConfig
        """
        name = name.lower()
        if name in self._factories:
            logger.warning(f"Replacing connector factory for '{name}'")
        self._factories[name] = factory

    def has_exchange(self, name: str) -> bool:
        return name.lower() in self._factories

    def list_exchanges(self) -> List[str]:
        return list(self._factories)

    def create_exchange(self, name: str, config: Optional[ExchangeConfig] = None) -> Exchange:
        """
        Build an Exchange object.

        Args:
            name: Exchange name (case-insensitive)
            config: Runtime configuration (defaults to an empty ExchangeConfig)

        Returns:
            Exchange: Fresh object with unloaded Spot/Perp registries

        Raises:
            ExchangeNotSupported: No factory registered under `name`
        """
        key = str(name).lower()
        if key not in self._factories:
            available = ", ".join(self._factories)
            raise ExchangeNotSupported(
                f"Exchange '{name}' is not supported. Available exchanges: {available}"
            )

        config = config or ExchangeConfig()
        connector = self._factories[key](config)
        logger.info(f"Created {key} exchange (sandbox={config.sandbox}, hedge_mode={config.hedge_mode})")
        return Exchange(connector, config)

    def __repr__(self) -> str:
        return f"<ExchangeManager(exchanges={self.list_exchanges()})>"

    def __len__(self) -> int:
        return len(self._factories)


def new_exchange(name: str, config: Optional[ExchangeConfig] = None) -> Exchange:
    """
    Create an Exchange with the built-in connector factories.

    Example:
        >>> exchange = new_exchange("binance", ExchangeConfig(sandbox=True))
        >>> exchange.name
        'binance'
    """
    return ExchangeManager().create_exchange(name, config)
