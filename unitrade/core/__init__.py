"""
Core Package

Contains the exchange-agnostic normalization layer:
- numeric: exact decimal parsing, formatting and arithmetic
- schemas: immutable canonical models (Market, Ticker, Order, Position, ...)
- options: composable request options (with_limit, with_price, ...)
- connector: ExchangeConnector, the contract every exchange implements
- market_registry: per-market-type symbol translation and metadata cache
- exchange_interface / trading: the Spot and Perp facades
- exchange_manager: ExchangeConfig, Exchange and the connector factory registry

No module here performs network I/O itself; that is the connector's job.
"""
