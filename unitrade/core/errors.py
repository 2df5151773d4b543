"""
Error Taxonomy

Every failure raised by unitrade derives from UnitradeError. The hierarchy
separates three kinds of failure so callers can react without parsing
messages:

    Local caller misuse (never worth retrying):
        - InvalidArgument and its subclasses
        - RegistryNotLoaded

    Lookup failures visible to the caller:
        - MarketNotFound
        - OrderNotFound

    Remote / upstream failures:
        - ConnectorError wraps whatever the exchange connector raised
        - UnknownEnumValue flags data the normalization layer cannot map

Connectors raise the ConnectorFailure family (NetworkError, AuthError,
RateLimitError, ExchangeAPIError). The trading facade wraps those in
ConnectorError, keeping the original exception as __cause__.

Usage:
    from unitrade.core.errors import MarketNotFound, ConnectorError

    try:
        await exchange.spot.fetch_ticker("BTC/USDT")
    except MarketNotFound:
        ...
    except ConnectorError as e:
        print(e.operation, e.symbol, e.cause)
"""

from typing import Optional


class UnitradeError(Exception):
    """Base class for all unitrade errors."""


# ============================================
# Caller Misuse
# ============================================

class InvalidArgument(UnitradeError, ValueError):
    """An input failed validation before any network call was made."""


class MissingRequiredField(InvalidArgument):
    """A finished request lacks a field the operation requires."""


class InvalidOptionCombination(InvalidArgument):
    """Two request options (or an option and an argument) conflict."""


class InvalidNumericLiteral(InvalidArgument):
    """A value could not be parsed as an exact decimal number."""


class ExchangeNotSupported(InvalidArgument):
    """No connector factory is registered under the requested name."""


# ============================================
# Decimal Arithmetic
# ============================================

class NumericError(UnitradeError, ArithmeticError):
    """Base class for decimal arithmetic failures."""


class DivisionByZero(NumericError):
    """Division by a zero decimal."""


class PrecisionOverflow(NumericError):
    """The exact result does not fit the configured precision."""


# ============================================
# Registry / Lookup
# ============================================

class RegistryNotLoaded(UnitradeError):
    """load_markets() has never completed successfully for this registry."""


class MarketNotFound(UnitradeError, LookupError):
    """The canonical symbol (or native id) is not in the loaded registry."""


class OrderNotFound(UnitradeError, LookupError):
    """The exchange does not know the requested order."""


class UnknownEnumValue(UnitradeError):
    """
    The connector returned an enum code with no canonical mapping.

    Attributes:
        field: Name of the native field (e.g. "status")
        value: The unrecognized code as received
    """

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"Unknown {field} value from connector: {value!r}")


# ============================================
# Connector Failures
# ============================================

class ConnectorFailure(UnitradeError):
    """Base class for failures raised by exchange connectors."""


class NetworkError(ConnectorFailure):
    """Transport-level failure (timeout, DNS, connection reset, 5xx)."""


class AuthError(ConnectorFailure):
    """Missing or rejected credentials."""


class RateLimitError(ConnectorFailure):
    """The exchange refused the request because of rate limiting."""


class ExchangeAPIError(ConnectorFailure):
    """
    The exchange answered with an error payload.

    Attributes:
        status: HTTP status code
        code: Exchange-specific error code, when present
    """

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[int] = None):
        self.status = status
        self.code = code
        super().__init__(message)


class ConnectorError(UnitradeError):
    """
    A connector call failed; raised by the trading facade.

    Attributes:
        operation: Facade operation that issued the call (e.g. "create_order")
        symbol: Canonical symbol involved, if any
        cause: The exception raised by the connector
    """

    def __init__(self, operation: str, cause: BaseException, symbol: Optional[str] = None):
        self.operation = operation
        self.symbol = symbol
        self.cause = cause
        where = f"{operation}({symbol})" if symbol else operation
        super().__init__(f"{where} failed: {type(cause).__name__}: {cause}")
