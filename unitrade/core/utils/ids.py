"""Client order id generation."""

import secrets

from unitrade.core.config import settings


def uuid16() -> str:
    """Return 16 random hexadecimal characters."""
    return secrets.token_hex(8)


def generate_client_order_id(exchange: str, prefix: str = None) -> str:
    """
    Build a client order id of the form "<prefix>-<exchange>-<16 hex>".

    Example:
        >>> generate_client_order_id("Binance")
        'unitrade-binance-caa54b21bbabadd4'
    """
    prefix = prefix or settings.client_order_id_prefix
    return f"{prefix}-{exchange.lower()}-{uuid16()}"
