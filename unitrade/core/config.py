"""
Configuration Management Module

This module handles loading, validating, and providing access to library-wide
configuration from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.
All variables carry the UNITRADE_ prefix, e.g. UNITRADE_LOG_LEVEL=DEBUG.

Key Features:
- Loads configuration from .env file
- Provides type-safe access to configuration values
- Holds exchange endpoint URLs (live and sandbox)
- Controls decimal arithmetic precision and request defaults

Per-exchange credentials are NOT read from here; they are passed explicitly
through ExchangeConfig when an exchange object is created.

Usage:
    from unitrade.core.config import settings

    print(settings.binance_spot_base_url)
    print(settings.decimal_precision)
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Library Settings

    Attributes:
        log_level: Logging level for the "unitrade" logger
        request_timeout: Timeout for HTTP requests in seconds
        decimal_precision: Significant digits available to decimal arithmetic
        default_ohlcv_limit: Candles requested when the caller sets no limit
        client_order_id_prefix: Prefix of generated client order ids
        position_mode_ttl: Seconds a detected perp position mode stays cached
        binance_spot_base_url: Binance spot REST base URL
        binance_perp_base_url: Binance USD-M futures REST base URL
        binance_spot_sandbox_url: Binance spot demo/testnet base URL
        binance_perp_sandbox_url: Binance USD-M futures demo/testnet base URL
        binance_recv_window: recvWindow (ms) sent with signed Binance requests
    """

    # ============================================
    # Application Configuration
    # ============================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    request_timeout: int = Field(
        default=10,
        description="HTTP request timeout in seconds"
    )

    # ============================================
    # Normalization Defaults
    # ============================================

    decimal_precision: int = Field(
        default=38,
        description="Significant digits for decimal add/sub/mul/div"
    )

    default_ohlcv_limit: int = Field(
        default=100,
        description="Number of candles requested when no limit option is given"
    )

    client_order_id_prefix: str = Field(
        default="unitrade",
        description="Prefix used when generating client order ids"
    )

    position_mode_ttl: int = Field(
        default=300,
        description="Seconds before the account position mode is queried again"
    )

    # ============================================
    # Binance API Configuration
    # ============================================

    binance_spot_base_url: str = Field(
        default="https://api.binance.com",
        description="Binance spot API base URL"
    )

    binance_perp_base_url: str = Field(
        default="https://fapi.binance.com",
        description="Binance USD-M futures API base URL"
    )

    binance_spot_sandbox_url: str = Field(
        default="https://demo-api.binance.com",
        description="Binance spot sandbox API base URL"
    )

    binance_perp_sandbox_url: str = Field(
        default="https://demo-fapi.binance.com",
        description="Binance USD-M futures sandbox API base URL"
    )

    binance_recv_window: int = Field(
        default=5000,
        description="recvWindow in milliseconds for signed Binance requests"
    )

    # ============================================
    # Pydantic Settings Configuration
    # ============================================

    model_config = SettingsConfigDict(
        env_prefix="UNITRADE_",
        env_file=".env",
        extra="ignore",
        case_sensitive=False
    )


# ============================================
# Global Settings Instance
# ============================================

settings = Settings()


# ============================================
# Configuration Validation
# ============================================

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def validate_configuration(config: Settings = None) -> None:
    """
    Validate critical configuration settings.

    Args:
        config: Settings to check (defaults to the global settings)

    Raises:
        ValueError: If a setting is missing or out of range
    """
    # logging.py imports config.py, so import lazily
    from unitrade.core.logging import logger

    config = config or settings

    if config.log_level.upper() not in VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(VALID_LOG_LEVELS)}"
        )

    for name in (
        "request_timeout",
        "decimal_precision",
        "default_ohlcv_limit",
        "position_mode_ttl",
        "binance_recv_window",
    ):
        value = getattr(config, name)
        if value <= 0:
            raise ValueError(f"{name.upper()} must be positive, got {value}")

    for name in (
        "binance_spot_base_url",
        "binance_perp_base_url",
        "binance_spot_sandbox_url",
        "binance_perp_sandbox_url",
    ):
        url = getattr(config, name)
        if not url.startswith(("http://", "https://")):
            raise ValueError(f"{name.upper()} must be an http(s) URL, got '{url}'")

    logger.info("Configuration validated successfully")
    logger.info(f"Log level: {config.log_level.upper()}")
    logger.info(f"Decimal precision: {config.decimal_precision} digits")
    logger.info(f"Binance spot API: {config.binance_spot_base_url}")
    logger.info(f"Binance perp API: {config.binance_perp_base_url}")
