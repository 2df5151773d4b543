"""
Unified Logging Configuration

This module sets up the "unitrade" package logger. All modules should use
the logger (or a child from get_logger) instead of print() statements.

The handler is attached to the package logger only, so an application that
embeds unitrade keeps full control of its own root logging configuration.

Usage:
    from unitrade.core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Markets loaded")

Configuration:
    Log level is controlled by UNITRADE_LOG_LEVEL (see core/config.py).
"""

import logging
import sys
from typing import Optional


LOGGER_NAME = "unitrade"


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the package logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include logger name in log messages

    Returns:
        logging.Logger: The "unitrade" logger

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Exchange created")
        2024-01-01 12:00:00 [INFO] unitrade Exchange created
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Re-running setup replaces our handler instead of stacking a second one
    for handler in list(logger.handlers):
        if getattr(handler, "_unitrade_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(log_format, datefmt="%Y-%m-%d %H:%M:%S"))
    handler._unitrade_handler = True
    logger.addHandler(handler)
    logger.propagate = False

    return logger


# ============================================
# Initialize Logger with Settings
# ============================================

from unitrade.core.config import settings  # noqa: E402

logger = setup_logging(log_level=settings.log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child of the package logger.

    Args:
        name: Module name (typically __name__)

    Returns:
        logging.Logger: "unitrade.<name>" logger (no double prefix when
        name already starts with "unitrade.")

    Example:
        >>> get_logger("unitrade.exchanges.binance.api_client").name
        'unitrade.exchanges.binance.api_client'
    """
    if name == LOGGER_NAME or name.startswith(f"{LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def set_log_level(level: str) -> None:
    """Change the package log level at runtime."""
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(
    exchange: str,
    method: str,
    endpoint: str,
    params: dict = None,
    log: Optional[logging.Logger] = None
) -> None:
    """
    Log an outbound API request with consistent formatting.

    Signed parameters must be stripped by the caller before logging. Pass
    `log` to emit through a module logger instead of the package logger.

    Example:
        >>> log_api_request("binance", "GET", "/api/v3/klines", {"symbol": "BTCUSDT"})
        [DEBUG] API Request: binance GET /api/v3/klines | Params: {'symbol': 'BTCUSDT'}
    """
    log = log or logger
    if params:
        log.debug(f"API Request: {exchange} {method} {endpoint} | Params: {params}")
    else:
        log.debug(f"API Request: {exchange} {method} {endpoint}")


def log_api_response(
    exchange: str,
    endpoint: str,
    status: int,
    response_time: float = None,
    log: Optional[logging.Logger] = None
) -> None:
    """
    Log an API response with status and timing information.

    Example:
        >>> log_api_response("binance", "/api/v3/klines", 200, 0.342)
        [DEBUG] API Response: binance /api/v3/klines | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    (log or logger).debug(f"API Response: {exchange} {endpoint} | Status: {status}{time_str}")
