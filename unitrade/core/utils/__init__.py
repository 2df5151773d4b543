"""
Core Utilities Package

Modules:
    - time: Timestamp conversion between exchange milliseconds and UTC datetimes
    - ids: Client order id generation
"""

from unitrade.core.utils.time import to_utc_datetime, datetime_to_timestamp
from unitrade.core.utils.ids import generate_client_order_id

__all__ = ["to_utc_datetime", "datetime_to_timestamp", "generate_client_order_id"]
