"""
Service layer components for the feed, digests, email delivery and scheduling.
"""

from .digest import UserDigest, unique_value_or_count
from .formatting import format_price, time_since
from .price_check import PriceCheckService, RunSummary

__all__ = [
    'UserDigest',
    'unique_value_or_count',
    'format_price',
    'time_since',
    'PriceCheckService',
    'RunSummary'
]
