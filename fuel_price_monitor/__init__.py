"""
Fuel price monitor: tracks fuel price trends per fuel type and region and
emails digests to subscribers.
"""

__version__ = "1.0.0"
