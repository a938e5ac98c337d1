"""
Data models and price history persistence.
"""

from .models import (
    FuelType, Region, PricePoint, Observation, Trend, PriceReport, ReportSet,
    ALL_FUEL_TYPES, ALL_REGIONS, history_key
)
from .history_store import HistoryStore, InMemoryHistoryStore, SQLiteHistoryStore

__all__ = [
    'FuelType',
    'Region',
    'PricePoint',
    'Observation',
    'Trend',
    'PriceReport',
    'ReportSet',
    'ALL_FUEL_TYPES',
    'ALL_REGIONS',
    'history_key',
    'HistoryStore',
    'InMemoryHistoryStore',
    'SQLiteHistoryStore'
]
