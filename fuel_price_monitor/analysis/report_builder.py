"""
Builds per (fuel type, region) price reports from a feed snapshot and the
persisted price history.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from fuel_price_monitor.analysis.trend import TrendClassifier
from fuel_price_monitor.data.history_store import HistoryStore
from fuel_price_monitor.data.models import (
    ALL_FUEL_TYPES, ALL_REGIONS, FuelType, Observation, PricePoint,
    PriceReport, Region, ReportKey, ReportSet, Trend, history_key
)
from fuel_price_monitor.utils.errors import HistoryStoreError


DEFAULT_HISTORY_LIMIT = 5


def find_latest_prices(
    observations: Sequence[Observation],
    fuel_type: FuelType,
    region: Region
) -> List[PricePoint]:
    """Prices observed for one (fuel type, region) pair, ordered by index."""
    matching = [
        observation for observation in observations
        if observation.fuel_type is fuel_type and observation.region is region
    ]
    matching.sort(key=lambda observation: observation.index)
    return [observation.price_point for observation in matching]


def update_history(
    history: List[PricePoint],
    new_price: PricePoint,
    history_limit: int = DEFAULT_HISTORY_LIMIT
) -> Tuple[List[PricePoint], bool]:
    """
    Append ``new_price`` to ``history`` unless the price is unchanged.

    Prices are compared exactly. When the new list would exceed
    ``history_limit`` the oldest entries are dropped; with a history already
    at the limit that is exactly one entry.

    Returns:
        The updated history and whether it changed. ``history`` itself is
        never mutated.
    """
    if not history:
        return [new_price], True

    if history[-1].price == new_price.price:
        return list(history), False

    updated_history = list(history) + [new_price]
    if len(updated_history) > history_limit:
        updated_history = updated_history[len(updated_history) - history_limit:]

    return updated_history, True


class ReportBuilder:
    """
    Turns normalized observations into a ReportSet.

    The builder is the only writer of price history. Each key is read once
    and written at most once per build, and only after the complete updated
    list is known.
    """

    def __init__(
        self,
        history_store: HistoryStore,
        classifier: Optional[TrendClassifier] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT
    ):
        if history_limit < 1:
            raise ValueError("history_limit must be at least 1")

        self.history_store = history_store
        self.classifier = classifier or TrendClassifier()
        self.history_limit = history_limit

    def build_report_set(self, observations: Sequence[Observation]) -> ReportSet:
        """
        Build a report for every fuel type and region.

        A history store failure only costs the affected key its report; the
        error is kept in ``ReportSet.failures``.
        """
        reports: List[PriceReport] = []
        failures: Dict[ReportKey, Exception] = {}

        for fuel_type in ALL_FUEL_TYPES:
            for region in ALL_REGIONS:
                try:
                    reports.append(self.build_report(observations, fuel_type, region))
                except HistoryStoreError as e:
                    failures[(fuel_type, region)] = e

        return ReportSet.from_reports(reports, failures)

    def build_report(
        self,
        observations: Sequence[Observation],
        fuel_type: FuelType,
        region: Region
    ) -> PriceReport:
        latest_prices = find_latest_prices(observations, fuel_type, region)
        best_price = latest_prices[0] if latest_prices else None

        history_prices, changed = self._build_history_prices(fuel_type, region, best_price)
        price_delta, trend = self._find_price_trend(history_prices, changed)

        return PriceReport(
            fuel_type=fuel_type,
            region=region,
            latest_prices=tuple(latest_prices),
            history_prices=tuple(history_prices),
            price_delta=price_delta,
            trend=trend,
        )

    def _build_history_prices(
        self,
        fuel_type: FuelType,
        region: Region,
        best_price: Optional[PricePoint]
    ) -> Tuple[List[PricePoint], bool]:
        key = history_key(fuel_type, region)
        history = self.history_store.get(key)

        if best_price is None:
            return history, False

        updated_history, changed = update_history(history, best_price, self.history_limit)
        if changed:
            self.history_store.put(key, updated_history)

        return updated_history, changed

    def _find_price_trend(
        self,
        history_prices: List[PricePoint],
        changed: bool
    ) -> Tuple[float, Trend]:
        if not changed:
            return 0.0, Trend.NO_CHANGE

        if len(history_prices) >= 2:
            previous, latest = history_prices[-2], history_prices[-1]
            price_delta = latest.price - previous.price
        else:
            # First data point for the key: the price itself stands in for the delta.
            price_delta = history_prices[0].price

        return price_delta, self.classifier.classify(price_delta)
