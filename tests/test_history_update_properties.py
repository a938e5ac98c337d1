"""
Property-based tests for bounded price history maintenance.
"""

import pytest
from hypothesis import given, strategies as st

from fuel_price_monitor.analysis.report_builder import ReportBuilder, update_history
from fuel_price_monitor.analysis.trend import TrendClassifier
from fuel_price_monitor.data.history_store import InMemoryHistoryStore
from fuel_price_monitor.data.models import (
    FuelType, Observation, PricePoint, Region, Trend, history_key
)


prices = st.floats(min_value=50, max_value=300, allow_nan=False).map(lambda p: round(p, 1))


@st.composite
def price_point_strategy(draw, timestamp=None):
    return PricePoint(
        timestamp=timestamp if timestamp is not None else draw(st.integers(min_value=0, max_value=2 ** 41)),
        state=draw(st.sampled_from(["VIC", "NSW", "QLD", "WA"])),
        suburb=draw(st.sampled_from(["Epping", "Parramatta", "Logan", "Midland"])),
        price=draw(prices)
    )


@st.composite
def history_strategy(draw, limit):
    return draw(st.lists(price_point_strategy(), min_size=0, max_size=limit))


class RecordingStore(InMemoryHistoryStore):
    """In-memory store that counts writes."""

    def __init__(self, initial=None):
        self.writes = []
        super().__init__(initial)
        self.writes.clear()

    def put(self, key, history):
        self.writes.append((key, list(history)))
        super().put(key, history)


def point(price, timestamp=0):
    return PricePoint(timestamp=timestamp, state="VIC", suburb="Epping", price=price)


def observe(fuel_type, region, price, index=1, timestamp=1000):
    return Observation(fuel_type, region, index, point(price, timestamp))


class TestUpdateHistoryProperties:

    @given(data=st.data(), limit=st.integers(min_value=1, max_value=10))
    def test_history_never_exceeds_limit(self, data, limit):
        history = data.draw(history_strategy(limit))
        new_price = data.draw(price_point_strategy())

        updated, _ = update_history(history, new_price, limit)

        assert len(updated) <= limit

    @given(data=st.data(), limit=st.integers(min_value=1, max_value=10))
    def test_changed_history_ends_with_new_price(self, data, limit):
        history = data.draw(history_strategy(limit))
        new_price = data.draw(price_point_strategy())

        updated, changed = update_history(history, new_price, limit)

        if changed:
            assert updated[-1] == new_price
            # Surviving entries keep their order
            kept = updated[:-1]
            assert kept == history[len(history) - len(kept):]
        else:
            assert updated == history
            assert history[-1].price == new_price.price

    @given(data=st.data(), limit=st.integers(min_value=1, max_value=10))
    def test_input_history_is_not_mutated(self, data, limit):
        history = data.draw(history_strategy(limit))
        snapshot = list(history)

        update_history(history, data.draw(price_point_strategy()), limit)

        assert history == snapshot

    def test_first_observation(self):
        new_price = point(1.45)
        updated, changed = update_history([], new_price, 5)
        assert updated == [new_price]
        assert changed is True

    def test_unchanged_price_keeps_history(self):
        history = [point(1.50), point(1.52)]
        updated, changed = update_history(history, point(1.52, timestamp=99), 5)
        assert updated == history
        assert changed is False

    def test_price_compared_without_epsilon(self):
        history = [point(1.50)]
        _, changed = update_history(history, point(1.5000001), 5)
        assert changed is True

    def test_bounded_eviction_drops_oldest(self):
        history = [point(1.50), point(1.52), point(1.55)]
        updated, changed = update_history(history, point(1.60), 3)
        assert [p.price for p in updated] == [1.52, 1.55, 1.60]
        assert changed is True


class TestReportBuilder:

    def build(self, store, observations, fuel_type=FuelType.U91, region=Region.ALL,
              alert_threshold=3.0, history_limit=5):
        builder = ReportBuilder(store, TrendClassifier(alert_threshold), history_limit)
        return builder.build_report(observations, fuel_type, region)

    def test_first_observation_uses_price_as_delta(self):
        store = RecordingStore()
        report = self.build(store, [observe(FuelType.U91, Region.ALL, 1.45)])

        assert [p.price for p in report.history_prices] == [1.45]
        assert report.price_delta == 1.45
        assert report.trend == TrendClassifier(3.0).classify(1.45)
        assert report.trend == Trend.RAISED
        assert len(store.writes) == 1

    def test_bounded_eviction_report(self):
        key = history_key(FuelType.U91, Region.ALL)
        store = RecordingStore({key: [point(1.50), point(1.52), point(1.55)]})

        report = self.build(store, [observe(FuelType.U91, Region.ALL, 1.60)], history_limit=3)

        assert [p.price for p in report.history_prices] == [1.52, 1.55, 1.60]
        assert report.price_delta == pytest.approx(0.05)
        assert report.trend == Trend.RAISED
        assert [p.price for p in store.get(key)] == [1.52, 1.55, 1.60]

    def test_large_drop_is_fast_drop(self):
        key = history_key(FuelType.DIESEL, Region.WA)
        store = RecordingStore({key: [point(190.0)]})

        report = self.build(store, [observe(FuelType.DIESEL, Region.WA, 186.0)],
                            fuel_type=FuelType.DIESEL, region=Region.WA)

        assert report.price_delta == pytest.approx(-4.0)
        assert report.trend == Trend.FAST_DROP

    def test_no_observations_leaves_history_alone(self):
        key = history_key(FuelType.LPG, Region.QLD)
        store = RecordingStore({key: [point(99.9)]})

        report = self.build(store, [], fuel_type=FuelType.LPG, region=Region.QLD)

        assert report.latest_prices == ()
        assert report.best_price is None
        assert [p.price for p in report.history_prices] == [99.9]
        assert report.price_delta == 0
        assert report.trend == Trend.NO_CHANGE
        assert store.writes == []

    def test_latest_prices_sorted_by_index(self):
        observations = [
            observe(FuelType.U95, Region.NSW, 189.0, index=3),
            observe(FuelType.U95, Region.NSW, 180.0, index=1),
            observe(FuelType.U95, Region.NSW, 185.0, index=2),
            observe(FuelType.U95, Region.VIC, 170.0, index=1),
        ]
        report = self.build(RecordingStore(), observations, fuel_type=FuelType.U95, region=Region.NSW)

        assert [p.price for p in report.latest_prices] == [180.0, 185.0, 189.0]
        assert report.best_price == 180.0

    @given(history_prices=st.lists(prices, min_size=0, max_size=5), new_price=prices)
    def test_rebuilding_is_idempotent(self, history_prices, new_price):
        key = history_key(FuelType.E10, Region.ALL)
        store = RecordingStore({key: [point(p) for p in history_prices]})
        observations = [observe(FuelType.E10, Region.ALL, new_price)]

        first = self.build(store, observations, fuel_type=FuelType.E10)
        writes_after_first = len(store.writes)
        second = self.build(store, observations, fuel_type=FuelType.E10)

        assert len(store.writes) == writes_after_first
        assert second.history_prices == first.history_prices
        assert second.latest_prices == first.latest_prices
        assert second.trend == Trend.NO_CHANGE
        assert second.price_delta == 0

    @given(history_prices=st.lists(prices, min_size=1, max_size=5))
    def test_matching_history_gives_identical_reports_without_writes(self, history_prices):
        key = history_key(FuelType.E10, Region.ALL)
        store = RecordingStore({key: [point(p) for p in history_prices]})
        observations = [observe(FuelType.E10, Region.ALL, history_prices[-1])]

        first = self.build(store, observations, fuel_type=FuelType.E10)
        second = self.build(store, observations, fuel_type=FuelType.E10)

        assert first == second
        assert store.writes == []

    def test_invalid_history_limit_rejected(self):
        with pytest.raises(ValueError):
            ReportBuilder(InMemoryHistoryStore(), history_limit=0)
