"""
Price delta classification.
"""

from fuel_price_monitor.data.models import Trend


# Deltas smaller than this are rounding noise in the feed.
NO_CHANGE_EPSILON = 0.01

DEFAULT_ALERT_THRESHOLD = 3.0


class TrendClassifier:
    """Classifies a price delta into a Trend."""

    def __init__(self, alert_threshold: float = DEFAULT_ALERT_THRESHOLD):
        """
        Args:
            alert_threshold: Delta magnitude above which a change counts as fast
        """
        self.alert_threshold = alert_threshold

    def classify(self, delta: float) -> Trend:
        abs_delta = abs(delta)

        if abs_delta < NO_CHANGE_EPSILON:
            return Trend.NO_CHANGE

        fast = abs_delta > self.alert_threshold
        if delta > 0:
            return Trend.FAST_RAISE if fast else Trend.RAISED
        return Trend.FAST_DROP if fast else Trend.DROPPED
