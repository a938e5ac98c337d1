"""
Per-recipient price digests: report selection, send gating and rendering.
"""

import html
from typing import Any, Hashable, List, Optional, Sequence, Tuple, TypeVar

from fuel_price_monitor.data.models import FuelType, PriceReport, Region, ReportSet
from fuel_price_monitor.services.formatting import format_price, time_since


T = TypeVar("T", bound=Hashable)

SUBJECT_PREFIX = "🔔711: "


def unique_value_or_count(values: Sequence[T]) -> Tuple[int, Optional[T]]:
    """
    Return ``(1, value)`` when every value is the same, otherwise
    ``(number_of_distinct_values, None)``.
    """
    distinct = set(values)
    if len(distinct) == 1:
        return 1, values[0]
    return len(distinct), None


class UserDigest:
    """
    Collects the reports one recipient subscribed to and renders the email.

    A recipient gets the aggregate region plus their home state, if set, for
    each subscribed fuel type.
    """

    def __init__(
        self,
        recipient: str,
        now_ms: int,
        fuel_types: Sequence[FuelType],
        home_state: Optional[Region] = None,
        force_send: bool = False,
        subject_prefix: str = SUBJECT_PREFIX
    ):
        self.recipient = recipient
        self.now_ms = now_ms
        self.fuel_types = list(fuel_types)
        self.home_state = home_state
        self.force_send = force_send
        self.subject_prefix = subject_prefix

        self.reports: List[PriceReport] = []
        self.changed = False

    @property
    def regions(self) -> List[Region]:
        regions = [Region.ALL]
        if self.home_state is not None:
            regions.append(self.home_state)
        return regions

    def add_reports(self, report_set: ReportSet) -> None:
        for fuel_type in self.fuel_types:
            for region in self.regions:
                self.add_report(report_set.get(fuel_type, region))

    def add_report(self, report: Optional[PriceReport]) -> None:
        if report is None:
            return
        self.reports.append(report)
        self.changed = self.changed or report.price_changed

    @property
    def should_send(self) -> bool:
        return self.changed or self.force_send

    def try_send(self, sender) -> bool:
        """
        Send the digest through ``sender`` if anything changed or a send is forced.

        Returns:
            True if a send was attempted
        """
        if not self.should_send:
            return False

        sender.send(self.recipient, self.build_subject(), self.build_body())
        return True

    # Subject

    def build_subject(self) -> str:
        return (
            f"{self.subject_prefix}{self._subject_fuel_type()}@{self._subject_region()} "
            f"has {self._subject_trend_direction()} {self._subject_trend_speed()}"
        )

    def _subject_fuel_type(self) -> str:
        count, fuel_type = unique_value_or_count([report.fuel_type for report in self.reports])
        if count == 1:
            return str(fuel_type)
        return f"{count} fuel types"

    def _subject_region(self) -> str:
        count, region = unique_value_or_count([report.region for report in self.reports])
        if count == 1:
            return str(region)
        return f"{count} regions"

    def _subject_trend_direction(self) -> str:
        _, rising = unique_value_or_count([report.trend.is_rising for report in self.reports])
        return _tri_state(rising, "increased", "dropped", "changed")

    def _subject_trend_speed(self) -> str:
        _, fast = unique_value_or_count([report.trend.is_fast for report in self.reports])
        return _tri_state(fast, "significantly", "gradually", "with variant speed")

    # Body

    def build_body(self) -> str:
        return f"""
    <h2>Summary</h2>
    {self._summary_block()}
    <br>
    {self._reports_block()}
   """

    def summary_lines(self) -> List[str]:
        return [_summary_line(report) for report in self.reports]

    def _summary_block(self) -> str:
        return "<br>".join(self.summary_lines())

    def _reports_block(self) -> str:
        return "<br>".join(
            f"""
          <h3>{report.label}</h3>
          {self._history_table(report)}
          {self._latest_table(report)}
        """
            for report in self.reports
        )

    def _history_table(self, report: PriceReport) -> str:
        rows = "".join(
            f"<tr><td>{time_since(self.now_ms, point.timestamp)}</td>"
            f"<td>{format_price(point.price)}</td></tr>"
            for point in report.history_prices
        )
        return f"""
    <h3>Change History</h3>
    <table>
      <tr>
        <th>Time</th>
        <th>Price</th>
      </tr>
      {rows}
    </table>
    """

    def _latest_table(self, report: PriceReport) -> str:
        rows = "".join(
            f"<tr><td>{html.escape(point.suburb)}</td><td>{html.escape(point.state)}</td>"
            f"<td>{format_price(point.price)}</td></tr>"
            for point in report.latest_prices
        )
        return f"""
    <h3>Latest Best Price</h3>
    <table>
      <tr>
        <th>Suburb</th>
        <th>State</th>
        <th>Price</th>
      </tr>
      {rows}
    </table>
    """


def _summary_line(report: PriceReport) -> str:
    best_price = report.best_price
    best_price_text = format_price(best_price) if best_price is not None else "-"
    return (
        f"{report.label} has {report.trend.arrow} by "
        f"{format_price(report.price_delta)} at {best_price_text}"
    )


def _tri_state(value: Any, when_true: str, when_false: str, when_mixed: str) -> str:
    if value is True:
        return when_true
    if value is False:
        return when_false
    return when_mixed
