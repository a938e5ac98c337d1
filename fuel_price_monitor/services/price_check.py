"""
One scheduled price check: fetch the feed, update histories, send digests.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from fuel_price_monitor.analysis.report_builder import ReportBuilder
from fuel_price_monitor.analysis.trend import TrendClassifier
from fuel_price_monitor.data.history_store import HistoryStore
from fuel_price_monitor.data.models import FuelType, Region, ReportSet
from fuel_price_monitor.services.digest import SUBJECT_PREFIX, UserDigest
from fuel_price_monitor.services.email_service import EmailSender
from fuel_price_monitor.services.feed_client import FeedClient
from fuel_price_monitor.services.formatting import to_millis
from fuel_price_monitor.utils.errors import handle_error, FeedFetchError
from fuel_price_monitor.utils.logging import get_business_logger, log_business_operation
from config import AlertConfig, Subscriber


@dataclass
class RunSummary:
    """Outcome of one price check run."""
    started_at: datetime
    observations: int = 0
    reports: int = 0
    changed_reports: int = 0
    failed_keys: List[str] = field(default_factory=list)
    digests_built: int = 0
    emails_sent: int = 0


class PriceCheckService:
    """Runs price checks against the feed, the history store and the mailer."""

    def __init__(
        self,
        feed_client: FeedClient,
        history_store: HistoryStore,
        email_sender: EmailSender,
        alert_config: Optional[AlertConfig] = None,
        subject_prefix: str = SUBJECT_PREFIX
    ):
        self.feed_client = feed_client
        self.history_store = history_store
        self.email_sender = email_sender
        self.alert_config = alert_config or AlertConfig()
        self.subject_prefix = subject_prefix
        self.report_builder = ReportBuilder(
            history_store,
            TrendClassifier(self.alert_config.alert_threshold),
            self.alert_config.history_limit
        )
        self.logger = get_business_logger('price_check')

    def build_report_set(self, now: datetime, summary: RunSummary) -> ReportSet:
        """
        Fetch the feed and build this run's reports.

        Raises:
            FeedFetchError: The feed could not be loaded; nothing was built or stored
        """
        try:
            observations = self.feed_client.fetch(now)
        except FeedFetchError as e:
            handle_error(
                e, self.logger,
                {"stage": "fetch", "run_timestamp": now.isoformat()},
                reraise=False
            )
            raise

        summary.observations = len(observations)

        report_set = self.report_builder.build_report_set(observations)
        summary.reports = len(report_set)
        summary.changed_reports = len(report_set.changed_reports)

        for (fuel_type, region), error in report_set.failures.items():
            summary.failed_keys.append(f"{fuel_type}@{region}")
            handle_error(
                error, self.logger,
                {"stage": "history", "fuel_type": str(fuel_type), "region": str(region)},
                reraise=False
            )

        for report in report_set.changed_reports:
            self.logger.info(
                "%s %s by %.2f (best price %s)",
                report.label, report.trend, report.price_delta, report.best_price
            )

        return report_set

    @log_business_operation('price_check', 'price check run')
    def run(self, now: datetime, subscribers: Sequence[Subscriber]) -> RunSummary:
        """Check prices once and send digests to every subscriber that needs one."""
        self.logger.info("Script run timestamp: %s", now.isoformat())
        summary = RunSummary(started_at=now)

        report_set = self.build_report_set(now, summary)

        for subscriber in subscribers:
            digest = UserDigest(
                recipient=subscriber.email,
                now_ms=to_millis(now),
                fuel_types=subscriber.fuel_types,
                home_state=subscriber.home_state,
                force_send=subscriber.force_send,
                subject_prefix=self.subject_prefix
            )
            self._deliver(digest, report_set, summary)

        self.logger.info(
            "Run finished: %d observations, %d reports (%d changed), %d emails sent",
            summary.observations, summary.reports, summary.changed_reports, summary.emails_sent
        )
        return summary

    @log_business_operation('price_check', 'test digest')
    def run_test(
        self,
        now: datetime,
        recipient: str,
        fuel_types: Sequence[FuelType],
        home_state: Optional[Region] = None
    ) -> RunSummary:
        """Check prices and force a digest to a single ad-hoc recipient."""
        self.logger.info("Script run timestamp: %s", now.isoformat())
        summary = RunSummary(started_at=now)

        report_set = self.build_report_set(now, summary)

        digest = UserDigest(
            recipient=recipient,
            now_ms=to_millis(now),
            fuel_types=fuel_types,
            home_state=home_state,
            force_send=True,
            subject_prefix=self.subject_prefix
        )
        self._deliver(digest, report_set, summary)
        return summary

    def _deliver(self, digest: UserDigest, report_set: ReportSet, summary: RunSummary) -> None:
        digest.add_reports(report_set)
        summary.digests_built += 1

        self.logger.info(
            "Digest for %s: %d reports, data changed: %s",
            digest.recipient, len(digest.reports), digest.changed
        )

        if not digest.should_send:
            self.logger.info("Data not changed, skip sending to %s", digest.recipient)
            return

        if not digest.changed:
            self.logger.info("Data not changed, but force send requested for %s", digest.recipient)

        if digest.try_send(self.email_sender):
            summary.emails_sent += 1
