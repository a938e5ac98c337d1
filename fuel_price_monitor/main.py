"""
Command line entry point for the fuel price monitor.
"""

import argparse
import json
import os
import sys
from dataclasses import asdict
from datetime import datetime
from typing import Any, List, Optional

from config import ConfigManager, SystemConfig
from fuel_price_monitor.data.history_store import SQLiteHistoryStore
from fuel_price_monitor.data.models import FuelType, Region, history_key
from fuel_price_monitor.services.email_service import (
    EmailSender, RecordingEmailSender, SMTPEmailSender
)
from fuel_price_monitor.services.feed_client import FeedClient
from fuel_price_monitor.services.formatting import format_price, time_since, to_millis
from fuel_price_monitor.services.price_check import PriceCheckService, RunSummary
from fuel_price_monitor.services.scheduler import PriceCheckScheduler
from fuel_price_monitor.utils.errors import (
    ConfigurationError, FeedFetchError, HistoryStoreError, SchedulerError
)
from fuel_price_monitor.utils.logging import get_logger, setup_logging


logger = get_logger(__name__)


class FuelPriceMonitorApp:
    """Wires configuration, storage, feed and mailer into a PriceCheckService."""

    def __init__(self, config_path: Optional[str] = None, dry_run: bool = False):
        self.config_manager = ConfigManager(config_path or os.getenv("FUEL_MONITOR_CONFIG", "config.json"))
        self.config: Optional[SystemConfig] = None
        self.dry_run = dry_run
        self.history_store: Optional[SQLiteHistoryStore] = None
        self.email_sender: Optional[EmailSender] = None
        self.service: Optional[PriceCheckService] = None

    def initialize(self, log_level: Optional[str] = None) -> None:
        self.config = self.config_manager.load_config()

        setup_logging(
            log_level=log_level or self.config.log_level,
            log_file="logs/fuel_price_monitor.log"
        )

        self.history_store = SQLiteHistoryStore(self.config.database.sqlite_path)
        self.history_store.initialize()

        if self.dry_run:
            self.email_sender = RecordingEmailSender()
        else:
            self.email_sender = SMTPEmailSender(self.config.notification)

        self.service = PriceCheckService(
            feed_client=FeedClient(self.config.feed),
            history_store=self.history_store,
            email_sender=self.email_sender,
            alert_config=self.config.alert,
            subject_prefix=self.config.notification.subject_prefix
        )

    def run_once(self) -> RunSummary:
        return self.service.run(datetime.now(), self.config_manager.load_subscribers())

    def run_test(self, recipient: str, fuel_types: List[FuelType], home_state: Optional[Region]) -> RunSummary:
        return self.service.run_test(datetime.now(), recipient, fuel_types, home_state)

    def run_scheduler(self) -> None:
        scheduler = PriceCheckScheduler(
            self.service,
            self.config_manager.load_subscribers,
            self.config.scheduler
        )
        scheduler.schedule_price_check()
        scheduler.schedule_log_cleanup()
        scheduler.start()

    def show_history(self, fuel_type: FuelType, region: Region) -> List[dict]:
        now_ms = to_millis(datetime.now())
        history = self.history_store.get(history_key(fuel_type, region))
        return [
            {"time": time_since(now_ms, point.timestamp), "price": format_price(point.price),
             "suburb": point.suburb, "state": point.state}
            for point in history
        ]


def create_cli_parser() -> argparse.ArgumentParser:
    """Create command-line interface parser."""
    parser = argparse.ArgumentParser(
        description='Fuel Price Monitor - price trend digests by email',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --run-once                            # Check prices and email subscribers
  %(prog)s --schedule                            # Check prices periodically
  %(prog)s --test-email me@example.com           # Force a digest to one address
  %(prog)s --test-email me@example.com --fuel-types U91 --home-state NSW
  %(prog)s --show-history U98 VIC                # Print stored history
        """
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        help='Path to configuration file (default: $FUEL_MONITOR_CONFIG or config.json)'
    )

    operation_group = parser.add_mutually_exclusive_group(required=True)

    operation_group.add_argument(
        '--run-once',
        action='store_true',
        help='Check prices once, email subscribers and exit'
    )

    operation_group.add_argument(
        '--schedule',
        action='store_true',
        help='Check prices on the configured interval until interrupted'
    )

    operation_group.add_argument(
        '--test-email',
        type=str,
        metavar='EMAIL',
        help='Check prices and force a digest to a single address'
    )

    operation_group.add_argument(
        '--show-history',
        nargs=2,
        metavar=('FUEL_TYPE', 'REGION'),
        help='Print the stored price history for one fuel type and region'
    )

    parser.add_argument(
        '--fuel-types',
        nargs='+',
        choices=[fuel_type.value for fuel_type in FuelType],
        default=['U98', 'U95'],
        help='Fuel types for --test-email (default: U98 U95)'
    )

    parser.add_argument(
        '--home-state',
        choices=[region.value for region in Region.states()],
        default='VIC',
        help='Home state for --test-email (default: VIC)'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        choices=['json', 'text'],
        default='text',
        help='Output format for results (default: text)'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Override log level from configuration'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Build digests without sending email'
    )

    return parser


def format_output(data: Any, format_type: str) -> str:
    """Format output data according to specified format."""
    if format_type == 'json':
        return json.dumps(data, indent=2, default=str, ensure_ascii=False)

    if isinstance(data, dict):
        lines = []
        for key, value in data.items():
            if isinstance(value, list):
                lines.append(f"{key}: {', '.join(map(str, value))}")
            else:
                lines.append(f"{key}: {value}")
        return '\n'.join(lines)
    if isinstance(data, list):
        return '\n'.join(map(str, data))
    return str(data)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with command-line interface."""
    parser = create_cli_parser()
    args = parser.parse_args(argv)

    history_target = None
    if args.show_history:
        try:
            history_target = (FuelType(args.show_history[0]), Region(args.show_history[1]))
        except ValueError as e:
            parser.error(str(e))

    app = FuelPriceMonitorApp(config_path=args.config, dry_run=args.dry_run)

    try:
        app.initialize(log_level=args.log_level)

        if history_target:
            print(format_output(app.show_history(*history_target), args.output))
        elif args.schedule:
            app.run_scheduler()
        elif args.test_email:
            summary = app.run_test(
                args.test_email,
                [FuelType(value) for value in args.fuel_types],
                Region(args.home_state)
            )
            print(format_output(asdict(summary), args.output))
        else:
            summary = app.run_once()
            print(format_output(asdict(summary), args.output))

        if args.dry_run and isinstance(app.email_sender, RecordingEmailSender):
            for email in app.email_sender.sent:
                print(f"[dry-run] {email['to']}: {email['subject']}")

    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except (ConfigurationError, FeedFetchError, HistoryStoreError, SchedulerError) as e:
        logger.error(f"Price check aborted: {e.message}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
