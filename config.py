"""
Configuration management for the fuel price monitor system.
"""

import os
import threading
from typing import Dict, Any, List, Optional, Tuple
from dataclasses import dataclass, field, asdict
from pathlib import Path
import json
from jsonschema import validate, ValidationError

from fuel_price_monitor.data.models import FuelType, Region
from fuel_price_monitor.utils.errors import ConfigurationError, MalformedSubscriberConfig
from fuel_price_monitor.utils.logging import get_logger


logger = get_logger(__name__)

DEFAULT_FEED_URL = "https://projectzerothree.info/api.php"


@dataclass
class DatabaseConfig:
    """History database settings."""
    sqlite_path: str = "data/fuel_price_history.db"


@dataclass
class FeedConfig:
    """Upstream price feed settings."""
    url: str = DEFAULT_FEED_URL
    request_timeout: int = 30
    user_agent: str = "fuel-price-monitor/1.0"


@dataclass
class NotificationConfig:
    """Email notification settings."""
    email_smtp_host: str = "smtp.gmail.com"
    email_smtp_port: int = 587
    email_username: Optional[str] = None
    email_password: Optional[str] = None
    email_sender: Optional[str] = None
    subject_prefix: str = "🔔711: "


@dataclass
class SchedulerConfig:
    """Scheduler configuration settings."""
    interval_minutes: int = 60
    timezone: str = "Australia/Melbourne"
    log_cleanup_hour: int = 2


@dataclass
class AlertConfig:
    """Trend classification and history retention settings."""
    alert_threshold: float = 3.0
    history_limit: int = 5


@dataclass(frozen=True)
class Subscriber:
    """One digest recipient."""
    email: str
    fuel_types: Tuple[FuelType, ...]
    home_state: Optional[Region] = None
    force_send: bool = False


@dataclass
class SystemConfig:
    """Main system configuration."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)
    notification: NotificationConfig = field(default_factory=NotificationConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    alert: AlertConfig = field(default_factory=AlertConfig)
    # Raw entries; validated one by one in ConfigManager.load_subscribers
    subscribers: List[Dict[str, Any]] = field(default_factory=list)
    log_level: str = "INFO"


SUBSCRIBER_SCHEMA = {
    "type": "object",
    "properties": {
        "email": {"type": "string", "pattern": "^[^@\\s]+@[^@\\s]+$"},
        "fuel_types": {
            "type": "array",
            "items": {"type": "string", "enum": [fuel_type.value for fuel_type in FuelType]},
            "minItems": 1
        },
        "home_state": {
            "type": ["string", "null"],
            "enum": [region.value for region in Region.states()] + [None]
        },
        "force_send": {"type": "boolean"}
    },
    "required": ["email", "fuel_types"],
    "additionalProperties": False
}

# Configuration schema for validation
CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "database": {
            "type": "object",
            "properties": {
                "sqlite_path": {"type": "string", "minLength": 1}
            },
            "additionalProperties": False
        },
        "feed": {
            "type": "object",
            "properties": {
                "url": {"type": "string", "minLength": 1},
                "request_timeout": {"type": "integer", "minimum": 1, "maximum": 300},
                "user_agent": {"type": "string", "minLength": 1}
            },
            "additionalProperties": False
        },
        "notification": {
            "type": "object",
            "properties": {
                "email_smtp_host": {"type": "string", "minLength": 1},
                "email_smtp_port": {"type": "integer", "minimum": 1, "maximum": 65535},
                "email_username": {"type": ["string", "null"]},
                "email_password": {"type": ["string", "null"]},
                "email_sender": {"type": ["string", "null"]},
                "subject_prefix": {"type": "string"}
            },
            "additionalProperties": False
        },
        "scheduler": {
            "type": "object",
            "properties": {
                "interval_minutes": {"type": "integer", "minimum": 1, "maximum": 10080},
                "timezone": {"type": "string", "minLength": 1},
                "log_cleanup_hour": {"type": "integer", "minimum": 0, "maximum": 23}
            },
            "additionalProperties": False
        },
        "alert": {
            "type": "object",
            "properties": {
                "alert_threshold": {"type": "number", "exclusiveMinimum": 0},
                "history_limit": {"type": "integer", "minimum": 1, "maximum": 1000}
            },
            "additionalProperties": False
        },
        # Entries are checked against SUBSCRIBER_SCHEMA individually
        "subscribers": {"type": "array"},
        "log_level": {
            "type": "string",
            "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        }
    },
    "additionalProperties": False
}


def parse_subscriber(entry: Any) -> Subscriber:
    """
    Validate one raw subscriber entry.

    Raises:
        MalformedSubscriberConfig: If the entry does not match SUBSCRIBER_SCHEMA
    """
    try:
        validate(instance=entry, schema=SUBSCRIBER_SCHEMA)
    except ValidationError as e:
        email = entry.get("email") if isinstance(entry, dict) else None
        raise MalformedSubscriberConfig(
            f"Invalid subscriber settings: {e.message}",
            {"email": email, "path": list(e.absolute_path)}
        )

    home_state = entry.get("home_state")
    return Subscriber(
        email=entry["email"],
        fuel_types=tuple(FuelType(value) for value in entry["fuel_types"]),
        home_state=Region(home_state) if home_state else None,
        force_send=entry.get("force_send", False)
    )


class ConfigManager:
    """Loads and validates configuration from a JSON file or the environment."""

    def __init__(self, config_path: str = "config.json"):
        self.config_path = Path(config_path)
        self._config: Optional[SystemConfig] = None
        self._last_modified: Optional[float] = None
        self._lock = threading.RLock()

    def validate_config(self, config_data: Dict[str, Any]) -> None:
        """Validate configuration data against schema."""
        try:
            validate(instance=config_data, schema=CONFIG_SCHEMA)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e.message}")

    def load_config(self) -> SystemConfig:
        """Load configuration from file or environment variables."""
        with self._lock:
            if self.config_path.exists():
                current_modified = self.config_path.stat().st_mtime
                if self._config is None or current_modified != self._last_modified:
                    self._load_from_file()
                    self._last_modified = current_modified
            elif self._config is None:
                self._load_from_env()

            return self._config

    def _load_from_file(self) -> None:
        """Load configuration from JSON file with validation."""
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config_data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Failed to read configuration from {self.config_path}: {e}")

        self.validate_config(config_data)

        self._config = self._dict_to_config(config_data)
        self._override_with_env_vars(self._config)

        logger.info(f"Configuration loaded and validated from {self.config_path}")

    def _load_from_env(self) -> None:
        """Load configuration from environment variables."""
        config = SystemConfig()
        self._override_with_env_vars(config)

        subscribers = os.getenv("FUEL_SUBSCRIBERS")
        if subscribers:
            try:
                config.subscribers = json.loads(subscribers)
            except ValueError as e:
                raise ConfigurationError(f"FUEL_SUBSCRIBERS is not valid JSON: {e}")
            if not isinstance(config.subscribers, list):
                raise ConfigurationError("FUEL_SUBSCRIBERS must be a JSON list")

        self._config = config
        logger.info("Configuration loaded from environment variables")

    def _override_with_env_vars(self, config: SystemConfig) -> None:
        """Override secrets and paths with environment variables."""
        if os.getenv("EMAIL_USERNAME"):
            config.notification.email_username = os.getenv("EMAIL_USERNAME")

        if os.getenv("EMAIL_PASSWORD"):
            config.notification.email_password = os.getenv("EMAIL_PASSWORD")

        if os.getenv("FUEL_FEED_URL"):
            config.feed.url = os.getenv("FUEL_FEED_URL")

        if os.getenv("FUEL_DB_PATH"):
            config.database.sqlite_path = os.getenv("FUEL_DB_PATH")

    def _dict_to_config(self, data: Dict[str, Any]) -> SystemConfig:
        """Convert dictionary to SystemConfig object."""
        config = SystemConfig()

        if "database" in data:
            config.database = DatabaseConfig(**data["database"])

        if "feed" in data:
            config.feed = FeedConfig(**data["feed"])

        if "notification" in data:
            config.notification = NotificationConfig(**data["notification"])

        if "scheduler" in data:
            config.scheduler = SchedulerConfig(**data["scheduler"])

        if "alert" in data:
            config.alert = AlertConfig(**data["alert"])

        config.subscribers = list(data.get("subscribers", []))
        config.log_level = data.get("log_level", config.log_level)

        return config

    def load_subscribers(self) -> List[Subscriber]:
        """
        Validate the configured subscribers.

        Malformed entries are logged and skipped so one bad entry never
        blocks the other recipients.
        """
        config = self.load_config()
        subscribers = []

        for position, entry in enumerate(config.subscribers):
            try:
                subscribers.append(parse_subscriber(entry))
            except MalformedSubscriberConfig as e:
                logger.error(
                    "Skipping subscriber #%d (%s): %s",
                    position, e.details.get("email") or "unknown", e.message
                )

        return subscribers

    def export_config(self) -> Dict[str, Any]:
        """Export current configuration as dictionary."""
        with self._lock:
            if not self._config:
                return {}

            return {
                "database": asdict(self._config.database),
                "feed": asdict(self._config.feed),
                "notification": asdict(self._config.notification),
                "scheduler": asdict(self._config.scheduler),
                "alert": asdict(self._config.alert),
                "subscribers": list(self._config.subscribers),
                "log_level": self._config.log_level
            }
