"""
Logging configuration and utilities.

All business loggers write to daily-rotated files under the log directory,
which defaults to ``<project>/logs`` and can be moved with the
``FUEL_MONITOR_LOG_DIR`` environment variable.
"""

import logging
import logging.handlers
import os
import sys
import time
from datetime import datetime, timedelta
from functools import wraps
from pathlib import Path
from typing import Optional


DEFAULT_RETENTION_DAYS = 7

# Business name -> log file name
BUSINESS_LOGS = {
    "price_check": "price_check.log",
    "feed_client": "feed_client.log",
    "history_store": "history_store.log",
    "email_service": "email_service.log",
    "scheduler": "scheduler.log",
    "config": "config.log",
}


def get_logs_dir() -> Path:
    """Return the directory business log files are written to."""
    configured = os.getenv("FUEL_MONITOR_LOG_DIR")
    if configured:
        return Path(configured)
    return Path(__file__).parent.parent.parent / "logs"


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    retention_days: int = DEFAULT_RETENTION_DAYS
) -> None:
    """
    Set up logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        retention_days: Number of days to retain rotated log files
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    # Clear existing handlers
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.TimedRotatingFileHandler(
            log_file,
            when='midnight',
            interval=1,
            backupCount=retention_days,
            encoding='utf-8'
        )
        file_handler.suffix = "%Y-%m-%d"

        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Get a standard logger instance (typically for ``__name__``)."""
    return logging.getLogger(name)


def get_business_logger(business_name: str, log_level: str = "INFO") -> logging.Logger:
    """
    Get a logger writing to the business-specific rotating log file.

    Args:
        business_name: Business name (e.g. 'price_check', 'feed_client')
        log_level: Logging level

    Returns:
        Configured logger; records also propagate to the root logger
    """
    log_file = BUSINESS_LOGS.get(business_name, f"{business_name}.log")

    logger = logging.getLogger(f"business.{business_name}")

    # Already configured
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, log_level.upper()))

    log_path = get_logs_dir() / log_file
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.TimedRotatingFileHandler(
        log_path,
        when='midnight',
        interval=1,
        backupCount=DEFAULT_RETENTION_DAYS,
        encoding='utf-8',
        delay=True
    )
    file_handler.suffix = "%Y-%m-%d"
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    ))
    logger.addHandler(file_handler)

    return logger


def cleanup_old_logs(logs_dir: Optional[Path] = None, retention_days: int = DEFAULT_RETENTION_DAYS) -> int:
    """
    Delete log files older than the retention period.

    Args:
        logs_dir: Log directory path
        retention_days: Days to keep

    Returns:
        Number of files removed
    """
    if logs_dir is None:
        logs_dir = get_logs_dir()

    if not logs_dir.exists():
        return 0

    logger = logging.getLogger(__name__)
    cleaned_count = 0
    cutoff_date = datetime.now() - timedelta(days=retention_days)

    for log_file in logs_dir.glob("*.log*"):
        if not log_file.is_file():
            continue

        file_mtime = datetime.fromtimestamp(log_file.stat().st_mtime)
        if file_mtime < cutoff_date:
            try:
                log_file.unlink()
            except OSError as e:
                logger.warning("Failed to remove expired log file %s: %s", log_file.name, e)
                continue
            cleaned_count += 1
            logger.info("Removed expired log file: %s", log_file.name)

    if cleaned_count > 0:
        logger.info("Log cleanup finished, %d files removed", cleaned_count)

    return cleaned_count


def log_business_operation(business_name: str, operation_name: Optional[str] = None):
    """
    Decorator logging start, duration and failure of a business operation.

    Args:
        business_name: Business name passed to get_business_logger
        operation_name: Operation name, defaults to the function name
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_business_logger(business_name)
            op_name = operation_name or func.__name__

            logger.info("Starting %s", op_name)
            start_time = time.time()

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                duration = time.time() - start_time
                logger.error("%s failed after %.2fs: %s", op_name, duration, e)
                raise

            duration = time.time() - start_time
            logger.info("Finished %s in %.2fs", op_name, duration)
            return result

        return wrapper
    return decorator
