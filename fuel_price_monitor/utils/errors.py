"""
Custom exception classes and error handling utilities.
"""

from typing import Optional, Dict, Any
import traceback


class FuelPriceMonitorError(Exception):
    """Base exception for all fuel price monitor errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class FeedFetchError(FuelPriceMonitorError):
    """Exception raised when the upstream price feed cannot be fetched or parsed."""
    pass


class HistoryStoreError(FuelPriceMonitorError):
    """Exception raised when price history cannot be read or written."""
    pass


class MalformedSubscriberConfig(FuelPriceMonitorError):
    """Exception raised for a subscriber entry that fails validation."""
    pass


class NotificationError(FuelPriceMonitorError):
    """Exception raised during notification operations."""
    pass


class ConfigurationError(FuelPriceMonitorError):
    """Exception raised for configuration-related issues."""
    pass


class SchedulerError(FuelPriceMonitorError):
    """Exception raised during scheduler operations."""
    pass


def handle_error(
    error: Exception,
    logger,
    context: Optional[Dict[str, Any]] = None,
    reraise: bool = True
) -> None:
    """
    Handle and log errors with context information.

    Args:
        error: The exception that occurred
        logger: Logger instance to use for logging
        context: Additional context information
        reraise: Whether to reraise the exception after logging
    """
    error_context = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        **(context or {})
    }

    if isinstance(error, FuelPriceMonitorError):
        error_context.update(error.details)

    logger.error(
        "Error occurred: %s\n%s",
        error_context,
        "".join(traceback.format_exception(type(error), error, error.__traceback__))
    )

    if reraise:
        raise error
