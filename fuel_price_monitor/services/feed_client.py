"""
HTTP client for the upstream fuel price feed.
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import requests
from jsonschema import ValidationError, validate

from fuel_price_monitor.data.models import FuelType, Observation, PricePoint, Region
from fuel_price_monitor.services.formatting import to_millis
from fuel_price_monitor.utils.errors import FeedFetchError
from fuel_price_monitor.utils.logging import get_business_logger
from config import FeedConfig


FEED_SCHEMA = {
    "type": "object",
    "properties": {
        "updated": {"type": "number"},
        "regions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "region": {"type": "string", "minLength": 1},
                    "prices": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "type": {"type": "string"},
                                "price": {"type": "number"},
                                "name": {"type": "string"},
                                "state": {"type": "string"},
                                "postcode": {"type": ["string", "number"]},
                                "suburb": {"type": "string"},
                                "lat": {"type": "number"},
                                "lng": {"type": "number"}
                            },
                            "required": ["type", "price", "state", "suburb"]
                        }
                    }
                },
                "required": ["region", "prices"]
            }
        }
    },
    "required": ["regions"]
}

_FUEL_TYPES = {fuel_type.value: fuel_type for fuel_type in FuelType}
_REGIONS = {region.value: region for region in Region}


def parse_region_name(raw_name: str) -> Tuple[str, int]:
    """
    Split a feed region identifier like ``"VIC-3"`` into ``("VIC", 3)``.

    A missing index segment means the representative entry, index 1.
    """
    parts = raw_name.split("-")
    region = parts[0]
    if len(parts) == 1:
        return region, 1

    try:
        return region, int(parts[1])
    except ValueError:
        raise FeedFetchError(
            f"Invalid region identifier: {raw_name}",
            {"region": raw_name}
        )


def transform_feed(data: Dict[str, Any], timestamp_ms: int) -> List[Observation]:
    """
    Normalize a validated feed document into observations.

    Entries for fuel types or regions outside the fixed sets are skipped, as
    are prices that are not finite numbers.
    Every observation is stamped with the run timestamp.
    """
    observations = []

    for region_data in data["regions"]:
        region_name, index = parse_region_name(region_data["region"])
        region = _REGIONS.get(region_name)
        if region is None:
            continue

        for price_data in region_data["prices"]:
            fuel_type = _FUEL_TYPES.get(price_data["type"])
            if fuel_type is None:
                continue

            price = float(price_data["price"])
            if not math.isfinite(price):
                continue

            observations.append(Observation(
                fuel_type=fuel_type,
                region=region,
                index=index,
                price_point=PricePoint(
                    timestamp=timestamp_ms,
                    state=price_data["state"],
                    suburb=price_data["suburb"],
                    price=price,
                ),
            ))

    return observations


class FeedClient:
    """Fetches the price feed and turns it into observations."""

    def __init__(self, config: FeedConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": config.user_agent,
            "Accept": "application/json",
        })
        self.logger = get_business_logger('feed_client')

    def fetch(self, now: datetime) -> List[Observation]:
        """
        Download and normalize the current feed.

        Raises:
            FeedFetchError: On network, HTTP, JSON or schema failures
        """
        params = {"format": "json", "t": int(round(now.timestamp()))}
        self.logger.info("Loading price feed from %s", self.config.url)

        try:
            response = self.session.get(
                self.config.url,
                params=params,
                timeout=self.config.request_timeout
            )
            self.logger.info("Response code: %s", response.status_code)
            response.raise_for_status()
        except requests.RequestException as e:
            raise FeedFetchError(
                "Failed to download price feed",
                {"url": self.config.url, "error": str(e)}
            )

        try:
            data = response.json()
        except ValueError as e:
            raise FeedFetchError(
                "Price feed is not valid JSON",
                {"url": self.config.url, "error": str(e)}
            )

        try:
            validate(instance=data, schema=FEED_SCHEMA)
        except ValidationError as e:
            raise FeedFetchError(
                "Price feed has an unexpected structure",
                {"url": self.config.url, "error": e.message}
            )

        observations = transform_feed(data, to_millis(now))
        self.logger.info("Found %d price data points", len(observations))
        return observations
