"""
Pytest configuration and fixtures for fuel price monitor tests.
"""

import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest
from hypothesis import settings, Verbosity

# Business loggers write files; keep them out of the source tree during tests.
_TEST_LOG_DIR = tempfile.mkdtemp(prefix="fuel_price_monitor_logs_")
os.environ.setdefault("FUEL_MONITOR_LOG_DIR", _TEST_LOG_DIR)

from fuel_price_monitor.data.history_store import InMemoryHistoryStore
from fuel_price_monitor.data.models import FuelType, Observation, PricePoint, Region
from fuel_price_monitor.services.formatting import to_millis

# Configure Hypothesis profiles
settings.register_profile("fast", max_examples=25, deadline=5000, verbosity=Verbosity.quiet)
settings.register_profile("thorough", max_examples=200, deadline=30000, verbosity=Verbosity.normal)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "fast"))


RUN_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def temp_db_dir():
    """Create a temporary directory for test databases."""
    temp_dir = tempfile.mkdtemp(prefix="fuel_price_monitor_test_")
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture(scope="function")
def temp_db_path(temp_db_dir, request):
    """Create a temporary database path for each test."""
    db_path = Path(temp_db_dir) / f"test_{os.getpid()}_{request.node.name}.db"
    yield str(db_path)


@pytest.fixture
def run_time():
    """Fixed run timestamp."""
    return RUN_TIME


@pytest.fixture
def run_time_ms():
    return to_millis(RUN_TIME)


@pytest.fixture
def history_store():
    return InMemoryHistoryStore()


@pytest.fixture
def sample_observations(run_time_ms):
    """A small feed snapshot: U91 in All and VIC, U98 in VIC."""
    def observation(fuel_type, region, index, price, suburb, state):
        return Observation(
            fuel_type=fuel_type,
            region=region,
            index=index,
            price_point=PricePoint(timestamp=run_time_ms, state=state, suburb=suburb, price=price)
        )

    return [
        observation(FuelType.U91, Region.ALL, 1, 172.9, "Epping", "VIC"),
        observation(FuelType.U91, Region.VIC, 2, 175.5, "Coburg", "VIC"),
        observation(FuelType.U91, Region.VIC, 1, 172.9, "Epping", "VIC"),
        observation(FuelType.U98, Region.VIC, 1, 199.9, "Preston", "VIC"),
    ]


def pytest_collection_modifyitems(config, items):
    """Add markers based on test names."""
    for item in items:
        if "properties" in item.fspath.basename:
            item.add_marker(pytest.mark.property)

        if "integration" in item.fspath.basename:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(_TEST_LOG_DIR, ignore_errors=True)
