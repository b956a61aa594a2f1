"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for planetscale_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from planetscale_mock import FakeClock, MockPlanetScaleApi  # noqa: E402

from planetscale_operator.config import Config  # noqa: E402


@pytest.fixture
def api() -> MockPlanetScaleApi:
    """Empty in-memory PlanetScale API."""
    return MockPlanetScaleApi()


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock driving readiness waits."""
    return FakeClock()


@pytest.fixture
def config() -> Config:
    """Configuration with a default organization and short readiness bounds."""
    return Config(
        organization="acme",
        app="shop",
        stage="test",
        ready_poll_interval_seconds=2.0,
        ready_timeout_seconds=30.0,
    )
