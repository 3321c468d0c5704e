"""
Root conftest.py - Global fixtures and configuration for all test layers.

Test Layers:
    - integration/: Repository against a real PostgreSQL
    - component/  : FastAPI app with the in-memory repository
    - unit/       : Service, sweeper, models and config in isolation
"""
import os
import sys
from typing import Any, Dict, List

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

# Keep test runs off the development env file defaults
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("SEGMENT_SWEEPER_ENABLED", "false")

from tests.fixtures import (
    FixedClock,
    MockSegmentRepository,
    make_numeric_user_id,
    make_segment_name,
)


# =============================================================================
# Test Configuration
# =============================================================================

class TestConfig:
    """Centralized test configuration"""

    SERVICE_NAME = "segment_service"
    SERVICE_PORT = 8080

    # Infrastructure
    POSTGRES_HOST = os.getenv("POSTGRES_HOST", "localhost")
    POSTGRES_PORT = int(os.getenv("POSTGRES_PORT", "5432"))
    TEST_DB_SCHEMA = os.getenv("SEGMENT_TEST_DB_SCHEMA", "segmentation_test")

    # Timeouts
    DB_TIMEOUT = 10


@pytest.fixture(scope="session")
def test_config() -> TestConfig:
    """Provide test configuration"""
    return TestConfig()


# =============================================================================
# Sample Data Fixtures
# =============================================================================

@pytest.fixture
def clock() -> FixedClock:
    """Controllable clock starting at 2023-08-15 12:00 UTC"""
    return FixedClock()


@pytest.fixture
def mock_repository() -> MockSegmentRepository:
    """Fresh in-memory repository with a fixed random seed"""
    return MockSegmentRepository(seed=42)


@pytest.fixture
def segment_name() -> str:
    return make_segment_name()


@pytest.fixture
def user_id() -> int:
    return make_numeric_user_id()


# =============================================================================
# Assertion Helpers
# =============================================================================

class AssertionHelpers:
    """Custom assertion helpers for tests"""

    @staticmethod
    def assert_http_success(response, expected_status: int = 200):
        """Assert HTTP response is successful"""
        assert response.status_code == expected_status, \
            f"Expected {expected_status}, got {response.status_code}: {response.text}"

    @staticmethod
    def assert_has_fields(data: Dict[str, Any], fields: List[str]):
        """Assert dict has required fields"""
        missing = [f for f in fields if f not in data]
        assert not missing, f"Missing fields: {missing}"


@pytest.fixture
def assertions() -> AssertionHelpers:
    """Provide assertion helpers"""
    return AssertionHelpers()


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "component: Component tests")
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "requires_db: Needs a reachable PostgreSQL")


def pytest_collection_modifyitems(config, items):
    """Skip DB tests when explicitly disabled"""
    skip_db = pytest.mark.skip(reason="PostgreSQL tests disabled (SKIP_DB_TESTS)")

    for item in items:
        if "requires_db" in item.keywords and os.getenv("SKIP_DB_TESTS"):
            item.add_marker(skip_db)
