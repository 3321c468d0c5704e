"""
Unit Test Fixtures for Segment Service

Provides the service wired to the in-memory repository and a fixed clock.
"""

import logging
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from microservices.segment_service.protocols import SegmentRepositoryProtocol
from microservices.segment_service.segment_service import SegmentService
from tests.fixtures import FixedClock, MockSegmentRepository


@pytest.fixture
def test_logger() -> logging.Logger:
    return logging.getLogger("tests.segment_service")


@pytest.fixture
def segment_service(mock_repository: MockSegmentRepository, clock: FixedClock, test_logger):
    """Segment service backed by the in-memory repository"""
    return SegmentService(repository=mock_repository, logger=test_logger, clock=clock)


@pytest.fixture
def strict_repository():
    """AsyncMock constrained to the repository protocol"""
    return AsyncMock(spec=SegmentRepositoryProtocol)


@pytest.fixture
def service_with_strict_repository(strict_repository, clock):
    return SegmentService(repository=strict_repository, clock=clock)


@pytest_asyncio.fixture
async def populated_repository(mock_repository: MockSegmentRepository, clock: FixedClock):
    """Ten users (ids 1..10) and two manual segments"""
    for user_id in range(1, 11):
        await mock_repository.create_user(user_id, clock())
    await mock_repository.create_segment("AVITO_VOICE_MESSAGES", 0, clock())
    await mock_repository.create_segment("AVITO_PERFORMANCE_VAS", 0, clock())
    return mock_repository
