"""
Segment Service Integration Test Fixtures

Provides a SegmentRepository bound to a throwaway schema.
"""

import asyncio
import uuid
from typing import AsyncGenerator

import asyncpg
import pytest
import pytest_asyncio

from core.config import InfraConfig, LoggingConfig, ServiceConfig
from core.config_manager import ConfigManager
from microservices.segment_service.protocols import StoreFailureError
from microservices.segment_service.segment_repository import SegmentRepository


@pytest_asyncio.fixture(scope="function")
async def repository(test_config) -> AsyncGenerator[SegmentRepository, None]:
    """
    SegmentRepository on a fresh schema

    The schema is created by initialize() and dropped after the test.
    """
    schema = f"{test_config.TEST_DB_SCHEMA}_{uuid.uuid4().hex[:8]}"
    config = ConfigManager(
        "segment_service",
        service=ServiceConfig(db_schema=schema, transaction_timeout=test_config.DB_TIMEOUT),
        infra=InfraConfig.from_env(),
        logging_config=LoggingConfig(),
    )
    repo = SegmentRepository(config=config)

    try:
        await repo.initialize()
    except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, StoreFailureError) as e:
        await repo.close()
        pytest.skip(f"PostgreSQL not available: {e}")

    try:
        yield repo
    finally:
        async with repo.db.connection() as conn:
            await conn.execute(f"DROP SCHEMA IF EXISTS {schema} CASCADE")
        await repo.close()
