"""
Unit Tests for SegmentRepository statement handling

Runs the repository against a mocked asyncpg connection to pin down
which statements are issued, without a database.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from core.config_manager import ConfigManager
from microservices.segment_service.segment_repository import SegmentRepository

NOW = datetime(2023, 8, 15, 12, 0, tzinfo=timezone.utc)


class FakeDatabase:
    """Hands out one mocked connection for every transaction"""

    def __init__(self, conn):
        self.conn = conn

    @asynccontextmanager
    async def transaction(self):
        yield self.conn

    @asynccontextmanager
    async def connection(self):
        yield self.conn


def membership_row(inserted: bool, time_out=None):
    return {
        "user_id": 1,
        "segment_id": 7,
        "time_in": NOW,
        "time_out": time_out,
        "inserted": inserted,
    }


@pytest.fixture
def conn():
    conn = AsyncMock()
    conn.fetchval.return_value = 1
    conn.fetch.return_value = [{"id": 7, "name": "a"}]
    return conn


@pytest.fixture
def repository(conn):
    return SegmentRepository(config=ConfigManager("segment_service"), db=FakeDatabase(conn))


class TestAddUserSegmentsUpsert:
    """Membership insert and expiration refresh share one statement"""

    @pytest.mark.asyncio
    async def test_new_membership_opens_history(self, repository, conn):
        conn.fetchrow.return_value = membership_row(inserted=True)

        memberships = await repository.add_user_segments(1, ["a"], NOW)

        assert conn.fetchrow.await_count == 1
        assert "ON CONFLICT (user_id, segment_id) DO UPDATE" in conn.fetchrow.await_args.args[0]
        conn.execute.assert_awaited_once()
        assert "user_segment_history" in conn.execute.await_args.args[0]
        assert memberships[0].segment_name == "a"

    @pytest.mark.asyncio
    async def test_existing_membership_only_refreshes_expiration(self, repository, conn):
        """No second statement and no new history row when the pair already exists"""
        later = NOW + timedelta(hours=1)
        conn.fetchrow.return_value = membership_row(inserted=False, time_out=later)

        memberships = await repository.add_user_segments(1, ["a"], NOW, later)

        assert conn.fetchrow.await_count == 1
        conn.execute.assert_not_awaited()
        assert memberships[0].time_out == later
        assert memberships[0].time_in == NOW
