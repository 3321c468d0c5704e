"""
PostgreSQL Client Wrapper

Thin wrapper around an asyncpg connection pool.
Provides configuration-driven initialization and a consistent access pattern
for single statements and multi-statement transactions.

Usage:
    from core.postgres_client import PostgresClientWrapper

    db = PostgresClientWrapper("segment_service", infra_config)
    await db.initialize()

    # Single statements on a pooled connection
    async with db.connection() as conn:
        rows = await conn.fetch("SELECT name FROM segments WHERE id = $1", segment_id)

    # Transactions (rolled back on any exception)
    async with db.transaction() as conn:
        await conn.execute("DELETE FROM ...")
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import asyncpg

from core.config import InfraConfig

logger = logging.getLogger(__name__)


class PostgresClientWrapper:
    """
    PostgreSQL client wrapper.

    Wraps an asyncpg pool and provides:
    - Pool creation from InfraConfig
    - Transaction context manager
    - Pooled connection context manager
    """

    def __init__(self, service_name: str, infra: Optional[InfraConfig] = None):
        """
        Initialize PostgreSQL client wrapper.

        Args:
            service_name: Name of the service using this client
            infra: Connection settings (defaults to environment)
        """
        self.service_name = service_name
        self.infra = infra or InfraConfig.from_env()
        self._pool: Optional[asyncpg.Pool] = None

    async def initialize(self) -> None:
        """Create the connection pool"""
        if self._pool is not None:
            return
        self._pool = await asyncpg.create_pool(
            min_size=self.infra.pool_min_size,
            max_size=self.infra.pool_max_size,
            command_timeout=self.infra.command_timeout,
            server_settings={"application_name": self.service_name},
            **self.infra.connect_kwargs(),
        )
        logger.info(f"PostgreSQL pool initialized for {self.service_name}")

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("PostgreSQL pool is not initialized")
        return self._pool

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a pooled connection"""
        async with self.pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection and run the block in one transaction"""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def health_check(self) -> bool:
        """Check database health"""
        if self._pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except (asyncpg.PostgresError, OSError) as e:
            logger.warning(f"PostgreSQL health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close the pool"""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info(f"PostgreSQL pool closed for {self.service_name}")
