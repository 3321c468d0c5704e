"""
Segment Service Data Repository

Data access layer - PostgreSQL (asyncpg)
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar
from datetime import datetime

import asyncpg

from core.config_manager import ConfigManager
from core.postgres_client import PostgresClientWrapper
from .models import Segment, SegmentHistory, UserSegment
from .protocols import (
    AlreadyExistsError,
    DuplicateSegmentError,
    DuplicateUserError,
    NotFoundError,
    SegmentNotFoundError,
    SegmentServiceError,
    StoreFailureError,
    TransientStoreError,
    UserNotFoundError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Retryable: the same request may succeed on a second attempt
TRANSIENT_ERRORS = (
    asyncio.TimeoutError,
    OSError,
    asyncpg.DeadlockDetectedError,
    asyncpg.SerializationError,
    asyncpg.PostgresConnectionError,
    asyncpg.CannotConnectNowError,
    asyncpg.TooManyConnectionsError,
    asyncpg.QueryCanceledError,
    asyncpg.exceptions.ConnectionDoesNotExistError,
)


class SegmentRepository:
    """Segment service data repository - PostgreSQL (Async)"""

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        db: Optional[PostgresClientWrapper] = None,
    ):
        if config is None:
            config = ConfigManager("segment_service")

        service_config = config.get_service_config()
        self.db = db or PostgresClientWrapper(
            service_name=service_config.service_name,
            infra=config.get_infra_config(),
        )
        self.transaction_timeout = service_config.transaction_timeout
        self.schema = service_config.db_schema
        self.users_table = "users"
        self.segments_table = "segments"
        self.memberships_table = "user_segments"
        self.history_table = "user_segment_history"

    async def initialize(self):
        """Open the pool and create schema objects if missing"""
        await self.db.initialize()
        await self._run("initializing schema", self._create_schema)
        logger.info(f"Segment repository initialized with PostgreSQL schema '{self.schema}'")

    async def close(self):
        """Close database connection"""
        await self.db.close()
        logger.info("Segment repository database connection closed")

    async def health_check(self) -> bool:
        return await self.db.health_check()

    async def _create_schema(self, conn: asyncpg.Connection) -> None:
        s = self.schema
        await conn.execute(f'''
            CREATE SCHEMA IF NOT EXISTS {s};

            CREATE TABLE IF NOT EXISTS {s}.{self.users_table} (
                id BIGINT PRIMARY KEY CHECK (id > 0),
                created_at TIMESTAMPTZ NOT NULL DEFAULT now()
            );

            CREATE TABLE IF NOT EXISTS {s}.{self.segments_table} (
                id SERIAL PRIMARY KEY,
                name VARCHAR(50) NOT NULL UNIQUE,
                auto_percent SMALLINT NOT NULL DEFAULT 0
                    CHECK (auto_percent BETWEEN 0 AND 100),
                created_at TIMESTAMPTZ NOT NULL DEFAULT now()
            );

            CREATE TABLE IF NOT EXISTS {s}.{self.memberships_table} (
                user_id BIGINT NOT NULL REFERENCES {s}.{self.users_table}(id),
                segment_id INTEGER NOT NULL REFERENCES {s}.{self.segments_table}(id),
                time_in TIMESTAMPTZ NOT NULL,
                time_out TIMESTAMPTZ,
                PRIMARY KEY (user_id, segment_id),
                CHECK (time_out IS NULL OR time_out >= time_in)
            );

            CREATE TABLE IF NOT EXISTS {s}.{self.history_table} (
                id BIGSERIAL PRIMARY KEY,
                user_id BIGINT NOT NULL REFERENCES {s}.{self.users_table}(id),
                segment_name VARCHAR(50) NOT NULL,
                time_added TIMESTAMPTZ NOT NULL,
                time_removed TIMESTAMPTZ
            );

            CREATE INDEX IF NOT EXISTS {self.history_table}_open_idx
                ON {s}.{self.history_table} (user_id, segment_name)
                WHERE time_removed IS NULL;

            CREATE INDEX IF NOT EXISTS {self.history_table}_user_added_idx
                ON {s}.{self.history_table} (user_id, time_added);

            CREATE INDEX IF NOT EXISTS {self.memberships_table}_time_out_idx
                ON {s}.{self.memberships_table} (time_out)
                WHERE time_out IS NOT NULL;
        ''')

    # ====================
    # Transaction helpers
    # ====================

    async def _run(
        self,
        operation: str,
        work: Callable[[asyncpg.Connection], Awaitable[T]],
        transactional: bool = True,
    ) -> T:
        """Run `work` on one connection under the transaction deadline.

        asyncpg errors are translated to the service error taxonomy here;
        any exception rolls the transaction back.
        """
        async def _execute() -> T:
            if transactional:
                async with self.db.transaction() as conn:
                    return await work(conn)
            async with self.db.connection() as conn:
                return await work(conn)

        try:
            return await asyncio.wait_for(_execute(), timeout=self.transaction_timeout)
        except SegmentServiceError:
            raise
        except asyncpg.UniqueViolationError as e:
            raise AlreadyExistsError(f"Conflict while {operation}: {e.detail or e}") from e
        except asyncpg.ForeignKeyViolationError as e:
            raise NotFoundError(f"Referenced entity missing while {operation}: {e.detail or e}") from e
        except TRANSIENT_ERRORS as e:
            logger.warning(f"Transient error {operation}: {e!r}")
            raise TransientStoreError(f"Temporary store failure while {operation}") from e
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.error(f"Error {operation}: {e}", exc_info=True)
            raise StoreFailureError(f"Store failure while {operation}") from e

    async def _lock_user_and_resolve(
        self,
        conn: asyncpg.Connection,
        user_id: int,
        segment_names: Sequence[str],
    ) -> Dict[str, int]:
        """Lock the user row and map every name to its segment id.

        Segment rows are share-locked so a concurrent delete waits for us.
        """
        found = await conn.fetchval(
            f"SELECT id FROM {self.schema}.{self.users_table} WHERE id = $1 FOR UPDATE",
            user_id,
        )
        if found is None:
            raise UserNotFoundError(f"User not found: {user_id}", user_id=user_id)

        rows = await conn.fetch(
            f'''
                SELECT id, name FROM {self.schema}.{self.segments_table}
                WHERE name = ANY($1::varchar[])
                FOR SHARE
            ''',
            list(segment_names),
        )
        resolved = {row["name"]: row["id"] for row in rows}
        missing = [name for name in segment_names if name not in resolved]
        if missing:
            raise SegmentNotFoundError(f"Segments not found: {', '.join(missing)}", names=missing)
        return resolved

    async def _close_open_history(
        self,
        conn: asyncpg.Connection,
        user_id: int,
        segment_name: str,
        time_removed: datetime,
    ) -> None:
        """Close the most recently opened interval for the pair"""
        await conn.execute(
            f'''
                UPDATE {self.schema}.{self.history_table}
                SET time_removed = $3
                WHERE id = (
                    SELECT id FROM {self.schema}.{self.history_table}
                    WHERE user_id = $1 AND segment_name = $2 AND time_removed IS NULL
                    ORDER BY time_added DESC, id DESC
                    LIMIT 1
                )
            ''',
            user_id, segment_name, time_removed,
        )

    # ====================
    # Segment catalog
    # ====================

    async def create_segment(
        self,
        name: str,
        auto_percent: int,
        now: datetime
    ) -> Tuple[Segment, int]:
        """Create segment and enroll floor(users * percent / 100) random users"""
        s = self.schema

        async def work(conn: asyncpg.Connection) -> Tuple[Segment, int]:
            taken = await conn.fetchval(
                f"SELECT 1 FROM {s}.{self.segments_table} WHERE name = $1", name
            )
            if taken:
                raise DuplicateSegmentError(f"Segment already exists: {name}")
            try:
                row = await conn.fetchrow(
                    f'''
                        INSERT INTO {s}.{self.segments_table} (name, auto_percent, created_at)
                        VALUES ($1, $2, $3)
                        RETURNING id, name, auto_percent, created_at
                    ''',
                    name, auto_percent, now,
                )
            except asyncpg.UniqueViolationError as e:
                raise DuplicateSegmentError(f"Segment already exists: {name}") from e

            segment = self._row_to_segment(row)
            if auto_percent == 0:
                return segment, 0

            total = await conn.fetchval(f"SELECT count(*) FROM {s}.{self.users_table}")
            count = total * auto_percent // 100
            if count == 0:
                return segment, 0

            enrolled = await conn.fetch(
                f'''
                    INSERT INTO {s}.{self.memberships_table} (user_id, segment_id, time_in, time_out)
                    SELECT id, $1, $2, NULL FROM {s}.{self.users_table}
                    ORDER BY random()
                    LIMIT $3
                    RETURNING user_id
                ''',
                segment.id, now, count,
            )
            user_ids = [r["user_id"] for r in enrolled]
            await conn.execute(
                f'''
                    INSERT INTO {s}.{self.history_table} (user_id, segment_name, time_added)
                    SELECT unnest($1::bigint[]), $2, $3
                ''',
                user_ids, name, now,
            )
            return segment, len(user_ids)

        segment, enrolled = await self._run(f"creating segment {name}", work)
        logger.info(f"Created segment {name} ({auto_percent}%), enrolled {enrolled} users")
        return segment, enrolled

    async def delete_segment(self, name: str, now: datetime) -> int:
        """Delete segment, its memberships, and close its open history"""
        s = self.schema

        async def work(conn: asyncpg.Connection) -> int:
            segment_id = await conn.fetchval(
                f"SELECT id FROM {s}.{self.segments_table} WHERE name = $1 FOR UPDATE", name
            )
            if segment_id is None:
                raise SegmentNotFoundError(f"Segment not found: {name}", names=[name])

            removed = await conn.fetch(
                f"DELETE FROM {s}.{self.memberships_table} WHERE segment_id = $1 RETURNING user_id",
                segment_id,
            )
            await conn.execute(
                f'''
                    UPDATE {s}.{self.history_table}
                    SET time_removed = $2
                    WHERE segment_name = $1
                      AND (time_removed IS NULL OR time_removed > $2)
                ''',
                name, now,
            )
            await conn.execute(
                f"DELETE FROM {s}.{self.segments_table} WHERE id = $1", segment_id
            )
            return len(removed)

        removed = await self._run(f"deleting segment {name}", work)
        logger.info(f"Deleted segment {name}, removed {removed} memberships")
        return removed

    async def list_segments(self) -> List[Segment]:
        """List all segments ordered by name"""
        async def work(conn: asyncpg.Connection) -> List[Segment]:
            rows = await conn.fetch(
                f'''
                    SELECT id, name, auto_percent, created_at
                    FROM {self.schema}.{self.segments_table} ORDER BY name
                '''
            )
            return [self._row_to_segment(row) for row in rows]

        return await self._run("listing segments", work, transactional=False)

    # ====================
    # Users
    # ====================

    async def create_user(self, user_id: int, now: datetime) -> None:
        """Insert user"""
        async def work(conn: asyncpg.Connection) -> None:
            try:
                await conn.execute(
                    f"INSERT INTO {self.schema}.{self.users_table} (id, created_at) VALUES ($1, $2)",
                    user_id, now,
                )
            except asyncpg.UniqueViolationError as e:
                raise DuplicateUserError(f"User already exists: {user_id}") from e

        await self._run(f"creating user {user_id}", work)

    async def get_user_segments(self, user_id: int, now: datetime) -> Optional[List[str]]:
        """Names of unexpired active segments, None if the user is unknown"""
        s = self.schema

        async def work(conn: asyncpg.Connection) -> Optional[List[str]]:
            exists = await conn.fetchval(
                f"SELECT 1 FROM {s}.{self.users_table} WHERE id = $1", user_id
            )
            if not exists:
                return None
            rows = await conn.fetch(
                f'''
                    SELECT sg.name
                    FROM {s}.{self.memberships_table} us
                    JOIN {s}.{self.segments_table} sg ON sg.id = us.segment_id
                    WHERE us.user_id = $1 AND (us.time_out IS NULL OR us.time_out > $2)
                    ORDER BY sg.name
                ''',
                user_id, now,
            )
            return [row["name"] for row in rows]

        return await self._run(f"getting segments of user {user_id}", work, transactional=False)

    # ====================
    # Memberships
    # ====================

    async def add_user_segments(
        self,
        user_id: int,
        segment_names: Sequence[str],
        now: datetime,
        time_out: Optional[datetime] = None
    ) -> List[UserSegment]:
        """Insert new memberships with open history, overwrite expiration of existing ones"""
        s = self.schema

        async def work(conn: asyncpg.Connection) -> List[UserSegment]:
            resolved = await self._lock_user_and_resolve(conn, user_id, segment_names)
            memberships = []
            for name in segment_names:
                # xmax = 0 only on rows inserted by this statement
                row = await conn.fetchrow(
                    f'''
                        INSERT INTO {s}.{self.memberships_table} (user_id, segment_id, time_in, time_out)
                        VALUES ($1, $2, $3, $4)
                        ON CONFLICT (user_id, segment_id) DO UPDATE SET time_out = EXCLUDED.time_out
                        RETURNING user_id, segment_id, time_in, time_out, (xmax = 0) AS inserted
                    ''',
                    user_id, resolved[name], now, time_out,
                )
                if row["inserted"]:
                    await conn.execute(
                        f'''
                            INSERT INTO {s}.{self.history_table} (user_id, segment_name, time_added)
                            VALUES ($1, $2, $3)
                        ''',
                        user_id, name, now,
                    )
                memberships.append(self._row_to_membership(row, name))
            return memberships

        return await self._run(f"adding segments to user {user_id}", work)

    async def remove_user_segments(
        self,
        user_id: int,
        segment_names: Sequence[str],
        now: datetime
    ) -> List[str]:
        """Delete memberships and close their open history"""
        s = self.schema

        async def work(conn: asyncpg.Connection) -> List[str]:
            resolved = await self._lock_user_and_resolve(conn, user_id, segment_names)
            removed = []
            for name in segment_names:
                deleted = await conn.fetchval(
                    f'''
                        DELETE FROM {s}.{self.memberships_table}
                        WHERE user_id = $1 AND segment_id = $2
                        RETURNING segment_id
                    ''',
                    user_id, resolved[name],
                )
                if deleted is not None:
                    await self._close_open_history(conn, user_id, name, now)
                    removed.append(name)
            return removed

        return await self._run(f"removing segments from user {user_id}", work)

    # ====================
    # History
    # ====================

    async def get_user_history(
        self,
        user_id: int,
        window_start: datetime,
        window_end: datetime
    ) -> List[SegmentHistory]:
        """Closed intervals with time_added >= start and time_removed < end"""
        async def work(conn: asyncpg.Connection) -> List[SegmentHistory]:
            rows = await conn.fetch(
                f'''
                    SELECT id, user_id, segment_name, time_added, time_removed
                    FROM {self.schema}.{self.history_table}
                    WHERE user_id = $1 AND time_added >= $2 AND time_removed < $3
                    ORDER BY time_added, id
                ''',
                user_id, window_start, window_end,
            )
            return [self._row_to_history(row) for row in rows]

        return await self._run(f"getting history of user {user_id}", work, transactional=False)

    # ====================
    # Expiry
    # ====================

    async def sweep_expired(self, now: datetime) -> List[UserSegment]:
        """Delete memberships with time_out <= now; history closes at time_out"""
        s = self.schema

        async def work(conn: asyncpg.Connection) -> List[UserSegment]:
            rows = await conn.fetch(
                f'''
                    WITH expired AS (
                        DELETE FROM {s}.{self.memberships_table}
                        WHERE time_out IS NOT NULL AND time_out <= $1
                        RETURNING user_id, segment_id, time_in, time_out
                    )
                    SELECT e.user_id, e.segment_id, e.time_in, e.time_out, sg.name AS segment_name
                    FROM expired e
                    JOIN {s}.{self.segments_table} sg ON sg.id = e.segment_id
                ''',
                now,
            )
            if not rows:
                return []

            await conn.execute(
                f'''
                    UPDATE {s}.{self.history_table} h
                    SET time_removed = x.time_out
                    FROM unnest($1::bigint[], $2::varchar[], $3::timestamptz[])
                        AS x(user_id, segment_name, time_out)
                    WHERE h.id = (
                        SELECT o.id FROM {s}.{self.history_table} o
                        WHERE o.user_id = x.user_id
                          AND o.segment_name = x.segment_name
                          AND o.time_removed IS NULL
                        ORDER BY o.time_added DESC, o.id DESC
                        LIMIT 1
                    )
                ''',
                [r["user_id"] for r in rows],
                [r["segment_name"] for r in rows],
                [r["time_out"] for r in rows],
            )
            return [self._row_to_membership(row, row["segment_name"]) for row in rows]

        return await self._run("sweeping expired memberships", work)

    # ====================
    # Row mapping
    # ====================

    def _row_to_segment(self, row: Any) -> Segment:
        return Segment(
            id=row["id"],
            name=row["name"],
            auto_percent=row["auto_percent"],
            created_at=row["created_at"],
        )

    def _row_to_membership(self, row: Any, segment_name: Optional[str] = None) -> UserSegment:
        return UserSegment(
            user_id=row["user_id"],
            segment_id=row["segment_id"],
            segment_name=segment_name,
            time_in=row["time_in"],
            time_out=row["time_out"],
        )

    def _row_to_history(self, row: Any) -> SegmentHistory:
        return SegmentHistory(
            id=row["id"],
            user_id=row["user_id"],
            segment_name=row["segment_name"],
            time_added=row["time_added"],
            time_removed=row["time_removed"],
        )


__all__ = ["SegmentRepository"]
