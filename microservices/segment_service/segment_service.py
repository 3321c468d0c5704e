"""
Segment Service Business Logic

Core business logic for the segment catalog, user memberships and history.
Validation happens here, before any transaction is opened; the repository
owns atomicity.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from .models import (
    SEGMENT_NAME_MAX_LENGTH,
    HistoryRecord,
    Segment,
    UserSegments,
)
from .protocols import (
    InvalidArgumentError,
    SegmentRepositoryProtocol,
)

MIN_HISTORY_YEAR = 1970
MAX_HISTORY_YEAR = 9998

# BIGINT upper bound of the users.id column
MAX_USER_ID = 2**63 - 1


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def history_window(year: int, month: int) -> Tuple[datetime, datetime]:
    """[first of month, first of next month + 1 day) in UTC"""
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    if month == 12:
        next_month = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        next_month = datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return start, next_month + timedelta(days=1)


def unique_names(names: Sequence[str]) -> List[str]:
    """Drop duplicates, keeping first occurrence order"""
    return list(dict.fromkeys(names))


class SegmentService:
    """Segment service core business logic"""

    def __init__(
        self,
        repository: SegmentRepositoryProtocol,
        logger: Optional[logging.Logger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize segment service with injected dependencies

        Args:
            repository: Repository for data access
            logger: Logger to use (module logger by default)
            clock: Source of the current UTC time
        """
        self.repository = repository
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock or utc_now

        self.logger.info("SegmentService initialized with dependency injection")

    async def initialize(self):
        """Initialize storage"""
        await self.repository.initialize()
        self.logger.info("SegmentService initialized")

    async def close(self):
        await self.repository.close()

    async def health_check(self) -> bool:
        return await self.repository.health_check()

    # ====================
    # Validation
    # ====================

    @staticmethod
    def _validate_user_id(user_id: int) -> None:
        if user_id <= 0 or user_id > MAX_USER_ID:
            raise InvalidArgumentError(f"Invalid user id: {user_id}")

    @staticmethod
    def _validate_segment_name(name: str) -> None:
        if not name or len(name) > SEGMENT_NAME_MAX_LENGTH:
            raise InvalidArgumentError(
                f"Segment name must be 1-{SEGMENT_NAME_MAX_LENGTH} characters"
            )

    # ====================
    # Segments
    # ====================

    async def create_segment(self, name: str, auto_percent: int = 0) -> Tuple[Segment, int]:
        """Create a segment, enrolling auto_percent% of existing users at random

        Returns:
            The created segment and the number of users enrolled
        """
        self._validate_segment_name(name)
        if not 0 <= auto_percent <= 100:
            raise InvalidArgumentError(f"auto_percent must be within 0..100, got {auto_percent}")

        segment, enrolled = await self.repository.create_segment(name, auto_percent, self.clock())
        self.logger.info(f"Segment {name} created, {enrolled} users auto-enrolled")
        return segment, enrolled

    async def delete_segment(self, name: str) -> int:
        """Delete a segment; returns the number of memberships removed"""
        self._validate_segment_name(name)
        removed = await self.repository.delete_segment(name, self.clock())
        self.logger.info(f"Segment {name} deleted, {removed} memberships closed")
        return removed

    async def list_segments(self) -> List[Segment]:
        return await self.repository.list_segments()

    # ====================
    # Users
    # ====================

    async def create_user(self, user_id: int) -> None:
        self._validate_user_id(user_id)
        await self.repository.create_user(user_id, self.clock())
        self.logger.info(f"User {user_id} created")

    async def get_user(self, user_id: int) -> Optional[UserSegments]:
        """Active, unexpired segments of a user; None if the user does not exist"""
        self._validate_user_id(user_id)
        segments = await self.repository.get_user_segments(user_id, self.clock())
        if segments is None:
            return None
        return UserSegments(id=user_id, segments=segments)

    # ====================
    # Memberships
    # ====================

    async def add_segments_to_user(
        self,
        user_id: int,
        segment_names: Sequence[str],
        active_time: int = 0
    ) -> List[str]:
        """
        Add a user to segments

        Memberships already active get their expiration overwritten.
        Unknown segment names fail the whole call.

        Args:
            user_id: Existing user
            segment_names: Segment names, duplicates ignored
            active_time: Lifetime in seconds, 0 means no expiration

        Returns:
            De-duplicated segment names that were applied
        """
        self._validate_user_id(user_id)
        if active_time < 0:
            raise InvalidArgumentError(f"active_time must not be negative, got {active_time}")

        names = unique_names(segment_names)
        now = self.clock()
        time_out = None
        if active_time > 0:
            try:
                time_out = now + timedelta(seconds=active_time)
            except OverflowError:
                raise InvalidArgumentError(f"active_time is too large: {active_time}")

        memberships = await self.repository.add_user_segments(user_id, names, now, time_out)
        self.logger.info(
            f"User {user_id} added to {len(memberships)} segments"
            + (f" until {time_out.isoformat()}" if time_out else "")
        )
        return names

    async def delete_segments_from_user(
        self,
        user_id: int,
        segment_names: Sequence[str]
    ) -> List[str]:
        """Remove a user from segments; returns the de-duplicated names"""
        self._validate_user_id(user_id)

        names = unique_names(segment_names)
        removed = await self.repository.remove_user_segments(user_id, names, self.clock())
        self.logger.info(f"User {user_id} removed from {len(removed)} of {len(names)} segments")
        return names

    # ====================
    # History
    # ====================

    async def get_user_history(self, user_id: int, year: int, month: int) -> List[HistoryRecord]:
        """Closed membership intervals of a user within the given month

        Intervals still open are not reported.
        """
        self._validate_user_id(user_id)
        if not 1 <= month <= 12:
            raise InvalidArgumentError(f"Invalid month: {month}")
        if not MIN_HISTORY_YEAR <= year <= MAX_HISTORY_YEAR:
            raise InvalidArgumentError(f"Invalid year: {year}")

        window_start, window_end = history_window(year, month)
        entries = await self.repository.get_user_history(user_id, window_start, window_end)
        return [HistoryRecord.from_history(entry) for entry in entries]


__all__ = ["SegmentService", "history_window", "unique_names", "utc_now"]
