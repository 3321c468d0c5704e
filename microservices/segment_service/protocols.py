"""
Segment Service Protocols

Defines interfaces for dependency injection and testing.
Following the protocol-based architecture pattern.
"""

from datetime import datetime
from typing import List, Optional, Protocol, Sequence, Tuple

from .models import Segment, SegmentHistory, UserSegment


# ====================
# Repository Protocol
# ====================


class SegmentRepositoryProtocol(Protocol):
    """Protocol for segment data repository

    Every write method runs in a single transaction. `now` is supplied by
    the caller so one operation uses one timestamp throughout.
    """

    async def initialize(self) -> None:
        """Create schema and tables if missing"""
        ...

    async def close(self) -> None:
        """Close repository connection"""
        ...

    async def health_check(self) -> bool:
        """Check store connectivity"""
        ...

    # Segment catalog
    async def create_segment(
        self,
        name: str,
        auto_percent: int,
        now: datetime
    ) -> Tuple[Segment, int]:
        """Create segment and auto-enroll; returns (segment, enrolled count)"""
        ...

    async def delete_segment(self, name: str, now: datetime) -> int:
        """Delete segment, its memberships, and close its open history.

        Returns the number of memberships removed.
        """
        ...

    async def list_segments(self) -> List[Segment]:
        """List all segments ordered by name"""
        ...

    # Users
    async def create_user(self, user_id: int, now: datetime) -> None:
        """Insert user"""
        ...

    async def get_user_segments(self, user_id: int, now: datetime) -> Optional[List[str]]:
        """Names of unexpired active segments, None if the user is unknown"""
        ...

    # Memberships
    async def add_user_segments(
        self,
        user_id: int,
        segment_names: Sequence[str],
        now: datetime,
        time_out: Optional[datetime] = None
    ) -> List[UserSegment]:
        """Insert or refresh memberships; returns the resulting rows"""
        ...

    async def remove_user_segments(
        self,
        user_id: int,
        segment_names: Sequence[str],
        now: datetime
    ) -> List[str]:
        """Remove memberships; returns names that were actually active"""
        ...

    # History
    async def get_user_history(
        self,
        user_id: int,
        window_start: datetime,
        window_end: datetime
    ) -> List[SegmentHistory]:
        """Closed intervals with time_added >= start and time_removed < end"""
        ...

    # Expiry
    async def sweep_expired(self, now: datetime) -> List[UserSegment]:
        """Delete memberships with time_out <= now and close their history"""
        ...


# ====================
# Custom Exceptions
# ====================


class SegmentServiceError(Exception):
    """Base exception for segment service errors"""
    pass


class InvalidArgumentError(SegmentServiceError):
    """Raised when request arguments fail validation"""
    pass


class NotFoundError(SegmentServiceError):
    """Raised when a referenced entity does not exist"""
    pass


class UserNotFoundError(NotFoundError):
    """Raised when user is not found"""

    def __init__(self, message: str, user_id: int = 0):
        super().__init__(message)
        self.user_id = user_id


class SegmentNotFoundError(NotFoundError):
    """Raised when one or more segments are not found"""

    def __init__(self, message: str, names: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.names = list(names or [])


class AlreadyExistsError(SegmentServiceError):
    """Raised when an entity with the same key already exists"""
    pass


class DuplicateUserError(AlreadyExistsError):
    """Raised when user id is taken"""
    pass


class DuplicateSegmentError(AlreadyExistsError):
    """Raised when segment name is taken"""
    pass


class StoreFailureError(SegmentServiceError):
    """Raised when the store fails unexpectedly"""
    pass


class TransientStoreError(StoreFailureError):
    """Raised for retryable store failures (timeouts, deadlocks, lost connections)"""
    pass


__all__ = [
    "SegmentRepositoryProtocol",
    "SegmentServiceError",
    "InvalidArgumentError",
    "NotFoundError",
    "UserNotFoundError",
    "SegmentNotFoundError",
    "AlreadyExistsError",
    "DuplicateUserError",
    "DuplicateSegmentError",
    "StoreFailureError",
    "TransientStoreError",
]
