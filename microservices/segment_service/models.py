"""
Segment Service Data Models

Pydantic models for segments, users, memberships and membership history.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


SEGMENT_NAME_MAX_LENGTH = 50
HISTORY_TIME_FORMAT = "%Y-%m-%d %H:%M:%S %z %Z"


# ====================
# Core Data Models
# ====================

class Segment(BaseModel):
    """Segment catalog entry"""
    id: Optional[int] = None
    name: str = Field(..., description="Unique segment name")
    auto_percent: int = Field(default=0, ge=0, le=100)
    created_at: Optional[datetime] = None


class UserSegment(BaseModel):
    """Active user-segment membership"""
    user_id: int
    segment_id: int
    segment_name: Optional[str] = None
    time_in: datetime
    time_out: Optional[datetime] = None


class SegmentHistory(BaseModel):
    """One membership interval from the history log"""
    id: Optional[int] = None
    user_id: int
    segment_name: str
    time_added: datetime
    time_removed: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.time_removed is None


class HistoryRecord(BaseModel):
    """Closed membership interval as exported to clients"""
    id: int
    segment: str
    time_in: str
    time_out: str

    @classmethod
    def from_history(cls, entry: SegmentHistory) -> "HistoryRecord":
        return cls(
            id=entry.user_id,
            segment=entry.segment_name,
            time_in=entry.time_added.strftime(HISTORY_TIME_FORMAT),
            time_out=entry.time_removed.strftime(HISTORY_TIME_FORMAT) if entry.time_removed else "",
        )


class UserSegments(BaseModel):
    """User with the names of its active segments"""
    id: int
    segments: List[str] = Field(default_factory=list)


# ====================
# Request Models
# ====================

class SegmentRequest(BaseModel):
    """Create/delete segment request"""
    segment: str = Field(..., description="Segment name")
    auto_percent: Optional[int] = Field(default=None, description="Percentage of users to auto-enroll")

    @field_validator('segment')
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()


class CreateUserRequest(BaseModel):
    """Create user request"""
    id: int = Field(..., description="User ID")


class SegmentNamesRequest(BaseModel):
    """User id plus a list of segment names"""
    id: int = Field(..., description="User ID")
    segments: List[str] = Field(default_factory=list)

    @field_validator('segments')
    @classmethod
    def normalize_segments(cls, v: List[str]) -> List[str]:
        # Strip and drop duplicates, keeping the first occurrence
        seen: Dict[str, None] = {}
        for name in v:
            name = name.strip()
            if name:
                seen.setdefault(name, None)
        return list(seen)


class UserSegmentsRequest(SegmentNamesRequest):
    """Add segments to a user"""
    active_time: Optional[int] = Field(default=None, description="Membership lifetime in seconds")


class RemoveUserSegmentsRequest(SegmentNamesRequest):
    """Remove segments from a user"""
    model_config = ConfigDict(extra="forbid")


# ====================
# Response Models
# ====================

class SegmentListResponse(BaseModel):
    """Segment catalog"""
    segments: List[Segment] = Field(default_factory=list)
    total: int = 0


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    port: int
    version: str
    dependencies: Dict[str, str] = Field(default_factory=dict)


class ServiceInfo(BaseModel):
    """Service information"""
    service: str
    version: str
    description: str
    capabilities: List[str] = Field(default_factory=list)
    sweep_interval_seconds: Optional[float] = None
    routes: Dict[str, str] = Field(default_factory=dict)


__all__ = [
    "SEGMENT_NAME_MAX_LENGTH",
    "HISTORY_TIME_FORMAT",
    "Segment",
    "UserSegment",
    "SegmentHistory",
    "HistoryRecord",
    "UserSegments",
    "SegmentRequest",
    "CreateUserRequest",
    "SegmentNamesRequest",
    "UserSegmentsRequest",
    "RemoveUserSegmentsRequest",
    "SegmentListResponse",
    "HealthResponse",
    "ServiceInfo",
]
