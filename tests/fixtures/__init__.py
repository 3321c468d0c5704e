"""
Shared Test Fixtures

Centralized factories and in-memory doubles used across all test layers.

Structure:
    - segment_fixtures.py: Segment service factories, clock and repository
"""

from .segment_fixtures import (
    FixedClock,
    MockSegmentRepository,
    make_numeric_user_id,
    make_segment_name,
    make_segment_request,
    make_user_segments_request,
)

__all__ = [
    "FixedClock",
    "MockSegmentRepository",
    "make_numeric_user_id",
    "make_segment_name",
    "make_segment_request",
    "make_user_segments_request",
]
