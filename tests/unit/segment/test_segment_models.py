"""
Unit Tests for Segment Service Models

Tests for request parsing and model constraints.
"""

import pytest
from pydantic import ValidationError

from microservices.segment_service.models import (
    CreateUserRequest,
    RemoveUserSegmentsRequest,
    Segment,
    SegmentRequest,
    UserSegments,
    UserSegmentsRequest,
)


class TestSegmentRequest:
    """Tests for SegmentRequest"""

    def test_auto_percent_optional(self):
        request = SegmentRequest(segment="AVITO_DISCOUNT_50")

        assert request.auto_percent is None

    def test_name_stripped(self):
        assert SegmentRequest(segment="  padded ").segment == "padded"

    def test_missing_segment_invalid(self):
        with pytest.raises(ValidationError):
            SegmentRequest.model_validate({"auto_percent": 10})

    def test_non_numeric_percent_invalid(self):
        with pytest.raises(ValidationError):
            SegmentRequest.model_validate({"segment": "a", "auto_percent": "lots"})


class TestUserSegmentsRequest:
    """Tests for UserSegmentsRequest"""

    def test_segments_deduplicated_in_order(self):
        request = UserSegmentsRequest(id=1, segments=["b", "a", "b", " a ", ""])

        assert request.segments == ["b", "a"]

    def test_defaults(self):
        request = UserSegmentsRequest(id=1)

        assert request.segments == []
        assert request.active_time is None

    def test_id_must_be_integer(self):
        with pytest.raises(ValidationError):
            UserSegmentsRequest.model_validate({"id": "abc", "segments": []})

    def test_fractional_id_invalid(self):
        with pytest.raises(ValidationError):
            CreateUserRequest.model_validate({"id": 1.5})


class TestRemoveUserSegmentsRequest:
    """Tests for RemoveUserSegmentsRequest"""

    def test_segments_deduplicated(self):
        request = RemoveUserSegmentsRequest(id=1, segments=["a", "a", " b"])

        assert request.segments == ["a", "b"]

    def test_active_time_not_accepted(self):
        """Removal has no lifetime"""
        with pytest.raises(ValidationError):
            RemoveUserSegmentsRequest.model_validate({"id": 1, "segments": ["a"], "active_time": 60})


class TestSegment:
    """Tests for Segment"""

    @pytest.mark.parametrize("percent", [-1, 101])
    def test_percent_bounds(self, percent):
        with pytest.raises(ValidationError):
            Segment(name="s", auto_percent=percent)

    def test_user_segments_serialization(self):
        assert UserSegments(id=3, segments=["x"]).model_dump() == {"id": 3, "segments": ["x"]}
