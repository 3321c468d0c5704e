"""
Component Test Fixtures for Segment Service

Provides a FastAPI TestClient whose service runs on the in-memory
repository. The lifespan is not entered, so no database is needed.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from microservices.segment_service.segment_service import SegmentService


@pytest.fixture
def service(mock_repository, clock):
    return SegmentService(repository=mock_repository, clock=clock)


@pytest.fixture
def client(service):
    """Create FastAPI test client with the in-memory service"""
    with patch("microservices.segment_service.main.segment_service", service), \
         patch("microservices.segment_service.main.expiry_sweeper", None):

        from microservices.segment_service.main import app

        yield TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def uninitialized_client():
    """Client for an app whose lifespan never ran"""
    with patch("microservices.segment_service.main.segment_service", None):
        from microservices.segment_service.main import app

        yield TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def seeded_client(client):
    """Users 1..3 and segments 'a', 'b'"""
    for user_id in (1, 2, 3):
        assert client.post("/users", json={"id": user_id}).status_code == 201
    for name in ("a", "b"):
        assert client.post("/segments", json={"segment": name}).status_code == 201
    return client
