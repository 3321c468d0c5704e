#!/usr/bin/env python3
"""
Integration Test Layer Configuration

Repository tests against a real PostgreSQL. Connection settings come from
the same environment variables the service reads (DATABASE_DSN or
POSTGRES_*); tests are skipped when the database is unreachable.

Usage:
    POSTGRES_HOST=localhost pytest tests/integration -v
"""

import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../.."))


def pytest_collection_modifyitems(config, items):
    """Integration tests always need the database"""
    for item in items:
        if "tests/integration" in str(item.fspath).replace(os.sep, "/"):
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.requires_db)
