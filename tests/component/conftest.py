"""
Component Test Layer Configuration

Structure:
    tests/component/
    └── segment/     FastAPI app with the in-memory repository

Usage:
    pytest tests/component -v
"""
import os
import sys

import pytest

# Set testing environment BEFORE any imports
os.environ["ENV"] = "testing"
os.environ["ENVIRONMENT"] = "testing"
os.environ["SEGMENT_SWEEPER_ENABLED"] = "false"

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))


def pytest_collection_modifyitems(config, items):
    """Mark everything under tests/component as a component test"""
    for item in items:
        if "tests/component" in str(item.fspath).replace(os.sep, "/"):
            item.add_marker(pytest.mark.component)
