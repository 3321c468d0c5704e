"""
Unit Test Layer Configuration

Structure:
    tests/unit/
    └── segment/     Service, sweeper, models, config and logging

Usage:
    pytest tests/unit -v
    pytest tests/unit/segment -v
"""
import os
import sys

import pytest

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))


def pytest_collection_modifyitems(config, items):
    """Mark everything under tests/unit as a unit test"""
    for item in items:
        if "tests/unit" in str(item.fspath).replace(os.sep, "/"):
            item.add_marker(pytest.mark.unit)
