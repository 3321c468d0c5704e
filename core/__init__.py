#!/usr/bin/env python3
"""
Core Module for the Segment Service

Shared infrastructure components used by the service package.

COMPONENTS:
    - config/: Dataclass configuration sections loaded from the environment
    - config_manager.py: Centralized configuration for one service
    - logger.py: Logging setup (console, optional file, optional JSON)
    - postgres_client.py: asyncpg pool wrapper with transaction helper

USAGE:
    from core.config_manager import ConfigManager
    from core.logger import setup_service_logger

    config = ConfigManager("segment_service")
    logger = setup_service_logger("segment_service")
"""

from .config_manager import ConfigManager
from .logger import setup_service_logger
from .postgres_client import PostgresClientWrapper

# Export public API
__all__ = [
    "ConfigManager",
    "setup_service_logger",
    "PostgresClientWrapper",
]

__version__ = "2.0.0"
