"""
Segment Service Factory

Factory for creating SegmentService and ExpirySweeper with real dependencies.
This is the ONLY module that imports concrete implementations.
"""

import logging
from typing import Optional

from core.config_manager import ConfigManager

from .expiry_sweeper import ExpirySweeper
from .protocols import SegmentRepositoryProtocol
from .segment_repository import SegmentRepository
from .segment_service import SegmentService

logger = logging.getLogger(__name__)


def create_segment_repository(config: Optional[ConfigManager] = None) -> SegmentRepository:
    """Create the PostgreSQL-backed repository"""
    if config is None:
        config = ConfigManager("segment_service")
    return SegmentRepository(config=config)


def create_segment_service(
    config: Optional[ConfigManager] = None,
    repository: Optional[SegmentRepositoryProtocol] = None,
    service_logger: Optional[logging.Logger] = None,
) -> SegmentService:
    """
    Create SegmentService with all real dependencies

    Args:
        config: Optional config manager (creates default if not provided)
        repository: Optional repository to share with the sweeper
        service_logger: Logger injected into the service

    Returns:
        SegmentService instance (call initialize() before use)
    """
    if repository is None:
        repository = create_segment_repository(config)

    logger.info("SegmentService created with real dependencies")

    return SegmentService(repository=repository, logger=service_logger)


def create_expiry_sweeper(
    repository: SegmentRepositoryProtocol,
    config: Optional[ConfigManager] = None,
    sweeper_logger: Optional[logging.Logger] = None,
) -> ExpirySweeper:
    """Create the expiry sweeper using the configured interval"""
    if config is None:
        config = ConfigManager("segment_service")

    interval = config.get_service_config().sweep_interval
    return ExpirySweeper(repository=repository, interval=interval, logger=sweeper_logger)


__all__ = ["create_segment_repository", "create_segment_service", "create_expiry_sweeper"]
