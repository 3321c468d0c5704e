#!/usr/bin/env python3
"""
Centralized configuration management

Bundles the per-concern configs from core.config behind one object that is
created once per service and passed to factories.

Usage:
    from core.config_manager import ConfigManager

    config_manager = ConfigManager("segment_service")
    service_config = config_manager.get_service_config()
"""

import logging
from dataclasses import asdict
from typing import Any, Dict, Optional

from core.config import InfraConfig, LoggingConfig, ServiceConfig

logger = logging.getLogger(__name__)

_SECRET_KEYS = ("password", "database_dsn")


class ConfigManager:
    """Configuration for a single service, loaded from the environment"""

    def __init__(
        self,
        service_name: str,
        service: Optional[ServiceConfig] = None,
        infra: Optional[InfraConfig] = None,
        logging_config: Optional[LoggingConfig] = None,
    ):
        self.service_name = service_name
        self.service = service or ServiceConfig.from_env()
        self.infra = infra or InfraConfig.from_env()
        self.logging = logging_config or LoggingConfig.from_env()

    def get_service_config(self) -> ServiceConfig:
        return self.service

    def get_infra_config(self) -> InfraConfig:
        return self.infra

    def get_logging_config(self) -> LoggingConfig:
        return self.logging

    def as_dict(self, show_secrets: bool = False) -> Dict[str, Any]:
        """Flattened view of every config section"""
        summary = {
            "service": asdict(self.service),
            "infra": asdict(self.infra),
            "logging": asdict(self.logging),
        }
        if not show_secrets:
            for section in summary.values():
                for key in section:
                    if any(secret in key for secret in _SECRET_KEYS) and section[key]:
                        section[key] = "***"
        return summary

    def print_config_summary(self, show_secrets: bool = False) -> None:
        """Log the effective configuration"""
        logger.info(f"Configuration for {self.service_name}:")
        for section, values in self.as_dict(show_secrets=show_secrets).items():
            for key, value in values.items():
                logger.info(f"  {section}.{key} = {value}")


__all__ = ["ConfigManager"]
