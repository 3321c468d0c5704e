#!/usr/bin/env python3
"""Logging configuration"""
import os
from dataclasses import dataclass

def _bool(val: str) -> bool:
    return val.lower() == "true"


@dataclass
class LoggingConfig:
    """Logging configuration"""
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: str = ""
    enable_console: bool = True
    enable_structured: bool = False

    # Service identity for logging
    service_name: str = "segment_service"
    environment: str = "development"

    @classmethod
    def from_env(cls) -> 'LoggingConfig':
        """Load logging config from environment variables"""
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            log_level=os.getenv("LOG_LEVEL", "DEBUG" if env == "development" else "INFO"),
            log_format=os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            # LOG_FILE_PATH is the name older deployments of this service used
            log_file=os.getenv("LOG_FILE") or os.getenv("LOG_FILE_PATH", ""),
            enable_console=True,
            enable_structured=_bool(os.getenv("ENABLE_STRUCTURED_LOGGING", "false")),
            service_name=os.getenv("SERVICE_NAME", "segment_service"),
            environment=env,
        )
