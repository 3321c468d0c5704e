#!/usr/bin/env python3
"""Service configuration for the segment service

Listen address, sweeper cadence and transaction deadlines.
"""
import os
from dataclasses import dataclass

def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


@dataclass
class ServiceConfig:
    """Segment service runtime settings"""

    service_name: str = "segment_service"
    service_host: str = "0.0.0.0"
    service_port: int = 8080
    debug: bool = False
    environment: str = "development"

    # ===========================================
    # Storage
    # ===========================================
    db_schema: str = "segmentation"
    transaction_timeout: float = 10.0

    # ===========================================
    # Expiry sweeper
    # ===========================================
    sweep_interval: float = 30.0
    sweeper_enabled: bool = True

    @classmethod
    def from_env(cls) -> 'ServiceConfig':
        """Load service configuration from environment variables"""
        host = os.getenv("SERVICE_HOST", "0.0.0.0")
        port = _int(os.getenv("SEGMENT_SERVICE_PORT", "8080"), 8080)

        # SERVER_HOST accepts the "host:port" / ":port" form
        server_host = os.getenv("SERVER_HOST")
        if server_host:
            bind_host, _, bind_port = server_host.rpartition(":")
            if bind_port.isdigit():
                host = bind_host or host
                port = int(bind_port)
            else:
                host = server_host

        return cls(
            service_name=os.getenv("SERVICE_NAME", "segment_service"),
            service_host=host,
            service_port=port,
            debug=_bool(os.getenv("DEBUG", "false")),
            environment=os.getenv("ENV") or os.getenv("ENVIRONMENT", "development"),
            db_schema=os.getenv("SEGMENT_DB_SCHEMA", "segmentation"),
            transaction_timeout=_float(os.getenv("SEGMENT_TX_TIMEOUT", "10"), 10.0),
            sweep_interval=_float(os.getenv("SEGMENT_SWEEP_INTERVAL", "30"), 30.0),
            sweeper_enabled=_bool(os.getenv("SEGMENT_SWEEPER_ENABLED", "true")),
        )
