#!/usr/bin/env python3
"""Infrastructure services configuration

PostgreSQL endpoint and pool settings, using the native asyncpg driver.
"""
import os
import shlex
from dataclasses import dataclass
from typing import Any, Dict, Optional

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


# libpq keyword -> asyncpg.connect() argument
_LIBPQ_KEYWORDS = {
    "host": "host",
    "port": "port",
    "user": "user",
    "password": "password",
    "dbname": "database",
    "sslmode": "ssl",
}


@dataclass
class InfraConfig:
    """Infrastructure service endpoints"""

    # ===========================================
    # PostgreSQL (native asyncpg - port 5432)
    # ===========================================
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "postgres"
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"

    # Full DSN (URI or libpq key=value form), takes precedence over the parts
    database_dsn: Optional[str] = None

    # ===========================================
    # Connection pool
    # ===========================================
    pool_min_size: int = 1
    pool_max_size: int = 10
    command_timeout: float = 30.0

    def connect_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for asyncpg.create_pool()"""
        dsn = (self.database_dsn or "").strip()
        if dsn.startswith(("postgres://", "postgresql://")):
            return {"dsn": dsn}

        if dsn:
            kwargs: Dict[str, Any] = {}
            for pair in shlex.split(dsn):
                key, _, value = pair.partition("=")
                target = _LIBPQ_KEYWORDS.get(key.strip())
                if not target:
                    continue
                if target == "port":
                    kwargs[target] = _int(value, 5432)
                elif target == "ssl":
                    kwargs[target] = False if value == "disable" else value
                else:
                    kwargs[target] = value
            return kwargs

        return {
            "host": self.postgres_host,
            "port": self.postgres_port,
            "user": self.postgres_user,
            "password": self.postgres_password,
            "database": self.postgres_db,
        }

    @classmethod
    def from_env(cls) -> 'InfraConfig':
        """Load infrastructure config from environment"""
        # e.g. DATABASE_DSN="host=db user=postgres dbname=postgres sslmode=disable"
        database_dsn = os.getenv("DATABASE_DSN") or None
        database_password = os.getenv("DATABASE_PASSWORD")
        if database_dsn and database_password and "://" not in database_dsn:
            database_dsn = f"{database_dsn} password={database_password}"

        return cls(
            postgres_host=os.getenv("POSTGRES_HOST", "localhost"),
            postgres_port=_int(os.getenv("POSTGRES_PORT", "5432"), 5432),
            postgres_db=os.getenv("POSTGRES_DB", "postgres"),
            postgres_user=os.getenv("POSTGRES_USER", "postgres"),
            postgres_password=os.getenv("POSTGRES_PASSWORD", "postgres"),
            database_dsn=database_dsn,
            pool_min_size=_int(os.getenv("POSTGRES_POOL_MIN", "1"), 1),
            pool_max_size=_int(os.getenv("POSTGRES_POOL_MAX", "10"), 10),
        )
