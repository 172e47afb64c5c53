"""
Pharmacy configuration schema.

Frozen dataclasses the YAML loader parses into.  Defaults here match
``defaults.yaml`` so a partial file only needs to name what it changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings for ``pharmacy_kernel.db.engine``."""

    url: str = "sqlite:///pharmacy.db"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 5
    pool_timeout: int = 30


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class ReplenishmentSettings:
    """Settings for the stock replenishment workflow."""

    # Default per-operation store timeout, in seconds
    store_timeout_seconds: float = 5.0
    # IANA zone name, "UTC", or "local" for the host time zone.
    # The request-number day rolls over at midnight in this zone.
    business_timezone: str = "local"
    max_daily_requests: int = 999
    reason_max_length: int = 500
    admin_notes_max_length: int = 1000
    default_page_size: int = 20
    max_page_size: int = 100
    recent_requests_limit: int = 5


@dataclass(frozen=True)
class PharmacyConfig:
    """The runtime configuration artifact returned by get_active_config()."""

    config_id: str
    version: int
    checksum: str
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    replenishment: ReplenishmentSettings = field(default_factory=ReplenishmentSettings)
