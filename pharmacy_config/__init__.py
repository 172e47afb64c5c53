"""
pharmacy_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services receive the typed settings they need;
    they never read configuration files or environment variables directly.

Architecture position:
    Configuration sits above ``pharmacy_kernel`` and below
    ``pharmacy_modules``.  The kernel MUST NEVER import from
    ``pharmacy_config``.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``ValueError`` -- schema or value validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``PHARMACY_CONFIG_TRACE`` log entry with the config id, version and
    checksum of the effective settings.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pharmacy_config.loader import load_config
from pharmacy_config.schema import (
    DatabaseSettings,
    LoggingSettings,
    PharmacyConfig,
    ReplenishmentSettings,
)

_logger = logging.getLogger("pharmacy_kernel.config")

__all__ = [
    "get_active_config",
    "DatabaseSettings",
    "LoggingSettings",
    "PharmacyConfig",
    "ReplenishmentSettings",
]


def get_active_config(path: Path | None = None) -> PharmacyConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Override YAML file. Defaults to pharmacy_config/defaults.yaml.

    Returns:
        PharmacyConfig with environment overrides applied.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If configuration validation fails.
    """
    config = load_config(path)

    _logger.info(
        "PHARMACY_CONFIG_TRACE",
        extra={
            "trace_type": "PHARMACY_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "database_dialect": config.database.url.split(":", 1)[0],
            "business_timezone": config.replenishment.business_timezone,
            "store_timeout_seconds": config.replenishment.store_timeout_seconds,
        },
    )
    return config
