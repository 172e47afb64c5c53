"""
Configuration Loader (``pharmacy_config.loader``).

Responsibility
--------------
Loads a YAML configuration file, applies environment overrides, validates
the values and parses them into the frozen dataclasses of ``schema.py``.
The single public entry point for runtime config is
``pharmacy_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown keys are rejected; a typo never silently falls back to a default.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  effective settings (after overrides) for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid or unknown values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from pharmacy_config.schema import (
    DatabaseSettings,
    LoggingSettings,
    PharmacyConfig,
    ReplenishmentSettings,
)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

ENV_DATABASE_URL = "PHARMACY_DATABASE_URL"
ENV_LOG_LEVEL = "PHARMACY_LOG_LEVEL"
ENV_STORE_TIMEOUT = "PHARMACY_STORE_TIMEOUT"

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def _parse_section(cls, data: Any, section: str):
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ValueError(f"Section {section!r} must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown keys in {section!r}: {', '.join(unknown)}")
    return cls(**data)


def apply_env_overrides(
    data: dict[str, Any], env: Mapping[str, str]
) -> dict[str, Any]:
    """Return a copy of ``data`` with PHARMACY_* environment overrides applied."""
    result = {key: dict(value) if isinstance(value, dict) else value
              for key, value in data.items()}
    if env.get(ENV_DATABASE_URL):
        result.setdefault("database", {})["url"] = env[ENV_DATABASE_URL]
    if env.get(ENV_LOG_LEVEL):
        result.setdefault("logging", {})["level"] = env[ENV_LOG_LEVEL].upper()
    if env.get(ENV_STORE_TIMEOUT):
        try:
            timeout = float(env[ENV_STORE_TIMEOUT])
        except ValueError:
            raise ValueError(
                f"{ENV_STORE_TIMEOUT} must be a number, got {env[ENV_STORE_TIMEOUT]!r}"
            ) from None
        result.setdefault("replenishment", {})["store_timeout_seconds"] = timeout
    return result


def validate_timezone(name: str) -> None:
    """Raise ValueError unless ``name`` is "local", "UTC" or a known IANA zone."""
    if name in ("local", "UTC"):
        return
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown business_timezone: {name!r}") from None


def validate_settings(
    database: DatabaseSettings,
    logging_settings: LoggingSettings,
    replenishment: ReplenishmentSettings,
) -> None:
    """Raise ValueError on the first invalid value."""
    if not database.url:
        raise ValueError("database.url is required")
    if database.pool_size < 1:
        raise ValueError("database.pool_size must be at least 1")
    if logging_settings.level.upper() not in _LOG_LEVELS:
        raise ValueError(f"Unknown logging.level: {logging_settings.level!r}")
    if replenishment.store_timeout_seconds <= 0:
        raise ValueError("replenishment.store_timeout_seconds must be positive")
    if not 1 <= replenishment.max_daily_requests <= 999:
        raise ValueError("replenishment.max_daily_requests must be between 1 and 999")
    if replenishment.reason_max_length < 1:
        raise ValueError("replenishment.reason_max_length must be at least 1")
    if replenishment.admin_notes_max_length < 1:
        raise ValueError("replenishment.admin_notes_max_length must be at least 1")
    if not 1 <= replenishment.default_page_size <= replenishment.max_page_size:
        raise ValueError(
            "replenishment.default_page_size must be between 1 and max_page_size"
        )
    if replenishment.recent_requests_limit < 0:
        raise ValueError("replenishment.recent_requests_limit must not be negative")
    validate_timezone(replenishment.business_timezone)


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_config(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> PharmacyConfig:
    """
    Load, override, validate and parse a configuration file.

    Args:
        path: YAML file. Defaults to the packaged defaults.yaml.
        env: Environment mapping. Defaults to ``os.environ``.

    Raises:
        FileNotFoundError, yaml.YAMLError, ValueError.
    """
    raw = load_yaml_file(path or DEFAULT_CONFIG_PATH)
    data = apply_env_overrides(raw, os.environ if env is None else env)

    unknown = sorted(
        set(data) - {"config_id", "version", "database", "logging", "replenishment"}
    )
    if unknown:
        raise ValueError(f"Unknown top-level keys: {', '.join(unknown)}")

    database = _parse_section(DatabaseSettings, data.get("database"), "database")
    logging_settings = _parse_section(LoggingSettings, data.get("logging"), "logging")
    replenishment = _parse_section(
        ReplenishmentSettings, data.get("replenishment"), "replenishment"
    )
    validate_settings(database, logging_settings, replenishment)

    config_id = str(data.get("config_id", "pharmacy"))
    version = int(data.get("version", 1))
    checksum = compute_checksum({
        "config_id": config_id,
        "version": version,
        "database": asdict(database),
        "logging": asdict(logging_settings),
        "replenishment": asdict(replenishment),
    })

    return PharmacyConfig(
        config_id=config_id,
        version=version,
        checksum=checksum,
        database=database,
        logging=logging_settings,
        replenishment=replenishment,
    )
