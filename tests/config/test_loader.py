"""
Tests for pharmacy_config: YAML loading, environment overrides and validation.
"""

from datetime import timezone
from pathlib import Path

import pytest
import yaml

from pharmacy_config import get_active_config
from pharmacy_config.loader import (
    ENV_DATABASE_URL,
    ENV_LOG_LEVEL,
    ENV_STORE_TIMEOUT,
    load_config,
)
from pharmacy_config.schema import ReplenishmentSettings
from pharmacy_modules.replenishment.config import ReplenishmentConfig


def _write(tmp_path: Path, data: dict, name: str = "pharmacy.yaml") -> Path:
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data))
    return path


@pytest.fixture(autouse=True)
def _no_pharmacy_env(monkeypatch):
    for var in (ENV_DATABASE_URL, ENV_LOG_LEVEL, ENV_STORE_TIMEOUT):
        monkeypatch.delenv(var, raising=False)


class TestDefaults:

    def test_packaged_defaults_load(self):
        config = load_config(env={})

        assert config.config_id == "pharmacy-default"
        assert config.version == 1
        assert config.database.url == "sqlite:///pharmacy.db"
        assert config.logging.level == "INFO"
        assert config.replenishment == ReplenishmentSettings()

    def test_partial_file_keeps_defaults(self, tmp_path):
        path = _write(tmp_path, {
            "config_id": "branch-7",
            "replenishment": {"business_timezone": "Asia/Kolkata"},
        })

        config = load_config(path, env={})

        assert config.config_id == "branch-7"
        assert config.replenishment.business_timezone == "Asia/Kolkata"
        assert config.replenishment.max_daily_requests == 999
        assert config.database.pool_size == 10

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml", env={})

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            load_config(path, env={})


class TestEnvironmentOverrides:

    def test_overrides_applied(self):
        config = load_config(env={
            ENV_DATABASE_URL: "postgresql://pharmacy@localhost/pharmacy",
            ENV_LOG_LEVEL: "debug",
            ENV_STORE_TIMEOUT: "2.5",
        })

        assert config.database.url == "postgresql://pharmacy@localhost/pharmacy"
        assert config.logging.level == "DEBUG"
        assert config.replenishment.store_timeout_seconds == 2.5

    def test_empty_values_ignored(self):
        config = load_config(env={ENV_DATABASE_URL: "", ENV_STORE_TIMEOUT: ""})
        assert config.database.url == "sqlite:///pharmacy.db"
        assert config.replenishment.store_timeout_seconds == 5.0

    def test_non_numeric_timeout(self):
        with pytest.raises(ValueError, match=ENV_STORE_TIMEOUT):
            load_config(env={ENV_STORE_TIMEOUT: "soon"})

    def test_overrides_change_checksum(self):
        base = load_config(env={})
        overridden = load_config(env={ENV_STORE_TIMEOUT: "9"})
        assert base.checksum != overridden.checksum


class TestValidation:

    @pytest.mark.parametrize("data", [
        {"replenishment": {"store_timeout": 5}},
        {"database": {"uri": "sqlite://"}},
        {"inventory": {}},
        {"replenishment": "fast"},
    ])
    def test_unknown_keys_and_bad_sections(self, tmp_path, data):
        with pytest.raises(ValueError):
            load_config(_write(tmp_path, data), env={})

    @pytest.mark.parametrize("replenishment", [
        {"business_timezone": "Mars/Olympus"},
        {"max_daily_requests": 0},
        {"max_daily_requests": 1000},
        {"store_timeout_seconds": 0},
        {"default_page_size": 500},
        {"recent_requests_limit": -1},
    ])
    def test_invalid_replenishment_values(self, tmp_path, replenishment):
        path = _write(tmp_path, {"replenishment": replenishment})
        with pytest.raises(ValueError):
            load_config(path, env={})

    def test_request_number_prefix_not_configurable(self, tmp_path):
        path = _write(tmp_path, {"replenishment": {"request_number_prefix": "PO"}})
        with pytest.raises(ValueError, match="request_number_prefix"):
            load_config(path, env={})

    def test_unknown_log_level(self, tmp_path):
        path = _write(tmp_path, {"logging": {"level": "LOUD"}})
        with pytest.raises(ValueError):
            load_config(path, env={})

    @pytest.mark.parametrize("zone", ["local", "UTC", "Europe/London"])
    def test_accepted_timezones(self, tmp_path, zone):
        path = _write(tmp_path, {"replenishment": {"business_timezone": zone}})
        assert load_config(path, env={}).replenishment.business_timezone == zone


class TestChecksum:

    def test_stable_across_loads(self):
        assert load_config(env={}).checksum == load_config(env={}).checksum

    def test_equivalent_files_share_checksum(self, tmp_path):
        explicit = _write(tmp_path, {
            "config_id": "pharmacy-default",
            "replenishment": {"max_daily_requests": 999},
        }, name="explicit.yaml")
        implicit = _write(tmp_path, {"config_id": "pharmacy-default"}, name="implicit.yaml")

        assert (
            load_config(explicit, env={}).checksum
            == load_config(implicit, env={}).checksum
        )


class TestActiveConfig:

    def test_emits_config_trace(self, captured_logs):
        config = get_active_config()

        traces = [
            r for r in captured_logs() if r["message"] == "PHARMACY_CONFIG_TRACE"
        ]
        assert len(traces) == 1
        assert traces[0]["config_id"] == config.config_id
        assert traces[0]["checksum"] == config.checksum
        assert traces[0]["database_dialect"] == "sqlite"


class TestReplenishmentConfig:

    def test_from_settings(self):
        settings = ReplenishmentSettings(
            business_timezone="UTC", max_daily_requests=50, max_page_size=40,
        )

        config = ReplenishmentConfig.from_settings(settings)

        assert config.max_daily_requests == 50
        assert config.max_page_size == 40
        assert config.store_timeout_seconds == 5.0

    def test_tz(self):
        assert ReplenishmentConfig(business_timezone="local").tz is None
        assert ReplenishmentConfig(business_timezone="UTC").tz is timezone.utc
        assert str(ReplenishmentConfig(business_timezone="Asia/Kolkata").tz) == (
            "Asia/Kolkata"
        )
