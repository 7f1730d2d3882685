from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from boxbuddy.config.loader import ConfigError, DEFAULT_CONFIG, load_config


def _base_config_dict() -> dict:
    return {
        "config_version": "test-001",
        "telemetry": {
            "tick_interval_ms": 20000,
            "idle_drain_pct": 0.05,
            "cooling_drain_pct": 0.2,
            "low_battery_pct": 15,
            "critical_battery_pct": 5,
        },
        "cooling": {"default_target_c": 4, "min_target_c": 0, "max_target_c": 10},
        "codes": {"sweep_interval_ms": 30000, "relock_delay_ms": 1000, "default_ttl_hours": 4},
        "identity": {"display_name": "Sam"},
        "notifications": {"webhook": {"enabled": False}},
    }


def _write_config(tmp_path: Path, data: dict) -> Path:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return config_path


def test_load_config_success(tmp_path: Path) -> None:
    cfg = load_config(_write_config(tmp_path, _base_config_dict()))

    assert cfg.config_version == "test-001"
    assert cfg.telemetry.tick_interval_ms == 20000
    assert cfg.telemetry.cooling_drain_pct == pytest.approx(0.2)
    assert cfg.cooling.default_target_c == pytest.approx(4.0)
    assert cfg.codes.relock_delay_ms == 1000
    assert cfg.identity.display_name == "Sam"
    assert cfg.webhook.enabled is False


def test_missing_sections_fall_back_to_defaults(tmp_path: Path) -> None:
    cfg = load_config(_write_config(tmp_path, {"config_version": "minimal"}))

    assert cfg.telemetry == DEFAULT_CONFIG.telemetry
    assert cfg.codes == DEFAULT_CONFIG.codes
    assert cfg.identity.display_name == "Owner"
    assert cfg.snapshot.path is None


def test_json_config_is_accepted(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps(_base_config_dict()), encoding="utf-8")

    cfg = load_config(config_path)

    assert cfg.source == config_path


def test_missing_config_version_raises(tmp_path: Path) -> None:
    data = _base_config_dict()
    data.pop("config_version")
    with pytest.raises(ConfigError) as exc:
        load_config(_write_config(tmp_path, data))
    assert "config_version" in str(exc.value)


def test_critical_threshold_above_low_threshold_rejected(tmp_path: Path) -> None:
    data = _base_config_dict()
    data["telemetry"]["critical_battery_pct"] = 20
    with pytest.raises(ConfigError):
        load_config(_write_config(tmp_path, data))


def test_default_target_outside_range_rejected(tmp_path: Path) -> None:
    data = _base_config_dict()
    data["cooling"]["default_target_c"] = 12
    with pytest.raises(ConfigError):
        load_config(_write_config(tmp_path, data))


def test_boolean_interval_rejected(tmp_path: Path) -> None:
    data = _base_config_dict()
    data["codes"]["sweep_interval_ms"] = True
    with pytest.raises(ConfigError) as exc:
        load_config(_write_config(tmp_path, data))
    assert "codes.sweep_interval_ms" in str(exc.value)


def test_enabled_webhook_requires_url(tmp_path: Path) -> None:
    data = _base_config_dict()
    data["notifications"] = {"webhook": {"enabled": True}}
    with pytest.raises(ConfigError):
        load_config(_write_config(tmp_path, data))


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.yaml")
