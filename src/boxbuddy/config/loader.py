"""Config loader with schema validation for the lockbox controller."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


class ConfigError(ValueError):
    """Raised when a configuration file fails validation."""


@dataclass(frozen=True)
class TelemetryConfig:
    tick_interval_ms: int = 20000
    idle_drain_pct: float = 0.05
    cooling_drain_pct: float = 0.2
    low_battery_pct: float = 15.0
    critical_battery_pct: float = 5.0


@dataclass(frozen=True)
class CoolingConfig:
    default_target_c: float = 4.0
    min_target_c: float = 0.0
    max_target_c: float = 10.0


@dataclass(frozen=True)
class CodesConfig:
    sweep_interval_ms: int = 30000
    relock_delay_ms: int = 1000
    default_ttl_hours: int = 4


@dataclass(frozen=True)
class IdentityConfig:
    display_name: str = "Owner"


@dataclass(frozen=True)
class WebhookConfig:
    enabled: bool = False
    url: Optional[str] = None
    timeout_ms: int = 500


@dataclass(frozen=True)
class SnapshotConfig:
    path: Optional[Path] = None


@dataclass(frozen=True)
class Config:
    source: Optional[Path]
    config_version: str
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    cooling: CoolingConfig = field(default_factory=CoolingConfig)
    codes: CodesConfig = field(default_factory=CodesConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    snapshot: SnapshotConfig = field(default_factory=SnapshotConfig)


DEFAULT_CONFIG = Config(source=None, config_version="builtin-defaults")


def load_config(path: str | Path) -> Config:
    """Load and validate a YAML/JSON config file."""
    source = Path(path)
    if not source.exists():
        raise ConfigError(f"Config file not found: {source}")

    data = _deserialize(source)
    if not isinstance(data, dict):
        raise ConfigError("Config root must be a mapping")
    return parse_config(data, source)


def _deserialize(source: Path) -> Any:
    text = source.read_text(encoding="utf-8")
    suffix = source.suffix.lower()
    if suffix == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {source}: {exc}") from exc
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {source}: {exc}") from exc


def parse_config(data: Dict[str, Any], source: Optional[Path] = None) -> Config:
    config_version = _require_str(data, "config_version")

    telemetry_section = _optional_dict(data, "telemetry")
    defaults = TelemetryConfig()
    telemetry = TelemetryConfig(
        tick_interval_ms=_coerce_int(
            telemetry_section.get("tick_interval_ms", defaults.tick_interval_ms),
            "telemetry.tick_interval_ms",
            minimum=1,
        ),
        idle_drain_pct=_coerce_float(
            telemetry_section.get("idle_drain_pct", defaults.idle_drain_pct),
            "telemetry.idle_drain_pct",
            minimum=0.0,
            maximum=100.0,
        ),
        cooling_drain_pct=_coerce_float(
            telemetry_section.get("cooling_drain_pct", defaults.cooling_drain_pct),
            "telemetry.cooling_drain_pct",
            minimum=0.0,
            maximum=100.0,
        ),
        low_battery_pct=_coerce_float(
            telemetry_section.get("low_battery_pct", defaults.low_battery_pct),
            "telemetry.low_battery_pct",
            minimum=0.0,
            maximum=100.0,
        ),
        critical_battery_pct=_coerce_float(
            telemetry_section.get("critical_battery_pct", defaults.critical_battery_pct),
            "telemetry.critical_battery_pct",
            minimum=0.0,
            maximum=100.0,
        ),
    )
    if telemetry.critical_battery_pct > telemetry.low_battery_pct:
        raise ConfigError("telemetry.critical_battery_pct must be <= telemetry.low_battery_pct")

    cooling_section = _optional_dict(data, "cooling")
    cooling_defaults = CoolingConfig()
    cooling = CoolingConfig(
        default_target_c=_coerce_float(
            cooling_section.get("default_target_c", cooling_defaults.default_target_c),
            "cooling.default_target_c",
        ),
        min_target_c=_coerce_float(
            cooling_section.get("min_target_c", cooling_defaults.min_target_c),
            "cooling.min_target_c",
        ),
        max_target_c=_coerce_float(
            cooling_section.get("max_target_c", cooling_defaults.max_target_c),
            "cooling.max_target_c",
        ),
    )
    if cooling.min_target_c > cooling.max_target_c:
        raise ConfigError("cooling.min_target_c must be <= cooling.max_target_c")
    if not cooling.min_target_c <= cooling.default_target_c <= cooling.max_target_c:
        raise ConfigError("cooling.default_target_c must lie within [min_target_c, max_target_c]")

    codes_section = _optional_dict(data, "codes")
    codes_defaults = CodesConfig()
    codes = CodesConfig(
        sweep_interval_ms=_coerce_int(
            codes_section.get("sweep_interval_ms", codes_defaults.sweep_interval_ms),
            "codes.sweep_interval_ms",
            minimum=1,
        ),
        relock_delay_ms=_coerce_int(
            codes_section.get("relock_delay_ms", codes_defaults.relock_delay_ms),
            "codes.relock_delay_ms",
            minimum=0,
        ),
        default_ttl_hours=_coerce_int(
            codes_section.get("default_ttl_hours", codes_defaults.default_ttl_hours),
            "codes.default_ttl_hours",
            minimum=1,
        ),
    )

    identity_section = _optional_dict(data, "identity")
    identity = IdentityConfig(
        display_name=(
            _require_str(identity_section, "display_name")
            if "display_name" in identity_section
            else IdentityConfig().display_name
        ),
    )

    notifications_section = _optional_dict(data, "notifications")
    webhook_section = _optional_dict(notifications_section, "webhook")
    webhook = WebhookConfig(
        enabled=bool(webhook_section.get("enabled", False)),
        url=webhook_section.get("url"),
        timeout_ms=_coerce_int(webhook_section.get("timeout_ms", 500), "notifications.webhook.timeout_ms", minimum=1),
    )
    if webhook.enabled and not (isinstance(webhook.url, str) and webhook.url.strip()):
        raise ConfigError("notifications.webhook.url is required when notifications.webhook.enabled is true")

    snapshot_section = _optional_dict(data, "snapshot")
    snapshot = SnapshotConfig(path=_optional_path(snapshot_section.get("path")))

    return Config(
        source=source,
        config_version=config_version,
        telemetry=telemetry,
        cooling=cooling,
        codes=codes,
        identity=identity,
        webhook=webhook,
        snapshot=snapshot,
    )


def _optional_dict(obj: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = obj.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{key} block must be a mapping if provided")
    return value


def _require_str(obj: Dict[str, Any], key: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{key}' must be a non-empty string")
    return value


def _coerce_int(value: Any, field: str, minimum: Optional[int] = None) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"'{field}' must be an integer, not boolean")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{field}' must be an integer") from exc
    if minimum is not None and parsed < minimum:
        raise ConfigError(f"'{field}' must be >= {minimum}")
    return parsed


def _coerce_float(
    value: Any,
    field: str,
    *,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{field}' must be a number")
    result = float(value)
    if minimum is not None and result < minimum:
        raise ConfigError(f"'{field}' must be >= {minimum}")
    if maximum is not None and result > maximum:
        raise ConfigError(f"'{field}' must be <= {maximum}")
    return result


def _optional_path(value: Any) -> Optional[Path]:
    if not value:
        return None
    if not isinstance(value, str):
        raise ConfigError("Path fields must be strings when provided")
    return Path(value)


__all__ = [
    "CodesConfig",
    "Config",
    "ConfigError",
    "CoolingConfig",
    "DEFAULT_CONFIG",
    "IdentityConfig",
    "SnapshotConfig",
    "TelemetryConfig",
    "WebhookConfig",
    "load_config",
    "parse_config",
]
