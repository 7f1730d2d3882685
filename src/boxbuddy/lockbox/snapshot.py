"""JSON snapshot persistence for devices, codes and audit entries."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from boxbuddy.lockbox.types import (
    AccessCode,
    AlertKind,
    AuditEntry,
    AuditKind,
    Device,
    DeviceStatus,
    DeviceVariant,
)

LOGGER = logging.getLogger(__name__)
SNAPSHOT_VERSION = 1


class SnapshotError(ValueError):
    """Raised when a snapshot file cannot be parsed."""


@dataclass
class Snapshot:
    devices: List[Device] = field(default_factory=list)
    codes: List[AccessCode] = field(default_factory=list)
    logs: List[AuditEntry] = field(default_factory=list)
    selected_device_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "selected_device_id": self.selected_device_id,
            "devices": [device_to_dict(device) for device in self.devices],
            "codes": [code_to_dict(code) for code in self.codes],
            "logs": [entry_to_dict(entry) for entry in self.logs],
        }


def device_to_dict(device: Device) -> Dict[str, Any]:
    return {
        "id": device.id,
        "name": device.name,
        "variant": device.variant.value,
        "online": device.online,
        "status": {
            "locked": device.status.locked,
            "door_open": device.status.door_open,
            "battery_pct": device.status.battery_pct,
            "temp_c": device.status.temp_c,
        },
        "last_seen_at": device.last_seen_at,
        "alerts": sorted(alert.value for alert in device.alerts),
    }


def code_to_dict(code: AccessCode) -> Dict[str, Any]:
    return {
        "id": code.id,
        "device_id": code.device_id,
        "code": code.code,
        "expires_at": code.expires_at,
        "note": code.note,
        "created_by": code.created_by,
        "used_at": code.used_at,
        "expired": code.expired,
    }


def entry_to_dict(entry: AuditEntry) -> Dict[str, Any]:
    return {"id": entry.id, "type": entry.kind.value, "text": entry.text, "ts": entry.timestamp}


def parse_snapshot(data: Any) -> Snapshot:
    if not isinstance(data, dict):
        raise SnapshotError("Snapshot root must be a mapping")
    version = data.get("version", SNAPSHOT_VERSION)
    if version != SNAPSHOT_VERSION:
        raise SnapshotError(f"Unsupported snapshot version: {version}")
    try:
        devices = [_parse_device(item) for item in data.get("devices", [])]
        codes = [_parse_code(item) for item in data.get("codes", [])]
        logs = [_parse_entry(item) for item in data.get("logs", [])]
    except (KeyError, TypeError, ValueError) as exc:
        raise SnapshotError(f"Malformed snapshot entry: {exc}") from exc
    return Snapshot(
        devices=devices,
        codes=codes,
        logs=logs,
        selected_device_id=data.get("selected_device_id"),
    )


def load_snapshot(path: str | Path) -> Snapshot:
    source = Path(path)
    if not source.exists():
        raise SnapshotError(f"Snapshot file not found: {source}")
    try:
        data = json.loads(source.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"Invalid snapshot JSON in {source}: {exc}") from exc
    snapshot = parse_snapshot(data)
    LOGGER.debug(
        "Loaded snapshot %s (devices=%d codes=%d logs=%d)",
        source,
        len(snapshot.devices),
        len(snapshot.codes),
        len(snapshot.logs),
    )
    return snapshot


def save_snapshot(path: str | Path, snapshot: Snapshot) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_suffix(target.suffix + ".tmp")
    tmp.write_text(json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    tmp.replace(target)
    LOGGER.debug("Snapshot written to %s", target)
    return target


def _parse_device(item: Dict[str, Any]) -> Device:
    variant = DeviceVariant(item["variant"])
    status = item.get("status") or {}
    temp_c = status.get("temp_c")
    return Device(
        id=str(item["id"]),
        name=str(item.get("name", "")),
        variant=variant,
        online=bool(item.get("online", True)),
        status=DeviceStatus(
            locked=bool(status.get("locked", True)),
            door_open=bool(status.get("door_open", False)),
            battery_pct=float(status.get("battery_pct", 100.0)),
            temp_c=float(temp_c) if temp_c is not None and variant is DeviceVariant.COOLING else None,
        ),
        last_seen_at=int(item.get("last_seen_at", 0)),
        alerts={AlertKind(alert) for alert in item.get("alerts", [])},
    )


def _parse_code(item: Dict[str, Any]) -> AccessCode:
    used_at = item.get("used_at")
    return AccessCode(
        id=str(item["id"]),
        device_id=str(item["device_id"]),
        code=str(item["code"]),
        expires_at=int(item["expires_at"]),
        note=str(item.get("note") or ""),
        created_by=str(item.get("created_by", "")),
        used_at=int(used_at) if used_at is not None else None,
        expired=bool(item.get("expired", False)) and used_at is None,
    )


def _parse_entry(item: Dict[str, Any]) -> AuditEntry:
    return AuditEntry(
        id=str(item["id"]),
        kind=AuditKind(item.get("type", AuditKind.INFO.value)),
        text=str(item["text"]),
        timestamp=int(item["ts"]),
    )


__all__ = [
    "SNAPSHOT_VERSION",
    "Snapshot",
    "SnapshotError",
    "code_to_dict",
    "device_to_dict",
    "entry_to_dict",
    "load_snapshot",
    "parse_snapshot",
    "save_snapshot",
]
