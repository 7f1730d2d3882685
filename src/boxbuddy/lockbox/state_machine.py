"""Per-device state machine: lock, cooling, telemetry decay and alerts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol

from boxbuddy.config.loader import Config
from boxbuddy.lockbox.audit import AuditLog
from boxbuddy.lockbox.clock import Clock
from boxbuddy.lockbox.registry import DeviceRegistry
from boxbuddy.lockbox.types import AlertKind, AuditKind, Device, GuardViolation

LOGGER = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, title: str, body: str) -> None:
        ...


class DeviceEventType(str, Enum):
    STATUS = "device_status_update"
    ALERT = "device_alert_raised"
    REJECTED = "device_command_rejected"


@dataclass(frozen=True)
class DeviceEvent:
    event_type: DeviceEventType
    device_id: str
    timestamp_ms: int
    details: Dict[str, object]


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


class DeviceStateMachine:
    """Applies guarded commands and telemetry ticks to registry devices."""

    def __init__(
        self,
        registry: DeviceRegistry,
        audit: AuditLog,
        clock: Clock,
        config: Config,
        *,
        notifier: Optional[Notifier] = None,
        callback: Optional[Callable[[DeviceEvent], None]] = None,
    ) -> None:
        self._registry = registry
        self._audit = audit
        self._clock = clock
        self._telemetry = config.telemetry
        self._cooling = config.cooling
        self._notifier = notifier
        self._callback = callback or (lambda event: None)

    def toggle_lock(self, device_id: str, actor: str) -> Device:
        """Lock an unlocked device or unlock a locked one."""

        with self._registry.lock_for(device_id):
            device = self._registry.get(device_id)
            if not device.online:
                self._reject(device, "Cannot toggle lock while device is offline")
            if not device.status.locked and device.status.door_open:
                self._reject(device, "Close the door before locking")
            now = self._clock.now()
            device.status.locked = not device.status.locked
            device.last_seen_at = now
            verb = "Locked" if device.status.locked else "Unlocked"
            self._audit.append(AuditKind.ACTION, f"{verb} by {actor}", now)
            self._emit_status(device, now)
        LOGGER.info("%s %s by %s", verb, device.name, actor)
        return device

    def toggle_cooling(self, device_id: str, actor: str) -> Device:
        """Switch cooling between the default target and off."""

        with self._registry.lock_for(device_id):
            device = self._registry.get(device_id)
            if not device.supports_cooling:
                self._reject(device, f"{device.name} has no cooling unit")
            if not device.online:
                self._reject(device, "Device offline")
            if device.status.battery_pct <= self._telemetry.critical_battery_pct:
                self._reject(device, "Battery too low for cooling")
            now = self._clock.now()
            target = self._cooling.default_target_c
            device.status.temp_c = target if device.status.temp_c is None else None
            device.last_seen_at = now
            if device.status.temp_c is None:
                text, body = f"Cooling off by {actor}", "Turned off"
            else:
                text, body = f"Cooling on to {_fmt_temp(target)}°C by {actor}", f"Target {_fmt_temp(target)}°C"
            self._audit.append(AuditKind.COOLING, text, now)
            self._emit_status(device, now)
        self._notify("Cooling updated", body)
        return device

    def telemetry_tick(self, device_id: str) -> Optional[Device]:
        """Drain the battery, raise alerts and apply the low-battery safety cut."""

        lock = self._registry.lock_if_present(device_id)
        if lock is None:
            return None
        with lock:
            device = self._registry.find(device_id)
            if device is None:
                return None
            if not device.online:
                return device
            now = self._clock.now()
            status = device.status
            drain = self._telemetry.cooling_drain_pct if status.cooling_active else self._telemetry.idle_drain_pct
            status.battery_pct = round(_clamp(status.battery_pct - drain, 0.0, 100.0), 1)
            if status.battery_pct <= self._telemetry.low_battery_pct and AlertKind.LOW_BATTERY not in device.alerts:
                device.alerts.add(AlertKind.LOW_BATTERY)
                LOGGER.warning("Low battery on %s (%.1f%%)", device.name, status.battery_pct)
                self._callback(DeviceEvent(
                    event_type=DeviceEventType.ALERT,
                    device_id=device.id,
                    timestamp_ms=now,
                    details={"alert": AlertKind.LOW_BATTERY.value, "battery_pct": status.battery_pct},
                ))
            if status.battery_pct <= self._telemetry.critical_battery_pct:
                if status.temp_c is not None:
                    LOGGER.info("Cooling cut on %s at %.1f%% battery", device.name, status.battery_pct)
                status.temp_c = None
                # Safety lock skips the door guard; an open door simply stays unlocked.
                if not status.door_open:
                    status.locked = True
            device.last_seen_at = now
            LOGGER.debug("Tick %s battery=%.1f temp=%s locked=%s", device.id, status.battery_pct, status.temp_c, status.locked)
            self._emit_status(device, now)
        return device

    def tick_all(self) -> List[Device]:
        ticked: List[Device] = []
        for device_id in self._registry.ids():
            device = self.telemetry_tick(device_id)
            if device is not None:
                ticked.append(device)
        return ticked

    def set_online(self, device_id: str, online: bool) -> Device:
        with self._registry.lock_for(device_id):
            device = self._registry.get(device_id)
            device.online = bool(online)
            self._touch(device)
        return device

    def set_door_open(self, device_id: str, door_open: bool) -> Device:
        with self._registry.lock_for(device_id):
            device = self._registry.get(device_id)
            device.status.door_open = bool(door_open)
            self._touch(device)
        return device

    def set_battery(self, device_id: str, battery_pct: float) -> Device:
        with self._registry.lock_for(device_id):
            device = self._registry.get(device_id)
            device.status.battery_pct = round(_clamp(float(battery_pct), 0.0, 100.0), 1)
            self._touch(device)
        return device

    def set_temperature(self, device_id: str, temp_c: Optional[float]) -> Device:
        with self._registry.lock_for(device_id):
            device = self._registry.get(device_id)
            if not device.supports_cooling:
                self._reject(device, f"{device.name} has no cooling unit")
            if temp_c is None:
                device.status.temp_c = None
            else:
                device.status.temp_c = _clamp(float(temp_c), self._cooling.min_target_c, self._cooling.max_target_c)
            self._touch(device)
        return device

    def force_locked(self, device_id: str) -> Optional[Device]:
        """Set ``locked`` unconditionally; no-op when the device is gone."""

        lock = self._registry.lock_if_present(device_id)
        if lock is None:
            return None
        with lock:
            device = self._registry.find(device_id)
            if device is None:
                return None
            device.status.locked = True
            self._touch(device)
        return device

    def force_unlocked(self, device_id: str) -> Device:
        with self._registry.lock_for(device_id):
            device = self._registry.get(device_id)
            device.status.locked = False
            self._touch(device)
        return device

    def _touch(self, device: Device) -> None:
        now = self._clock.now()
        device.last_seen_at = now
        self._emit_status(device, now)

    def _reject(self, device: Device, reason: str) -> None:
        LOGGER.info("Rejected command on %s: %s", device.name, reason)
        self._callback(DeviceEvent(
            event_type=DeviceEventType.REJECTED,
            device_id=device.id,
            timestamp_ms=self._clock.now(),
            details={"reason": reason},
        ))
        raise GuardViolation(device.id, reason)

    def _emit_status(self, device: Device, timestamp_ms: int) -> None:
        status = device.status
        self._callback(DeviceEvent(
            event_type=DeviceEventType.STATUS,
            device_id=device.id,
            timestamp_ms=timestamp_ms,
            details={
                "online": device.online,
                "locked": status.locked,
                "door_open": status.door_open,
                "battery_pct": status.battery_pct,
                "temp_c": status.temp_c,
                "alerts": sorted(alert.value for alert in device.alerts),
            },
        ))

    def _notify(self, title: str, body: str) -> None:
        if self._notifier is None:
            return
        self._notifier.notify(title, body)


def _fmt_temp(value: float) -> str:
    return f"{value:g}"


__all__ = [
    "DeviceEvent",
    "DeviceEventType",
    "DeviceStateMachine",
    "Notifier",
]
