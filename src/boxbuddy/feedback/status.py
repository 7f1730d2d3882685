"""Console status reporter and logging notifier for the simulator."""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import List, Optional, Sequence, TextIO

from boxbuddy.lockbox.state_machine import DeviceEvent, DeviceEventType
from boxbuddy.lockbox.types import AccessCode, AuditEntry, Device

LOGGER = logging.getLogger(__name__)


class LoggingNotifier:
    """Writes notifications to the log instead of a push channel."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or LOGGER

    def notify(self, title: str, body: str) -> None:
        self._logger.info("Notification: %s - %s", title, body)


class ConsoleStatusReporter:
    """Renders the DEVICE | LOCK | DOOR | BATT | TEMP grid."""

    def __init__(self, *, output: Optional[TextIO] = None) -> None:
        self._output = output or sys.stdout
        self._rejections: List[str] = []

    def handle_event(self, event: DeviceEvent) -> None:
        if event.event_type is DeviceEventType.REJECTED:
            reason = event.details.get("reason")
            self._rejections.append(f"{event.device_id}: {reason}")
        elif event.event_type is DeviceEventType.ALERT:
            self._output.write(f"! {event.details.get('alert')} on {event.device_id}\n")

    @property
    def rejections(self) -> List[str]:
        return list(self._rejections)

    def render_devices(self, devices: Sequence[Device], *, selected_id: Optional[str] = None) -> None:
        lines = ["DEVICE           | LOCK     | DOOR   | BATT  | TEMP | ALERTS", "-" * 64]
        for device in devices:
            marker = ">" if device.id == selected_id else " "
            status = device.status
            name = f"{marker}{device.name}"[:16].ljust(16)
            lock = ("Locked" if status.locked else "Unlocked").ljust(8)
            door = ("Open" if status.door_open else "Closed").ljust(6)
            temp = "off" if status.temp_c is None else f"{status.temp_c:g}C"
            if not device.supports_cooling:
                temp = "-"
            if not device.online:
                lock = "OFFLINE ".ljust(8)
            alerts = ",".join(sorted(alert.value for alert in device.alerts)) or "-"
            lines.append(f"{name} | {lock} | {door} | {status.battery_pct:5.1f} | {temp:<4} | {alerts}")
        self._write(lines)

    def render_codes(self, active: Sequence[AccessCode], completed: Sequence[AccessCode]) -> None:
        lines = [f"Active codes ({len(active)})"]
        lines.extend(f"  {code.code}  expires {_fmt_ms(code.expires_at)}  {code.note}".rstrip() for code in active)
        lines.append(f"Completed / expired ({len(completed)})")
        lines.extend(f"  {code.code}  {code.state.value}  {code.note}".rstrip() for code in completed)
        self._write(lines)

    def render_audit(self, entries: Sequence[AuditEntry]) -> None:
        lines = ["Event log"]
        lines.extend(f"  {_fmt_ms(entry.timestamp)}  [{entry.kind.value:<8}] {entry.text}" for entry in entries)
        self._write(lines)

    def _write(self, lines: Sequence[str]) -> None:
        self._output.write("\n".join(lines) + "\n")
        self._output.flush()


def _fmt_ms(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


__all__ = ["ConsoleStatusReporter", "LoggingNotifier"]
