from __future__ import annotations

import random
from typing import List, Tuple

import pytest

from boxbuddy.config.loader import DEFAULT_CONFIG
from boxbuddy.lockbox.audit import AuditLog
from boxbuddy.lockbox.clock import ManualClock
from boxbuddy.lockbox.registry import DeviceRegistry
from boxbuddy.lockbox.state_machine import DeviceEvent, DeviceEventType, DeviceStateMachine
from boxbuddy.lockbox.types import AlertKind, AuditKind, Device, DeviceVariant, GuardViolation, NotFound


class _RecordingNotifier:
    def __init__(self) -> None:
        self.sent: List[Tuple[str, str]] = []

    def notify(self, title: str, body: str) -> None:
        self.sent.append((title, body))


def _build(
    variant: DeviceVariant = DeviceVariant.COOLING,
    *,
    battery: float = 50.0,
    temp_c: float | None = None,
) -> Tuple[DeviceStateMachine, Device, AuditLog, ManualClock, _RecordingNotifier, List[DeviceEvent]]:
    clock = ManualClock(1_000_000)
    registry = DeviceRegistry()
    audit = AuditLog()
    notifier = _RecordingNotifier()
    events: List[DeviceEvent] = []
    machine = DeviceStateMachine(registry, audit, clock, DEFAULT_CONFIG, notifier=notifier, callback=events.append)
    device = registry.add(variant, now=clock.now(), temp_c=temp_c)
    device.status.battery_pct = battery
    return machine, device, audit, clock, notifier, events


def test_toggle_lock_unlocks_and_logs_actor() -> None:
    machine, device, audit, _, _, _ = _build()

    machine.toggle_lock(device.id, "Sam")

    assert device.status.locked is False
    entry = audit.entries()[0]
    assert entry.kind is AuditKind.ACTION
    assert entry.text == "Unlocked by Sam"


def test_toggle_lock_rejected_when_offline() -> None:
    machine, device, audit, _, _, events = _build()
    machine.set_online(device.id, False)

    with pytest.raises(GuardViolation) as exc:
        machine.toggle_lock(device.id, "Sam")

    assert exc.value.device_id == device.id
    assert device.status.locked is True
    assert len(audit) == 0
    assert events[-1].event_type is DeviceEventType.REJECTED


def test_lock_rejected_while_door_open() -> None:
    machine, device, audit, _, _, _ = _build()
    machine.toggle_lock(device.id, "Sam")
    machine.set_door_open(device.id, True)

    with pytest.raises(GuardViolation):
        machine.toggle_lock(device.id, "Sam")

    assert device.status.locked is False
    assert [entry.text for entry in audit.in_order()] == ["Unlocked by Sam"]


def test_unlock_allowed_while_door_open() -> None:
    machine, device, _, _, _, _ = _build()
    machine.set_door_open(device.id, True)

    machine.toggle_lock(device.id, "Sam")

    assert device.status.locked is False


def test_fuzzed_commands_never_lock_with_door_open() -> None:
    machine, device, _, _, _, _ = _build()
    rng = random.Random(1234)
    for _ in range(500):
        action = rng.choice(("lock", "door", "online"))
        if action == "door":
            machine.set_door_open(device.id, rng.random() < 0.5)
        elif action == "online":
            machine.set_online(device.id, rng.random() < 0.8)
        else:
            was_locked = device.status.locked
            try:
                machine.toggle_lock(device.id, "fuzz")
            except GuardViolation:
                continue
            if not was_locked:
                assert device.status.door_open is False


def test_toggle_cooling_sets_default_target_and_notifies() -> None:
    machine, device, audit, _, notifier, _ = _build()

    machine.toggle_cooling(device.id, "Sam")

    assert device.status.temp_c == pytest.approx(4.0)
    assert audit.entries()[0].kind is AuditKind.COOLING
    assert audit.entries()[0].text == "Cooling on to 4°C by Sam"
    assert notifier.sent == [("Cooling updated", "Target 4°C")]

    machine.toggle_cooling(device.id, "Sam")

    assert device.status.temp_c is None
    assert notifier.sent[-1] == ("Cooling updated", "Turned off")


def test_toggle_cooling_rejected_at_critical_battery() -> None:
    machine, device, _, _, notifier, _ = _build(battery=5.0)

    with pytest.raises(GuardViolation):
        machine.toggle_cooling(device.id, "Sam")

    assert device.status.temp_c is None
    assert notifier.sent == []


def test_toggle_cooling_rejected_for_standard_variant() -> None:
    machine, device, _, _, _, _ = _build(DeviceVariant.STANDARD)

    with pytest.raises(GuardViolation):
        machine.toggle_cooling(device.id, "Sam")


def test_tick_drains_cooling_battery() -> None:
    machine, device, _, clock, _, _ = _build(battery=20.0, temp_c=4.0)
    clock.advance(20000)

    machine.telemetry_tick(device.id)

    assert device.status.battery_pct == pytest.approx(19.8)
    assert device.alerts == set()
    assert device.last_seen_at == clock.now()


def test_tick_drains_idle_battery() -> None:
    machine, device, _, _, _, _ = _build(battery=50.05)

    machine.telemetry_tick(device.id)

    assert device.status.battery_pct == pytest.approx(50.0)
    assert device.alerts == set()


def test_low_battery_alert_raised_once() -> None:
    machine, device, _, _, _, events = _build(battery=20.0, temp_c=4.0)

    for _ in range(40):
        machine.telemetry_tick(device.id)
        if device.status.battery_pct <= 15:
            break

    assert device.status.battery_pct == pytest.approx(15.0)
    assert device.alerts == {AlertKind.LOW_BATTERY}
    machine.telemetry_tick(device.id)
    alert_events = [event for event in events if event.event_type is DeviceEventType.ALERT]
    assert len(alert_events) == 1
    assert device.alerts == {AlertKind.LOW_BATTERY}


def test_alert_not_cleared_when_battery_recovers() -> None:
    machine, device, _, _, _, _ = _build(battery=15.05)
    machine.telemetry_tick(device.id)
    assert AlertKind.LOW_BATTERY in device.alerts

    machine.set_battery(device.id, 90)
    machine.telemetry_tick(device.id)

    assert AlertKind.LOW_BATTERY in device.alerts


def test_critical_battery_forces_lock_and_cuts_cooling() -> None:
    machine, device, _, _, _, _ = _build(battery=5.1, temp_c=4.0)
    machine.toggle_lock(device.id, "Sam")
    assert device.status.locked is False

    machine.telemetry_tick(device.id)

    assert device.status.battery_pct == pytest.approx(4.9)
    assert device.status.temp_c is None
    assert device.status.locked is True


def test_critical_battery_leaves_open_door_unlocked() -> None:
    machine, device, _, _, _, _ = _build(battery=3.0, temp_c=4.0)
    machine.toggle_lock(device.id, "Sam")
    machine.set_door_open(device.id, True)

    machine.telemetry_tick(device.id)

    assert device.status.temp_c is None
    assert device.status.locked is False


def test_battery_never_leaves_bounds() -> None:
    machine, device, _, _, _, _ = _build(battery=0.1, temp_c=4.0)

    for _ in range(10):
        machine.telemetry_tick(device.id)
        assert 0.0 <= device.status.battery_pct <= 100.0

    assert device.status.battery_pct == 0.0
    machine.set_battery(device.id, 250)
    assert device.status.battery_pct == 100.0
    machine.set_battery(device.id, -4)
    assert device.status.battery_pct == 0.0


def test_tick_is_noop_when_offline() -> None:
    machine, device, _, clock, _, _ = _build(battery=40.0)
    machine.set_online(device.id, False)
    seen = device.last_seen_at
    clock.advance(20000)

    machine.telemetry_tick(device.id)

    assert device.status.battery_pct == pytest.approx(40.0)
    assert device.last_seen_at == seen


def test_set_temperature_clamps_and_rejects_non_cooling() -> None:
    machine, device, _, _, _, _ = _build()

    machine.set_temperature(device.id, 14)
    assert device.status.temp_c == pytest.approx(10.0)
    machine.set_temperature(device.id, None)
    assert device.status.temp_c is None

    standard, other, _, _, _, _ = _build(DeviceVariant.STANDARD)
    with pytest.raises(GuardViolation):
        standard.set_temperature(other.id, 4)
    assert other.status.temp_c is None


def test_unknown_device_raises_not_found() -> None:
    machine, _, _, _, _, _ = _build()

    with pytest.raises(NotFound):
        machine.toggle_lock("missing", "Sam")
    assert machine.telemetry_tick("missing") is None


def test_set_online_updates_last_seen() -> None:
    machine, device, _, clock, _, events = _build()
    clock.advance(5000)

    machine.set_online(device.id, False)

    assert device.last_seen_at == clock.now()
    assert events[-1].event_type is DeviceEventType.STATUS
    assert events[-1].details["online"] is False
