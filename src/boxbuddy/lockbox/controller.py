"""Lockbox controller: owns the core components and the timer subscriptions."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from boxbuddy.config.loader import Config, DEFAULT_CONFIG
from boxbuddy.lockbox.audit import AuditLog
from boxbuddy.lockbox.clock import Clock, SystemClock, TaskHandle
from boxbuddy.lockbox.ledger import AccessCodeLedger
from boxbuddy.lockbox.registry import DeviceRegistry
from boxbuddy.lockbox.snapshot import Snapshot
from boxbuddy.lockbox.state_machine import DeviceEvent, DeviceStateMachine, Notifier
from boxbuddy.lockbox.types import (
    AccessCode,
    AuditEntry,
    AuditKind,
    Device,
    DeviceVariant,
)

LOGGER = logging.getLogger(__name__)

SEED_DEVICE_NAME = "Hallway Box"
SEED_BATTERY_PCT = 82.0
SEED_LOG_AGE_MS = 30 * 60 * 1000


class LockboxController:
    """Command surface for a host UI or API layer.

    Commands raise ``GuardViolation`` or ``NotFound`` on rejection, except
    ``redeem_code`` which returns ``None`` for unknown or resolved codes.
    """

    def __init__(
        self,
        config: Config = DEFAULT_CONFIG,
        *,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None,
        snapshot: Optional[Snapshot] = None,
        callback: Optional[Callable[[DeviceEvent], None]] = None,
        seed: bool = True,
    ) -> None:
        self._config = config
        self._clock: Clock = clock or SystemClock()
        snapshot = snapshot or Snapshot()
        self._registry = DeviceRegistry(snapshot.devices, snapshot.selected_device_id)
        self._audit = AuditLog(snapshot.logs)
        self._state_machine = DeviceStateMachine(
            self._registry,
            self._audit,
            self._clock,
            config,
            notifier=notifier,
            callback=callback,
        )
        self._ledger = AccessCodeLedger(
            self._registry,
            self._state_machine,
            self._audit,
            self._clock,
            config,
            notifier=notifier,
            codes=snapshot.codes,
        )
        self._tasks: List[TaskHandle] = []
        if seed and not snapshot.devices:
            self._seed()

    @property
    def config(self) -> Config:
        return self._config

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        """Subscribe telemetry ticks and the expiry sweep to the clock."""

        if self._tasks:
            return
        self._tasks = [
            self._clock.every(self._config.telemetry.tick_interval_ms, self._state_machine.tick_all),
            self._clock.every(self._config.codes.sweep_interval_ms, self._sweep),
        ]
        LOGGER.info(
            "Controller started (tick=%sms sweep=%sms)",
            self._config.telemetry.tick_interval_ms,
            self._config.codes.sweep_interval_ms,
        )

    def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        self._tasks = []
        cancelled = self._ledger.cancel_pending()
        LOGGER.info("Controller stopped (%d pending re-lock(s) cancelled)", cancelled)

    def add_device(self, variant: DeviceVariant | str, name: Optional[str] = None) -> Device:
        return self._registry.add(
            DeviceVariant(variant),
            now=self._clock.now(),
            name=name,
            temp_c=self._config.cooling.default_target_c,
        )

    def remove_device(self, device_id: str) -> Device:
        device = self._registry.remove(device_id)
        dropped = self._ledger.drop_device(device_id)
        LOGGER.debug("Dropped %d code(s) with device %s", dropped, device_id)
        return device

    def select_device(self, device_id: str) -> Device:
        return self._registry.select(device_id)

    def selected_device(self) -> Optional[Device]:
        return self._registry.selected

    def devices(self) -> List[Device]:
        return self._registry.devices()

    def get_device(self, device_id: str) -> Device:
        return self._registry.get(device_id)

    def toggle_lock(self, device_id: str, actor: Optional[str] = None) -> Device:
        return self._state_machine.toggle_lock(device_id, actor or self._actor())

    def toggle_cooling(self, device_id: str, actor: Optional[str] = None) -> Device:
        return self._state_machine.toggle_cooling(device_id, actor or self._actor())

    def issue_code(
        self,
        device_id: str,
        hours: Optional[float] = None,
        note: str = "",
        issuer: Optional[str] = None,
    ) -> AccessCode:
        ttl = hours if hours is not None else self._config.codes.default_ttl_hours
        return self._ledger.issue(device_id, ttl, note, issuer or self._actor())

    def redeem_code(self, code_id: str) -> Optional[AccessCode]:
        return self._ledger.redeem(code_id)

    def sweep_codes(self, now: Optional[int] = None) -> List[AccessCode]:
        return self._ledger.sweep(now)

    def set_online(self, device_id: str, online: bool) -> Device:
        return self._state_machine.set_online(device_id, online)

    def set_door_open(self, device_id: str, door_open: bool) -> Device:
        return self._state_machine.set_door_open(device_id, door_open)

    def set_battery(self, device_id: str, battery_pct: float) -> Device:
        return self._state_machine.set_battery(device_id, battery_pct)

    def set_temperature(self, device_id: str, temp_c: Optional[float]) -> Device:
        return self._state_machine.set_temperature(device_id, temp_c)

    def tick(self) -> List[Device]:
        return self._state_machine.tick_all()

    def list_active_codes(self, device_id: str) -> List[AccessCode]:
        self._registry.get(device_id)
        return self._ledger.partition(device_id)[0]

    def list_completed_codes(self, device_id: str) -> List[AccessCode]:
        self._registry.get(device_id)
        return self._ledger.partition(device_id)[1]

    def get_code(self, code_id: str) -> AccessCode:
        return self._ledger.get(code_id)

    def get_audit_log(self) -> List[AuditEntry]:
        return self._audit.entries()

    def record_system_event(self, text: str) -> AuditEntry:
        return self._audit.append(AuditKind.SYSTEM, text, self._clock.now())

    def share_text(self, code_id: str) -> str:
        code = self._ledger.get(code_id)
        device = self._registry.find(code.device_id)
        device_name = device.name if device else code.device_id
        expires = datetime.fromtimestamp(code.expires_at / 1000, tz=timezone.utc).isoformat(timespec="minutes")
        return f"BoxBuddy access code {code.code} for {device_name}. Expires {expires}"

    def pending_relocks(self) -> List[str]:
        return self._ledger.pending_relocks()

    def to_snapshot(self) -> Snapshot:
        return Snapshot(
            devices=self._registry.devices(),
            codes=self._ledger.codes(),
            logs=self._audit.in_order(),
            selected_device_id=self._registry.selected_id,
        )

    def _sweep(self) -> None:
        self._ledger.sweep()

    def _actor(self) -> str:
        return self._config.identity.display_name

    def _seed(self) -> None:
        now = self._clock.now()
        device = self._registry.add(
            DeviceVariant.COOLING,
            now=now,
            name=SEED_DEVICE_NAME,
            temp_c=self._config.cooling.default_target_c,
        )
        device.status.battery_pct = SEED_BATTERY_PCT
        self._audit.append(AuditKind.SYSTEM, "Device claimed and online", now - SEED_LOG_AGE_MS)


__all__ = ["LockboxController"]
