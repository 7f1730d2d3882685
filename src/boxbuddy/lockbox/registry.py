"""Device registry: owns device entities, selection and per-device locks."""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from boxbuddy.lockbox.types import Device, DeviceStatus, DeviceVariant, GuardViolation, NotFound

LOGGER = logging.getLogger(__name__)

DEFAULT_NAMES = {
    DeviceVariant.STANDARD: "Porch Box",
    DeviceVariant.SHARED: "Lobby Box",
    DeviceVariant.COOLING: "Kitchen Box",
}


class DeviceRegistry:
    """Holds every device plus the currently selected one.

    Mutations of a single device must happen while holding ``lock_for(id)``;
    the registry's own lock only guards the device collection.
    """

    def __init__(self, devices: Optional[Iterable[Device]] = None, selected_id: Optional[str] = None) -> None:
        self._lock = threading.RLock()
        self._devices: Dict[str, Device] = {}
        self._device_locks: Dict[str, threading.RLock] = {}
        for device in devices or []:
            self._insert(device)
        self._selected_id: Optional[str] = None
        if selected_id is not None and selected_id in self._devices:
            self._selected_id = selected_id
        elif self._devices:
            self._selected_id = next(iter(self._devices))

    def add(
        self,
        variant: DeviceVariant,
        *,
        now: int,
        name: Optional[str] = None,
        device_id: Optional[str] = None,
        temp_c: Optional[float] = None,
    ) -> Device:
        variant = DeviceVariant(variant)
        device = Device(
            id=device_id or uuid4().hex,
            name=name or DEFAULT_NAMES[variant],
            variant=variant,
            online=True,
            status=DeviceStatus(
                locked=True,
                door_open=False,
                battery_pct=100.0,
                temp_c=temp_c if variant is DeviceVariant.COOLING else None,
            ),
            last_seen_at=now,
        )
        with self._lock:
            if device.id in self._devices:
                raise ValueError(f"Device id {device.id} already registered")
            self._insert(device)
            self._selected_id = device.id
        LOGGER.info("Device added (id=%s name=%s variant=%s)", device.id, device.name, variant.value)
        return device

    def remove(self, device_id: str) -> Device:
        # Waits for any command already holding the device lock.
        with self.lock_for(device_id), self._lock:
            device = self.get(device_id)
            if len(self._devices) <= 1:
                raise GuardViolation(device_id, "Cannot remove the last device")
            del self._devices[device_id]
            self._device_locks.pop(device_id, None)
            if self._selected_id == device_id:
                self._selected_id = next(iter(self._devices))
        LOGGER.info("Device removed (id=%s)", device_id)
        return device

    def get(self, device_id: str) -> Device:
        with self._lock:
            device = self._devices.get(device_id)
        if device is None:
            raise NotFound("device", device_id)
        return device

    def find(self, device_id: str) -> Optional[Device]:
        with self._lock:
            return self._devices.get(device_id)

    def lock_for(self, device_id: str) -> threading.RLock:
        with self._lock:
            lock = self._device_locks.get(device_id)
        if lock is None:
            raise NotFound("device", device_id)
        return lock

    def lock_if_present(self, device_id: str) -> Optional[threading.RLock]:
        with self._lock:
            return self._device_locks.get(device_id)

    def select(self, device_id: str) -> Device:
        with self._lock:
            device = self.get(device_id)
            self._selected_id = device_id
        return device

    @property
    def selected(self) -> Optional[Device]:
        with self._lock:
            if self._selected_id is None:
                return None
            return self._devices.get(self._selected_id)

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    def devices(self) -> List[Device]:
        with self._lock:
            return list(self._devices.values())

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._devices.keys())

    def __contains__(self, device_id: object) -> bool:
        with self._lock:
            return device_id in self._devices

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)

    def _insert(self, device: Device) -> None:
        self._devices[device.id] = device
        self._device_locks[device.id] = threading.RLock()


__all__ = ["DEFAULT_NAMES", "DeviceRegistry"]
