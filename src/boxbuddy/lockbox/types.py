"""Shared dataclasses, enums and errors used across the lockbox core."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Set


class DeviceVariant(str, Enum):
    STANDARD = "standard"
    SHARED = "shared"
    COOLING = "cooling"


class AlertKind(str, Enum):
    LOW_BATTERY = "low_battery"


class AuditKind(str, Enum):
    SYSTEM = "system"
    ACTION = "action"
    COOLING = "cooling"
    CODE = "code"
    DELIVERY = "delivery"
    INFO = "info"


class CodeState(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    USED = "used"


class LockboxError(Exception):
    """Base class for errors reported by the lockbox core."""


class GuardViolation(LockboxError):
    """A command was rejected because one of its preconditions does not hold."""

    def __init__(self, device_id: str, reason: str) -> None:
        super().__init__(reason)
        self.device_id = device_id
        self.reason = reason


class NotFound(LockboxError, KeyError):
    """A command referenced a device or code that does not exist."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} {identifier} not found")
        self.kind = kind
        self.identifier = identifier

    def __str__(self) -> str:
        return f"{self.kind} {self.identifier} not found"


@dataclass
class DeviceStatus:
    locked: bool = True
    door_open: bool = False
    battery_pct: float = 100.0
    temp_c: Optional[float] = None

    @property
    def cooling_active(self) -> bool:
        return self.temp_c is not None


@dataclass
class Device:
    id: str
    name: str
    variant: DeviceVariant
    online: bool = True
    status: DeviceStatus = field(default_factory=DeviceStatus)
    last_seen_at: int = 0
    alerts: Set[AlertKind] = field(default_factory=set)

    @property
    def supports_cooling(self) -> bool:
        return self.variant is DeviceVariant.COOLING


@dataclass
class AccessCode:
    id: str
    device_id: str
    code: str
    expires_at: int
    created_by: str
    note: str = ""
    used_at: Optional[int] = None
    expired: bool = False

    @property
    def state(self) -> CodeState:
        if self.used_at is not None:
            return CodeState.USED
        if self.expired:
            return CodeState.EXPIRED
        return CodeState.ACTIVE

    @property
    def resolved(self) -> bool:
        return self.state is not CodeState.ACTIVE


@dataclass(frozen=True)
class AuditEntry:
    id: str
    kind: AuditKind
    text: str
    timestamp: int


__all__ = [
    "AccessCode",
    "AlertKind",
    "AuditEntry",
    "AuditKind",
    "CodeState",
    "Device",
    "DeviceStatus",
    "DeviceVariant",
    "GuardViolation",
    "LockboxError",
    "NotFound",
]
