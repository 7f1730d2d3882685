"""Lockbox core: device state machine, access-code ledger and audit log."""

from boxbuddy.lockbox.audit import AuditLog
from boxbuddy.lockbox.clock import ManualClock, SystemClock
from boxbuddy.lockbox.controller import LockboxController
from boxbuddy.lockbox.ledger import AccessCodeLedger
from boxbuddy.lockbox.registry import DeviceRegistry
from boxbuddy.lockbox.state_machine import DeviceEvent, DeviceEventType, DeviceStateMachine
from boxbuddy.lockbox.types import GuardViolation, LockboxError, NotFound

__all__ = [
    "AccessCodeLedger",
    "AuditLog",
    "DeviceEvent",
    "DeviceEventType",
    "DeviceRegistry",
    "DeviceStateMachine",
    "GuardViolation",
    "LockboxController",
    "LockboxError",
    "ManualClock",
    "NotFound",
    "SystemClock",
]
