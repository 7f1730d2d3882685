"""Access code ledger: issuance, redemption, expiry sweep and partitioning."""

from __future__ import annotations

import logging
import secrets
import string
import threading
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from boxbuddy.config.loader import Config
from boxbuddy.lockbox.audit import AuditLog
from boxbuddy.lockbox.clock import Clock, TaskHandle
from boxbuddy.lockbox.registry import DeviceRegistry
from boxbuddy.lockbox.state_machine import DeviceStateMachine, Notifier
from boxbuddy.lockbox.types import AccessCode, AuditKind, CodeState, NotFound

LOGGER = logging.getLogger(__name__)

MS_PER_HOUR = 3600 * 1000
_CODE_ALPHABET = string.digits + string.ascii_uppercase
_CODE_GROUPS = 4
_CODE_GROUP_LEN = 2


def generate_code() -> str:
    """Return a token like ``A1-2B-99-3C`` (36**8 combinations)."""

    return "-".join(
        "".join(secrets.choice(_CODE_ALPHABET) for _ in range(_CODE_GROUP_LEN))
        for _ in range(_CODE_GROUPS)
    )


class AccessCodeLedger:
    """Owns every access code, newest first, and the pending re-lock tasks."""

    def __init__(
        self,
        registry: DeviceRegistry,
        state_machine: DeviceStateMachine,
        audit: AuditLog,
        clock: Clock,
        config: Config,
        *,
        notifier: Optional[Notifier] = None,
        codes: Optional[Iterable[AccessCode]] = None,
    ) -> None:
        self._registry = registry
        self._state_machine = state_machine
        self._audit = audit
        self._clock = clock
        self._relock_delay_ms = config.codes.relock_delay_ms
        self._notifier = notifier
        self._lock = threading.RLock()
        self._codes: List[AccessCode] = list(codes or [])
        self._pending: Dict[str, Tuple[str, TaskHandle]] = {}

    def issue(self, device_id: str, ttl_hours: float, note: str, issuer: str) -> AccessCode:
        if ttl_hours <= 0:
            raise ValueError("ttl_hours must be positive")
        device = self._registry.get(device_id)
        now = self._clock.now()
        code = AccessCode(
            id=uuid4().hex,
            device_id=device.id,
            code=generate_code(),
            expires_at=now + int(ttl_hours * MS_PER_HOUR),
            note=note or "",
            created_by=issuer,
        )
        with self._lock:
            self._codes.insert(0, code)
        self._audit.append(AuditKind.CODE, f"Access code created ({code.code}) • Expires in {ttl_hours:g}h", now)
        LOGGER.info("Issued code %s for %s (expires_at=%s)", code.code, device.name, code.expires_at)
        self._notify("Delivery code created", code.code)
        return code

    def redeem(self, code_id: str) -> Optional[AccessCode]:
        """Mark a code used, unlock its box and schedule the re-lock.

        Returns ``None`` without side effects when the code is unknown,
        already resolved, or its device has been removed.
        """

        code = self.find(code_id)
        if code is None:
            LOGGER.info("Ignoring redeem for unknown code %s", code_id)
            return None
        device_lock = self._registry.lock_if_present(code.device_id)
        if device_lock is None:
            LOGGER.info("Ignoring redeem for code %s: device %s is gone", code.code, code.device_id)
            return None
        with device_lock:
            device = self._registry.find(code.device_id)
            if device is None:
                LOGGER.info("Ignoring redeem for code %s: device %s is gone", code.code, code.device_id)
                return None
            with self._lock:
                now = self._clock.now()
                if code.resolved or now > code.expires_at:
                    LOGGER.info("Ignoring redeem for %s code %s", code.state.value, code.code)
                    return None
                code.used_at = now
            self._state_machine.force_unlocked(device.id)
            # Entry must exist before the re-lock task can pop it.
            with self._lock:
                handle = self._clock.call_later(self._relock_delay_ms, lambda: self._complete_delivery(code.id))
                self._pending[code.id] = (device.id, handle)
        LOGGER.info("Code %s redeemed; %s unlocked", code.code, device.name)
        return code

    def sweep(self, now: Optional[int] = None) -> List[AccessCode]:
        """Mark active codes past their expiry as expired."""

        current = self._clock.now() if now is None else int(now)
        newly_expired: List[AccessCode] = []
        with self._lock:
            for code in self._codes:
                if code.used_at is None and not code.expired and current > code.expires_at:
                    code.expired = True
                    newly_expired.append(code)
        if newly_expired:
            LOGGER.debug("Sweep at %s expired %d code(s)", current, len(newly_expired))
        return newly_expired

    def partition(self, device_id: str) -> Tuple[List[AccessCode], List[AccessCode]]:
        active: List[AccessCode] = []
        completed: List[AccessCode] = []
        with self._lock:
            for code in self._codes:
                if code.device_id != device_id:
                    continue
                if code.state is CodeState.ACTIVE:
                    active.append(code)
                else:
                    completed.append(code)
        return active, completed

    def find(self, code_id: str) -> Optional[AccessCode]:
        with self._lock:
            for code in self._codes:
                if code.id == code_id:
                    return code
        return None

    def get(self, code_id: str) -> AccessCode:
        code = self.find(code_id)
        if code is None:
            raise NotFound("code", code_id)
        return code

    def codes(self) -> List[AccessCode]:
        with self._lock:
            return list(self._codes)

    def pending_relocks(self) -> List[str]:
        with self._lock:
            return list(self._pending.keys())

    def cancel_pending(self, device_id: Optional[str] = None) -> int:
        """Cancel deferred re-locks for one device, or all of them."""

        with self._lock:
            targets = [
                code_id
                for code_id, (owner, _) in self._pending.items()
                if device_id is None or owner == device_id
            ]
            for code_id in targets:
                _, handle = self._pending.pop(code_id)
                handle.cancel()
        return len(targets)

    def drop_device(self, device_id: str) -> int:
        self.cancel_pending(device_id)
        with self._lock:
            before = len(self._codes)
            self._codes = [code for code in self._codes if code.device_id != device_id]
            return before - len(self._codes)

    def _complete_delivery(self, code_id: str) -> None:
        with self._lock:
            pending = self._pending.pop(code_id, None)
        code = self.find(code_id)
        if pending is None or code is None:
            return
        device = self._state_machine.force_locked(pending[0])
        if device is None:
            LOGGER.debug("Re-lock for code %s skipped; device removed", code.code)
            return
        self._audit.append(AuditKind.DELIVERY, f"Delivery completed with code {code.code} • Photo saved", self._clock.now())
        LOGGER.info("Delivery completed on %s with code %s", device.name, code.code)
        self._notify("Delivery complete", device.name)

    def _notify(self, title: str, body: str) -> None:
        if self._notifier is None:
            return
        self._notifier.notify(title, body)


__all__ = ["AccessCodeLedger", "MS_PER_HOUR", "generate_code"]
