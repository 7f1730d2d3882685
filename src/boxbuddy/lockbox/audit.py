"""Append-only audit log shared by the state machine and code ledger."""

from __future__ import annotations

import logging
import threading
from typing import Iterable, List, Optional
from uuid import uuid4

from boxbuddy.lockbox.types import AuditEntry, AuditKind

LOGGER = logging.getLogger(__name__)


class AuditLog:
    """Records state-changing actions in append order.

    Entries are immutable once appended; there is no delete or edit path.
    """

    def __init__(self, entries: Optional[Iterable[AuditEntry]] = None) -> None:
        self._lock = threading.Lock()
        self._entries: List[AuditEntry] = list(entries or [])

    def append(self, kind: AuditKind, text: str, now: int) -> AuditEntry:
        entry = AuditEntry(id=uuid4().hex, kind=AuditKind(kind), text=text, timestamp=int(now))
        with self._lock:
            self._entries.append(entry)
        LOGGER.debug("Audit[%s] %s", entry.kind.value, text)
        return entry

    def entries(self) -> List[AuditEntry]:
        """Newest-first view for display."""
        with self._lock:
            return list(reversed(self._entries))

    def in_order(self) -> List[AuditEntry]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["AuditLog"]
