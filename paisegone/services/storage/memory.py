"""
In-memory storage backends.

Used by tests and by the `memory` backend setting. Several LedgerStore
instances can share one InMemoryKeyValueStorage to simulate two clients
editing the same ledger.
"""

from typing import Optional

from paisegone.models.audit import AuditEvent
from paisegone.services.storage.interface import (
    AuditStorageInterface,
    KeyValueStorageInterface,
)


class InMemoryKeyValueStorage(KeyValueStorageInterface):
    """Dictionary-backed key-value storage."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        return sorted(self._data)


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed audit log."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
