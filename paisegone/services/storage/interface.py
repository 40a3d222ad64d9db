"""
Abstract Storage Interface

DESIGN DECISION: The ledger persists to a plain key-value medium.
Each namespace (members, expenses, settings) is one self-describing
text blob under its own key. This allows us to:
1. Swap a local JSON directory for Google Sheets without touching the store
2. Use in-memory storage for testing
3. Detect changes made by another process by re-reading a key

The interface is intentionally tiny - the store owns all structure,
the codec owns the text format, the backend just keeps strings.
"""

from abc import ABC, abstractmethod
from typing import Optional

from paisegone.models.audit import AuditEvent


class KeyValueStorageInterface(ABC):
    """
    Abstract interface for the ledger's key-value medium.

    Any backend (local files, Google Sheets, etc.) must implement these methods.
    """

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """
        Read the blob stored under a key.

        Returns:
            The stored text, or None if the key is absent

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        """
        Store a blob under a key, replacing any previous value.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove a key.

        Returns:
            True if the key existed
        """
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """List the keys currently stored."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class CorruptBlobError(StorageError):
    """A stored blob could not be decoded."""

    def __init__(self, namespace: str, reason: str):
        super().__init__(f"Corrupt {namespace} blob: {reason}")
        self.namespace = namespace
        self.reason = reason


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
