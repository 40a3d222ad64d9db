"""
Storage Services Package

Provides the abstract key-value interface, the versioned codec, and
concrete backends: in-memory, local JSON files and Google Sheets.
"""

from paisegone.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    CorruptBlobError,
    KeyValueStorageInterface,
    StorageError,
)
from paisegone.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryKeyValueStorage,
)
from paisegone.services.storage.file import JsonFileKeyValueStorage
from paisegone.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsKeyValueStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueStorageInterface",
    # Exceptions
    "ConnectionError",
    "CorruptBlobError",
    "StorageError",
    # Local implementations
    "InMemoryAuditStorage",
    "InMemoryKeyValueStorage",
    "JsonFileKeyValueStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsKeyValueStorage",
]
