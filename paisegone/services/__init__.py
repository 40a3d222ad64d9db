"""Services package."""

from paisegone.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    CorruptBlobError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsKeyValueStorage,
    InMemoryAuditStorage,
    InMemoryKeyValueStorage,
    JsonFileKeyValueStorage,
    KeyValueStorageInterface,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "CorruptBlobError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsKeyValueStorage",
    "InMemoryAuditStorage",
    "InMemoryKeyValueStorage",
    "JsonFileKeyValueStorage",
    "KeyValueStorageInterface",
    "StorageError",
]
