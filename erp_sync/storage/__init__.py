"""
erp_sync.storage - CRM record store and identity mapping persistence.
"""

from erp_sync.storage.db import (
    PersistenceError,
    RecordNotFoundError,
    StorageError,
    SyncDatabase,
)
from erp_sync.storage.record import PendingMapping, Record

__all__ = [
    "PendingMapping",
    "PersistenceError",
    "Record",
    "RecordNotFoundError",
    "StorageError",
    "SyncDatabase",
]
