"""Offline mutation queue and read cache for HawkerHub clients."""

from .backend import FirestoreBackend, NetworkError, RemoteBackend
from .models import (
    OperationStatus,
    OperationType,
    QueuedOperation,
    SyncEvent,
    SyncEventType,
    SyncReport,
)
from .service import OfflineService
from .storage import JsonFileStorage, KeyValueStorage, MemoryStorage

__all__ = [
    "FirestoreBackend",
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "NetworkError",
    "OfflineService",
    "OperationStatus",
    "OperationType",
    "QueuedOperation",
    "RemoteBackend",
    "SyncEvent",
    "SyncEventType",
    "SyncReport",
]
