"""Data models for the offline operation queue."""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from typing import Any


class OperationType(str, enum.Enum):
    """Mutations a device can queue while disconnected."""

    CREATE_PRODUCT = "CREATE_PRODUCT"
    UPDATE_PRODUCT = "UPDATE_PRODUCT"
    DELETE_PRODUCT = "DELETE_PRODUCT"
    CREATE_ORDER = "CREATE_ORDER"
    UPDATE_ORDER = "UPDATE_ORDER"


class OperationStatus(str, enum.Enum):
    """Lifecycle of a queued operation.

    pending -> syncing -> committed, or pending -> syncing -> failed. Failed
    operations stay queued and go back through syncing on the next pass.
    """

    PENDING = "pending"
    SYNCING = "syncing"
    COMMITTED = "committed"
    FAILED = "failed"


class SyncEventType(str, enum.Enum):
    SYNC_START = "sync_start"
    SYNC_COMPLETE = "sync_complete"
    SYNC_ERROR = "sync_error"


@dataclass
class QueuedOperation:
    """A durable record of a mutation waiting for connectivity.

    ``id`` is generated on the device and doubles as the idempotency key sent
    to the backend.
    """

    id: str
    type: OperationType
    collection: str
    timestamp: str
    doc_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    supplier_id: str | None = None
    status: OperationStatus = OperationStatus.PENDING
    attempts: int = 0
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        record = asdict(self)
        record["type"] = self.type.value
        record["status"] = self.status.value
        return record

    @classmethod
    def from_dict(cls, record: dict[str, Any]) -> QueuedOperation:
        status = OperationStatus(record.get("status", OperationStatus.PENDING.value))
        if status is OperationStatus.SYNCING:
            # A drain was interrupted mid-operation; retry it.
            status = OperationStatus.PENDING
        return cls(
            id=record["id"],
            type=OperationType(record["type"]),
            collection=record["collection"],
            timestamp=record["timestamp"],
            doc_id=record.get("doc_id"),
            data=record.get("data") or {},
            supplier_id=record.get("supplier_id"),
            status=status,
            attempts=int(record.get("attempts", 0)),
            last_error=record.get("last_error"),
        )


@dataclass
class SyncEvent:
    """Status update delivered to sync subscribers."""

    type: SyncEventType
    message: str
    success: bool | None = None
    pending_count: int | None = None


@dataclass
class SyncReport:
    """Outcome of one drain pass."""

    committed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed
