"""Offline support for HawkerHub clients.

``OfflineService`` lets a device keep creating and editing products and
orders without connectivity. Mutations made offline are applied to a local
cache straight away and recorded in a durable queue. When the device comes
back online the queue is replayed against the backend one operation at a
time, in the order the operations were made.

Every queued operation carries a client-generated key. The backend uses it
to make replays idempotent, and the service uses it to swap the temporary
cached entity for the one the server returned.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from collections.abc import Callable
from typing import Any

from hawkerhub.core.constants import (
    CACHE_TTL_MINUTES,
    CACHED_DATA_KEY,
    ORDERS_COLLECTION,
    PENDING_OPERATIONS_KEY,
    PRODUCTS_COLLECTION,
    ROLE_VENDOR,
)
from hawkerhub.utils import to_json_safe

from .backend import NetworkError, RemoteBackend
from .models import (
    OperationStatus,
    OperationType,
    QueuedOperation,
    SyncEvent,
    SyncEventType,
    SyncReport,
)
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

SyncCallback = Callable[[SyncEvent], None]
Clock = Callable[[], datetime.datetime]

CACHE_SECTIONS = ("products", "orders", "groupOrders", "userProfiles")


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _empty_cache() -> dict[str, Any]:
    cache: dict[str, Any] = {section: {} for section in CACHE_SECTIONS}
    cache["lastSync"] = None
    return cache


class OfflineService:
    """Offline queue and cache for one client device."""

    def __init__(
        self,
        backend: RemoteBackend,
        storage: KeyValueStorage,
        clock: Clock | None = None,
        online: bool = True,
        cache_ttl: datetime.timedelta = datetime.timedelta(minutes=CACHE_TTL_MINUTES),
        key_factory: Callable[[], str] | None = None,
    ) -> None:
        self.backend = backend
        self.storage = storage
        self.cache_ttl = cache_ttl
        self._clock = clock or _utcnow
        self._new_key = key_factory or (lambda: uuid.uuid4().hex)
        self._online = online
        self._syncing = False
        self._callbacks: list[SyncCallback] = []
        self.pending_operations: list[QueuedOperation] = []
        self.cached_data: dict[str, Any] = _empty_cache()

    # Lifecycle

    def start(self) -> None:
        """Reload persisted state; drain right away if already online."""
        self.pending_operations = self._load_pending_operations()
        self.cached_data = self._load_cached_data()
        logger.info(
            f"OfflineService started with {len(self.pending_operations)} pending operations"
        )
        if self._online:
            self.sync_pending_operations()

    def shutdown(self) -> None:
        """Persist state and drop subscribers."""
        self._save_pending_operations()
        self._save_cached_data()
        self._callbacks.clear()

    # Network status

    def handle_online(self) -> SyncReport | None:
        logger.info("OfflineService: Network is online")
        self._online = True
        return self.sync_pending_operations()

    def handle_offline(self) -> None:
        logger.info("OfflineService: Network is offline")
        self._online = False

    @property
    def is_online(self) -> bool:
        return self._online

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    @property
    def pending_count(self) -> int:
        return len(self.pending_operations)

    @property
    def last_sync_time(self) -> str | None:
        return self.cached_data.get("lastSync")

    # Persistence

    def _load_pending_operations(self) -> list[QueuedOperation]:
        try:
            records = self.storage.get_item(PENDING_OPERATIONS_KEY) or []
            return [QueuedOperation.from_dict(record) for record in records]
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Error loading pending operations: {e}")
            return []

    def _save_pending_operations(self) -> None:
        self.storage.set_item(
            PENDING_OPERATIONS_KEY, [op.to_dict() for op in self.pending_operations]
        )

    def _load_cached_data(self) -> dict[str, Any]:
        cached = self.storage.get_item(CACHED_DATA_KEY)
        if not isinstance(cached, dict):
            return _empty_cache()
        cache = _empty_cache()
        cache.update(cached)
        return cache

    def _save_cached_data(self) -> None:
        self.storage.set_item(CACHED_DATA_KEY, self.cached_data)

    def _enqueue(self, operation: QueuedOperation) -> QueuedOperation:
        self.pending_operations.append(operation)
        self._save_pending_operations()
        logger.info(f"Queued {operation.type.value} {operation.id}")
        return operation

    # Cache

    def is_recent_cache(self, timestamp: str) -> bool:
        """Return True while a cache entry is within the freshness window."""
        cached_at = datetime.datetime.fromisoformat(timestamp)
        return self._clock() - cached_at <= self.cache_ttl

    def _put(self, section: str, key: str, data: Any) -> None:
        self.cached_data[section][key] = {
            "data": to_json_safe(data),
            "timestamp": self._clock().isoformat(),
        }
        self._save_cached_data()

    def _get(self, section: str, key: str) -> Any | None:
        cached = self.cached_data[section].get(key)
        if cached and self.is_recent_cache(cached["timestamp"]):
            return cached["data"]
        return None

    def cache_products(
        self, products: list[dict[str, Any]], supplier_id: str | None = None
    ) -> None:
        self._put("products", supplier_id or "all", products)

    def get_cached_products(self, supplier_id: str | None = None) -> list[dict[str, Any]] | None:
        return self._get("products", supplier_id or "all")

    def cache_orders(
        self, orders: list[dict[str, Any]], user_id: str, user_role: str
    ) -> None:
        self._put("orders", f"{user_role}_{user_id}", orders)

    def get_cached_orders(self, user_id: str, user_role: str) -> list[dict[str, Any]] | None:
        return self._get("orders", f"{user_role}_{user_id}")

    def cache_group_orders(
        self, group_orders: list[dict[str, Any]], user_id: str | None = None
    ) -> None:
        self._put("groupOrders", f"user_{user_id}" if user_id else "all", group_orders)

    def get_cached_group_orders(self, user_id: str | None = None) -> list[dict[str, Any]] | None:
        return self._get("groupOrders", f"user_{user_id}" if user_id else "all")

    def cache_user_profile(self, user_id: str, profile: dict[str, Any]) -> None:
        self._put("userProfiles", user_id, profile)

    def get_cached_user_profile(self, user_id: str) -> dict[str, Any] | None:
        return self._get("userProfiles", user_id)

    def _read_through(
        self,
        get_cached: Callable[[], Any | None],
        put_cached: Callable[[Any], None],
        loader: Callable[[], Any],
    ) -> Any:
        cached = get_cached()
        if cached is not None and not self._online:
            return cached
        try:
            fresh = loader()
        except Exception as e:
            if cached is not None:
                logger.warning(f"Live fetch failed, serving cached data: {e}")
                return cached
            raise
        put_cached(fresh)
        return fresh

    def fetch_products(
        self,
        loader: Callable[[], list[dict[str, Any]]],
        supplier_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Load products live, falling back to a fresh cache entry."""
        return self._read_through(
            lambda: self.get_cached_products(supplier_id),
            lambda products: self.cache_products(products, supplier_id),
            loader,
        )

    def fetch_orders(
        self,
        loader: Callable[[], list[dict[str, Any]]],
        user_id: str,
        user_role: str,
    ) -> list[dict[str, Any]]:
        return self._read_through(
            lambda: self.get_cached_orders(user_id, user_role),
            lambda orders: self.cache_orders(orders, user_id, user_role),
            loader,
        )

    def fetch_group_orders(
        self,
        loader: Callable[[], list[dict[str, Any]]],
        user_id: str | None = None,
    ) -> list[dict[str, Any]]:
        return self._read_through(
            lambda: self.get_cached_group_orders(user_id),
            lambda group_orders: self.cache_group_orders(group_orders, user_id),
            loader,
        )

    def _each_cached_list(self, section: str):
        for entry in self.cached_data[section].values():
            if entry and isinstance(entry.get("data"), list):
                yield entry["data"]

    def _update_cached_entity(
        self, section: str, entity_id: str, updates: dict[str, Any]
    ) -> None:
        for items in self._each_cached_list(section):
            for index, item in enumerate(items):
                if item.get("id") == entity_id:
                    items[index] = {**item, **to_json_safe(updates)}
        self._save_cached_data()

    def _remove_cached_entity(self, section: str, entity_id: str) -> None:
        for items in self._each_cached_list(section):
            items[:] = [item for item in items if item.get("id") != entity_id]
        self._save_cached_data()

    @staticmethod
    def _temp_id(section: str, client_key: str) -> str:
        prefix = "temp_order_" if section == "orders" else "temp_"
        return f"{prefix}{client_key}"

    def _replace_temp_entity(
        self, section: str, client_key: str, entity: dict[str, Any]
    ) -> None:
        """Swap the cached placeholder made for ``client_key`` for the real entity."""
        for items in self._each_cached_list(section):
            for index, item in enumerate(items):
                if item.get("clientKey") == client_key:
                    items[index] = {
                        **to_json_safe(entity),
                        "clientKey": client_key,
                        "isOffline": False,
                    }
        self._save_cached_data()

    def _rewrite_queued_ids(self, temp_id: str, real_id: str) -> None:
        """Point later queued operations at the id the server assigned."""
        for operation in self.pending_operations:
            if operation.doc_id == temp_id:
                operation.doc_id = real_id

    # Mutations

    def _try_online(self, call: Callable[[], Any]) -> tuple[bool, Any]:
        if not self._online:
            return False, None
        try:
            return True, call()
        except NetworkError as e:
            logger.warning(f"Online operation failed, falling back to offline: {e}")
            return False, None

    def _new_operation(
        self,
        operation_type: OperationType,
        collection: str,
        key: str,
        doc_id: str | None = None,
        data: dict[str, Any] | None = None,
        supplier_id: str | None = None,
    ) -> QueuedOperation:
        return QueuedOperation(
            id=key,
            type=operation_type,
            collection=collection,
            timestamp=self._clock().isoformat(),
            doc_id=doc_id,
            data=to_json_safe(data or {}),
            supplier_id=supplier_id,
        )

    def create_product(
        self, product_data: dict[str, Any], supplier_id: str
    ) -> dict[str, Any]:
        """Create a product, queueing it with a temporary id when offline."""
        key = self._new_key()
        done, result = self._try_online(
            lambda: self.backend.create_product(product_data, supplier_id, key)
        )
        if done:
            return result

        temp_product = {
            **to_json_safe(product_data),
            "id": self._temp_id("products", key),
            "supplierId": supplier_id,
            "clientKey": key,
            "isOffline": True,
        }
        cached = self.get_cached_products(supplier_id) or []
        cached.append(temp_product)
        self.cache_products(cached, supplier_id)

        self._enqueue(
            self._new_operation(
                OperationType.CREATE_PRODUCT,
                PRODUCTS_COLLECTION,
                key,
                data={**product_data, "supplierId": supplier_id},
                supplier_id=supplier_id,
            )
        )
        return temp_product

    def update_product(self, product_id: str, updates: dict[str, Any]) -> Any:
        key = self._new_key()
        done, result = self._try_online(
            lambda: self.backend.update_product(product_id, updates)
        )
        if done:
            return result

        self._update_cached_entity("products", product_id, updates)
        self._enqueue(
            self._new_operation(
                OperationType.UPDATE_PRODUCT,
                PRODUCTS_COLLECTION,
                key,
                doc_id=product_id,
                data=updates,
            )
        )
        return {"success": True, "isOffline": True}

    def delete_product(self, product_id: str) -> Any:
        key = self._new_key()
        done, result = self._try_online(lambda: self.backend.delete_product(product_id))
        if done:
            return result

        self._remove_cached_entity("products", product_id)
        self._enqueue(
            self._new_operation(
                OperationType.DELETE_PRODUCT, PRODUCTS_COLLECTION, key, doc_id=product_id
            )
        )
        return {"success": True, "isOffline": True}

    def create_order(self, order_data: dict[str, Any]) -> dict[str, Any]:
        """Place an order, queueing it with a temporary id when offline."""
        key = self._new_key()
        done, result = self._try_online(
            lambda: self.backend.create_order(order_data, key)
        )
        if done:
            return result

        vendor_id = order_data.get("vendorId", "")
        temp_order = {
            **to_json_safe(order_data),
            "id": self._temp_id("orders", key),
            "status": "pending",
            "createdAt": self._clock().isoformat(),
            "clientKey": key,
            "isOffline": True,
        }
        cached = self.get_cached_orders(vendor_id, ROLE_VENDOR) or []
        cached.insert(0, temp_order)
        self.cache_orders(cached, vendor_id, ROLE_VENDOR)

        self._enqueue(
            self._new_operation(
                OperationType.CREATE_ORDER, ORDERS_COLLECTION, key, data=order_data
            )
        )
        return temp_order

    def update_order_status(self, order_id: str, status: str) -> Any:
        key = self._new_key()
        done, result = self._try_online(
            lambda: self.backend.update_order_status(order_id, status)
        )
        if done:
            return result

        self._update_cached_entity("orders", order_id, {"status": status})
        self._enqueue(
            self._new_operation(
                OperationType.UPDATE_ORDER,
                ORDERS_COLLECTION,
                key,
                doc_id=order_id,
                data={"status": status},
            )
        )
        return {"success": True, "isOffline": True}

    # Sync

    def _execute(self, operation: QueuedOperation) -> Any:
        if operation.type is OperationType.CREATE_PRODUCT:
            result = self.backend.create_product(
                operation.data, operation.supplier_id or "", operation.id
            )
            self._reconcile("products", operation.id, result)
            return result
        if operation.type is OperationType.UPDATE_PRODUCT:
            return self.backend.update_product(operation.doc_id, operation.data)
        if operation.type is OperationType.DELETE_PRODUCT:
            return self.backend.delete_product(operation.doc_id)
        if operation.type is OperationType.CREATE_ORDER:
            result = self.backend.create_order(operation.data, operation.id)
            self._reconcile("orders", operation.id, result)
            return result
        if operation.type is OperationType.UPDATE_ORDER:
            return self.backend.update_order_status(
                operation.doc_id, operation.data["status"]
            )
        raise ValueError(f"Unknown operation type: {operation.type}")

    def _reconcile(self, section: str, client_key: str, entity: Any) -> None:
        if not isinstance(entity, dict):
            return
        self._replace_temp_entity(section, client_key, entity)
        # Queued ids are rewritten even when the placeholder left the cache.
        if entity.get("id"):
            self._rewrite_queued_ids(self._temp_id(section, client_key), entity["id"])

    def sync_pending_operations(self) -> SyncReport | None:
        """Replay queued operations in order, one at a time.

        An operation that fails stays queued as ``failed`` and the drain moves
        on to the next one. Returns None when there was nothing to do.
        """
        if self._syncing or not self._online or not self.pending_operations:
            return None

        self._syncing = True
        self._notify(SyncEvent(SyncEventType.SYNC_START, "Syncing data..."))
        report = SyncReport()

        try:
            for operation in list(self.pending_operations):
                operation.status = OperationStatus.SYNCING
                operation.attempts += 1
                try:
                    self._execute(operation)
                except Exception as e:
                    logger.error(f"Failed to sync operation {operation.id}: {e}")
                    operation.status = OperationStatus.FAILED
                    operation.last_error = str(e)
                    report.failed.append(operation.id)
                else:
                    operation.status = OperationStatus.COMMITTED
                    report.committed.append(operation.id)

            self.pending_operations = [
                op
                for op in self.pending_operations
                if op.status is not OperationStatus.COMMITTED
            ]
            self._save_pending_operations()

            self.cached_data["lastSync"] = self._clock().isoformat()
            self._save_cached_data()

            message = (
                f"Synced {len(report.committed)} pending changes"
                if report.committed
                else "All data is up to date"
            )
            self._notify(
                SyncEvent(
                    SyncEventType.SYNC_COMPLETE,
                    message,
                    success=report.success,
                    pending_count=len(self.pending_operations),
                )
            )
        except Exception as e:
            logger.error(f"Sync process failed: {e}")
            for operation in self.pending_operations:
                if operation.status is OperationStatus.SYNCING:
                    operation.status = OperationStatus.PENDING
            self._notify(
                SyncEvent(SyncEventType.SYNC_ERROR, "Failed to sync pending changes")
            )
        finally:
            self._syncing = False

        return report

    def force_sync(self) -> SyncReport | None:
        if not self._online:
            return None
        return self.sync_pending_operations()

    # Subscriptions

    def on_sync_status_change(self, callback: SyncCallback) -> None:
        self._callbacks.append(callback)

    def off_sync_status_change(self, callback: SyncCallback) -> None:
        self._callbacks = [cb for cb in self._callbacks if cb is not callback]

    def _notify(self, event: SyncEvent) -> None:
        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Sync callback error: {e}")

    # Reset

    def clear_cache(self) -> None:
        self.cached_data = _empty_cache()
        self._save_cached_data()

    def clear_pending_operations(self) -> None:
        self.pending_operations = []
        self._save_pending_operations()
