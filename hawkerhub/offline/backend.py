"""Remote backends the offline service replays queued operations against."""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any

from google.api_core import exceptions as google_exceptions

from hawkerhub.catalog.services import ProductService
from hawkerhub.orders.services import OrderService

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

    from hawkerhub.notifications.services import NotificationService


class NetworkError(Exception):
    """The backend could not be reached; the operation may be retried later."""

    pass


class RemoteBackend:
    """Operations the offline service needs from the source of truth.

    ``key`` arguments carry the client-generated idempotency key; a backend
    must treat a repeated create with the same key as the same create.
    """

    def create_product(
        self, data: dict[str, Any], supplier_id: str, key: str
    ) -> dict[str, Any]:
        raise NotImplementedError

    def update_product(self, product_id: str, updates: dict[str, Any]) -> Any:
        raise NotImplementedError

    def delete_product(self, product_id: str) -> Any:
        raise NotImplementedError

    def create_order(self, data: dict[str, Any], key: str) -> dict[str, Any]:
        raise NotImplementedError

    def update_order_status(self, order_id: str, status: str) -> Any:
        raise NotImplementedError


TRANSIENT_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
    google_exceptions.RetryError,
    ConnectionError,
    TimeoutError,
)


def _translate_transient(func):
    """Re-raise connectivity failures from the Firestore client as NetworkError."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except TRANSIENT_ERRORS as e:
            raise NetworkError(str(e)) from e

    return wrapper


class FirestoreBackend(RemoteBackend):
    """Backend that talks to Firestore through the catalog and order services.

    Status changes replayed through ``notifier`` reach the vendor the same way
    as changes made over the REST API.
    """

    def __init__(
        self, db: Client, notifier: NotificationService | None = None
    ) -> None:
        self.db = db
        self.notifier = notifier

    @_translate_transient
    def create_product(
        self, data: dict[str, Any], supplier_id: str, key: str
    ) -> dict[str, Any]:
        return ProductService.create_product(self.db, data, supplier_id, client_key=key)

    @_translate_transient
    def update_product(self, product_id: str, updates: dict[str, Any]) -> Any:
        return ProductService.update_product(self.db, product_id, updates)

    @_translate_transient
    def delete_product(self, product_id: str) -> Any:
        return ProductService.delete_product(self.db, product_id)

    @_translate_transient
    def create_order(self, data: dict[str, Any], key: str) -> dict[str, Any]:
        order_ids = OrderService.create_order(self.db, data, client_key=key)
        return {
            "id": order_ids[0] if order_ids else None,
            "orderIds": order_ids,
            **data,
            "status": "pending",
        }

    @_translate_transient
    def update_order_status(self, order_id: str, status: str) -> Any:
        return OrderService.update_order_status(
            self.db, order_id, status, notifier=self.notifier
        )
