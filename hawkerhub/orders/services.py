"""Service layer for vendor orders placed with suppliers."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from hawkerhub.core.constants import (
    ORDER_CANCELLED,
    ORDER_PENDING,
    ORDER_STATUSES,
    ORDERS_COLLECTION,
    PRODUCTS_COLLECTION,
    USERS_COLLECTION,
)
from hawkerhub.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

from .models import Order

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction

    from hawkerhub.notifications.services import NotificationService

logger = logging.getLogger(__name__)


def _validate_order_items(items: Any) -> list[dict[str, Any]]:
    if not isinstance(items, list) or not items:
        raise ValidationError("An order needs at least one item.")
    cleaned = []
    for item in items:
        try:
            quantity = int(item["quantity"])
            price = float(item["price"])
            product_id = str(item["productId"])
            supplier_id = str(item["supplierId"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(
                "Each item needs productId, supplierId, quantity and price."
            ) from e
        if quantity <= 0:
            raise ValidationError("Item quantity must be positive.")
        cleaned.append(
            {
                **item,
                "productId": product_id,
                "supplierId": supplier_id,
                "quantity": quantity,
                "price": price,
            }
        )
    return cleaned


class OrderService:
    """Service class for order operations."""

    @staticmethod
    def create_order(
        db: Client, order_data: dict[str, Any], client_key: str | None = None
    ) -> list[str]:
        """Place an order, splitting it per supplier and reserving stock.

        Stock checks, order writes and stock decrements happen in one
        transaction. With ``client_key`` the order ids are derived from the key
        so a replayed request returns the ids created the first time.
        """
        vendor_id = order_data.get("vendorId")
        if not vendor_id:
            raise ValidationError("vendorId is required.")
        items = _validate_order_items(order_data.get("items"))

        supplier_groups: dict[str, list[dict[str, Any]]] = defaultdict(list)
        # Lines for the same product draw on one stock figure.
        quantities: dict[str, int] = defaultdict(int)
        names: dict[str, str] = {}
        for item in items:
            supplier_groups[item["supplierId"]].append(item)
            quantities[item["productId"]] += item["quantity"]
            names.setdefault(
                item["productId"], item.get("productName", item["productId"])
            )

        orders_ref = db.collection(ORDERS_COLLECTION)
        order_refs = {
            supplier_id: (
                orders_ref.document(f"{client_key}_{supplier_id}")
                if client_key
                else orders_ref.document()
            )
            for supplier_id in supplier_groups
        }

        if client_key:
            existing = [ref for ref in order_refs.values() if ref.get().exists]
            if existing:
                logger.info(f"Order for key {client_key} already placed.")
                return [ref.id for ref in existing]

        transaction = db.transaction()

        @firestore.transactional
        def create_in_transaction(transaction: Transaction) -> list[str]:
            stock_checks = []
            for product_id, ordered in quantities.items():
                product_ref = db.collection(PRODUCTS_COLLECTION).document(product_id)
                snapshot = product_ref.get(transaction=transaction)
                name = names[product_id]
                if not snapshot.exists:
                    raise NotFoundError(f"Product {name} not found")

                available = int((snapshot.to_dict() or {}).get("availableQuantity") or 0)
                if available < ordered:
                    raise ValidationError(
                        f"Insufficient stock for {name}. Available: {available}"
                    )
                stock_checks.append((product_ref, available, ordered))

            order_ids = []
            for supplier_id, supplier_items in supplier_groups.items():
                order_ref = order_refs[supplier_id]
                transaction.set(
                    order_ref,
                    {
                        "vendorId": vendor_id,
                        "supplierId": supplier_id,
                        "items": supplier_items,
                        "totalAmount": sum(
                            i["price"] * i["quantity"] for i in supplier_items
                        ),
                        "status": ORDER_PENDING,
                        "paymentStatus": ORDER_PENDING,
                        "createdAt": firestore.SERVER_TIMESTAMP,
                        "updatedAt": firestore.SERVER_TIMESTAMP,
                    },
                )
                order_ids.append(order_ref.id)

            for product_ref, current_stock, ordered in stock_checks:
                transaction.update(
                    product_ref,
                    {
                        "availableQuantity": current_stock - ordered,
                        "updatedAt": firestore.SERVER_TIMESTAMP,
                    },
                )
            return order_ids

        order_ids = create_in_transaction(transaction)
        logger.info(f"Vendor {vendor_id} placed orders {order_ids}")
        return order_ids

    @staticmethod
    def get_order(db: Client, order_id: str) -> Order:
        snapshot = db.collection(ORDERS_COLLECTION).document(order_id).get()
        if not snapshot.exists:
            raise NotFoundError("Order not found.")
        return {"id": snapshot.id, **(snapshot.to_dict() or {})}  # type: ignore[typeddict-item]

    @staticmethod
    def get_vendor_orders(db: Client, vendor_id: str) -> list[Order]:
        """Return a vendor's orders, newest first."""
        query = (
            db.collection(ORDERS_COLLECTION)
            .where(filter=firestore.FieldFilter("vendorId", "==", vendor_id))
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
        )
        return [{"id": doc.id, **(doc.to_dict() or {})} for doc in query.stream()]  # type: ignore[misc]

    @staticmethod
    def get_supplier_orders(db: Client, supplier_id: str) -> list[Order]:
        """Return a supplier's orders with the vendor's name and phone."""
        query = (
            db.collection(ORDERS_COLLECTION)
            .where(filter=firestore.FieldFilter("supplierId", "==", supplier_id))
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
        )
        orders: list[dict[str, Any]] = [
            {"id": doc.id, **(doc.to_dict() or {})} for doc in query.stream()
        ]

        vendor_ids = {order.get("vendorId") for order in orders if order.get("vendorId")}
        vendor_refs = [
            db.collection(USERS_COLLECTION).document(vid) for vid in vendor_ids
        ]
        vendors = {
            snap.id: snap.to_dict() or {}
            for snap in (db.get_all(vendor_refs) if vendor_refs else [])
            if snap.exists
        }
        for order in orders:
            vendor = vendors.get(order.get("vendorId", ""), {})
            order["vendorName"] = vendor.get("name", "Unknown Vendor")
            order["vendorPhone"] = vendor.get("phoneNumber", "")
        return orders  # type: ignore[return-value]

    @staticmethod
    def update_order_status(
        db: Client,
        order_id: str,
        status: str,
        notifier: NotificationService | None = None,
    ) -> bool:
        """Move an order to a new status and tell the vendor about it."""
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Unknown order status: {status}")

        order_ref = db.collection(ORDERS_COLLECTION).document(order_id)
        snapshot = order_ref.get()
        if not snapshot.exists:
            raise NotFoundError("Order not found.")
        order_data = snapshot.to_dict() or {}

        order_ref.update({"status": status, "updatedAt": firestore.SERVER_TIMESTAMP})

        if notifier is not None:
            notifier.create_order_notification(
                db,
                "order_status_changed",
                {
                    "orderId": order_id,
                    "status": status,
                    "recipientId": order_data.get("vendorId"),
                },
            )
        return True

    @staticmethod
    def cancel_order(db: Client, order_id: str, vendor_id: str) -> bool:
        """Cancel a pending order and put its stock back."""
        order_ref = db.collection(ORDERS_COLLECTION).document(order_id)
        transaction = db.transaction()

        @firestore.transactional
        def cancel_in_transaction(transaction: Transaction) -> bool:
            snapshot = order_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError("Order not found.")

            order_data = snapshot.to_dict() or {}
            if order_data.get("vendorId") != vendor_id:
                raise PermissionDeniedError("You can only cancel your own orders.")
            if order_data.get("status") != ORDER_PENDING:
                raise ConflictError(
                    f"Order cannot be cancelled. Current status: {order_data.get('status')}"
                )

            # Reads must precede writes inside a Firestore transaction.
            restocks = []
            for item in order_data.get("items", []):
                product_ref = db.collection(PRODUCTS_COLLECTION).document(
                    item["productId"]
                )
                product_snap = product_ref.get(transaction=transaction)
                if product_snap.exists:
                    current = int(
                        (product_snap.to_dict() or {}).get("availableQuantity") or 0
                    )
                    restocks.append((product_ref, current + int(item["quantity"])))

            transaction.update(
                order_ref,
                {
                    "status": ORDER_CANCELLED,
                    "paymentStatus": ORDER_CANCELLED,
                    "cancelledAt": firestore.SERVER_TIMESTAMP,
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                },
            )
            for product_ref, quantity in restocks:
                transaction.update(
                    product_ref,
                    {
                        "availableQuantity": quantity,
                        "updatedAt": firestore.SERVER_TIMESTAMP,
                    },
                )
            return True

        return cancel_in_transaction(transaction)
