"""Service layer for the supplier product catalog."""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from hawkerhub.core.constants import (
    PRODUCTS_COLLECTION,
    ROLE_VENDOR,
    USERS_COLLECTION,
)
from hawkerhub.errors import NotFoundError, PermissionDeniedError, ValidationError

from .models import Product

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction

    from hawkerhub.notifications.services import NotificationService

logger = logging.getLogger(__name__)

NUMERIC_FIELDS = ("price", "availableQuantity", "salePrice")


def _coerce_numbers(data: dict[str, Any]) -> dict[str, Any]:
    """Coerce numeric product fields that clients may send as strings."""
    coerced = dict(data)
    for key in NUMERIC_FIELDS:
        value = coerced.get(key)
        if value is None:
            continue
        try:
            coerced[key] = int(value) if key == "availableQuantity" else float(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"{key} must be a number.") from e
    return coerced


def _as_aware(value: Any) -> datetime.datetime | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.datetime.fromisoformat(value)
    if isinstance(value, datetime.datetime) and value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value


def effective_price(product: Product, now: datetime.datetime | None = None) -> float:
    """Return the sale price while a flash sale is live, else the list price."""
    now = now or datetime.datetime.now(datetime.timezone.utc)
    sale_price = product.get("salePrice")
    sale_end = _as_aware(product.get("saleEndDate"))
    if sale_price is not None and sale_end is not None and now < sale_end:
        return float(sale_price)
    return float(product.get("price", 0.0))


class ProductService:
    """Service class for product catalog operations."""

    @staticmethod
    def create_product(
        db: Client,
        product_data: dict[str, Any],
        supplier_id: str,
        client_key: str | None = None,
    ) -> Product:
        """Create a product for a supplier.

        When ``client_key`` is given it becomes the document id, so replaying
        the same create returns the product stored the first time.
        """
        products_ref = db.collection(PRODUCTS_COLLECTION)
        if client_key:
            product_ref = products_ref.document(client_key)
            existing = product_ref.get()
            if existing.exists:
                logger.info(f"Product for key {client_key} already exists.")
                return {"id": existing.id, **(existing.to_dict() or {})}  # type: ignore[typeddict-item]
        else:
            product_ref = products_ref.document()

        product = _coerce_numbers(product_data)
        product.update(
            {
                "supplierId": supplier_id,
                "imageUrl": product_data.get("imageUrl") or "",
                "isActive": True,
                "createdAt": firestore.SERVER_TIMESTAMP,
                "updatedAt": firestore.SERVER_TIMESTAMP,
                "salePrice": None,
                "saleEndDate": None,
            }
        )
        product.pop("id", None)
        product_ref.set(product)

        db.collection(USERS_COLLECTION).document(supplier_id).set(
            {"onboardingStatus": {"firstProductAdded": True}}, merge=True
        )
        return {"id": product_ref.id, **product}  # type: ignore[typeddict-item]

    @staticmethod
    def get_product(db: Client, product_id: str) -> Product:
        snapshot = db.collection(PRODUCTS_COLLECTION).document(product_id).get()
        if not snapshot.exists:
            raise NotFoundError("Product not found.")
        return {"id": snapshot.id, **(snapshot.to_dict() or {})}  # type: ignore[typeddict-item]

    @staticmethod
    def update_product(
        db: Client, product_id: str, updates: dict[str, Any]
    ) -> dict[str, Any]:
        """Apply a partial update to a product."""
        product_ref = db.collection(PRODUCTS_COLLECTION).document(product_id)
        if not product_ref.get().exists:
            raise NotFoundError("Product not found.")

        update_data = _coerce_numbers(updates)
        for key in ("id", "supplierId", "createdAt"):
            update_data.pop(key, None)
        update_data["updatedAt"] = firestore.SERVER_TIMESTAMP

        product_ref.update(update_data)
        return {"id": product_id, **update_data}

    @staticmethod
    def delete_product(db: Client, product_id: str) -> bool:
        db.collection(PRODUCTS_COLLECTION).document(product_id).delete()
        return True

    @staticmethod
    def get_products_by_supplier(db: Client, supplier_id: str) -> list[Product]:
        """Return a supplier's products, newest first."""
        query = (
            db.collection(PRODUCTS_COLLECTION)
            .where(filter=firestore.FieldFilter("supplierId", "==", supplier_id))
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
        )
        return [{"id": doc.id, **(doc.to_dict() or {})} for doc in query.stream()]  # type: ignore[misc]

    @staticmethod
    def get_available_products(db: Client) -> list[Product]:
        """Return active, in-stock products with their supplier's name."""
        query = db.collection(PRODUCTS_COLLECTION).where(
            filter=firestore.FieldFilter("isActive", "==", True)
        )
        products = []
        supplier_names: dict[str, str] = {}
        for doc in query.stream():
            data = doc.to_dict() or {}
            if int(data.get("availableQuantity") or 0) <= 0:
                continue
            supplier_id = data.get("supplierId", "")
            if supplier_id not in supplier_names:
                supplier_doc = (
                    db.collection(USERS_COLLECTION).document(supplier_id).get()
                )
                supplier_names[supplier_id] = (
                    (supplier_doc.to_dict() or {}).get("name", "Unknown Supplier")
                    if supplier_doc.exists
                    else "Unknown Supplier"
                )
            products.append(
                {"id": doc.id, **data, "supplierName": supplier_names[supplier_id]}
            )
        products.sort(key=lambda p: p.get("availableQuantity", 0), reverse=True)
        return products  # type: ignore[return-value]

    @staticmethod
    def update_product_stock(db: Client, product_id: str, quantity_change: int) -> int:
        """Atomically adjust available stock, refusing to go below zero."""
        product_ref = db.collection(PRODUCTS_COLLECTION).document(product_id)
        transaction = db.transaction()

        @firestore.transactional
        def adjust_in_transaction(transaction: Transaction) -> int:
            snapshot = product_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError("Product not found.")
            current = int((snapshot.to_dict() or {}).get("availableQuantity") or 0)
            new_quantity = current + quantity_change
            if new_quantity < 0:
                raise ValidationError("Insufficient stock.")
            transaction.update(
                product_ref,
                {
                    "availableQuantity": new_quantity,
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                },
            )
            return new_quantity

        return adjust_in_transaction(transaction)

    @staticmethod
    def start_flash_sale(
        db: Client,
        product_id: str,
        supplier_id: str,
        sale_price: float,
        sale_end_date: datetime.datetime,
        notifier: NotificationService | None = None,
    ) -> dict[str, Any]:
        """Put a product on sale until ``sale_end_date`` and tell every vendor."""
        product = ProductService.get_product(db, product_id)
        if product.get("supplierId") != supplier_id:
            raise PermissionDeniedError("You can only discount your own products.")
        if sale_price <= 0 or sale_price >= float(product.get("price", 0)):
            raise ValidationError("Sale price must be below the regular price.")
        sale_end = _as_aware(sale_end_date)
        if sale_end is None or sale_end <= datetime.datetime.now(datetime.timezone.utc):
            raise ValidationError("Sale end date must be in the future.")

        updated = ProductService.update_product(
            db, product_id, {"salePrice": sale_price, "saleEndDate": sale_end}
        )

        if notifier is not None:
            vendors = (
                db.collection(USERS_COLLECTION)
                .where(filter=firestore.FieldFilter("role", "==", ROLE_VENDOR))
                .stream()
            )
            for vendor in vendors:
                notifier.create_order_notification(
                    db,
                    "flash_sale",
                    {
                        "productId": product_id,
                        "productName": product.get("name"),
                        "salePrice": sale_price,
                        "recipientId": vendor.id,
                    },
                )
            logger.info(f"Flash sale started for product {product_id}")
        return updated
