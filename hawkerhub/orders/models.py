"""Data models for the orders blueprint."""

from __future__ import annotations

from typing import Any, TypedDict

from hawkerhub.core.types import FirestoreDocument


class OrderLine(TypedDict, total=False):
    """A product line in an order."""

    productId: str
    productName: str
    supplierId: str
    quantity: int
    price: float


class Order(FirestoreDocument, total=False):
    """An order document in Firestore."""

    vendorId: str
    supplierId: str
    items: list[OrderLine]
    totalAmount: float
    status: str
    paymentStatus: str
    cancelledAt: Any
    # UI and calculated fields
    vendorName: str
    vendorPhone: str
