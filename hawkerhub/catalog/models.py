"""Data models for the catalog blueprint."""

from __future__ import annotations

from typing import Any

from hawkerhub.core.types import FirestoreDocument


class Product(FirestoreDocument, total=False):
    """A product document in Firestore."""

    supplierId: str
    name: str
    description: str
    category: str
    unit: str
    price: float
    availableQuantity: int
    isActive: bool
    imageUrl: str
    salePrice: float | None
    saleEndDate: Any
    # UI and calculated fields
    supplierName: str
    clientKey: str
    isOffline: bool
