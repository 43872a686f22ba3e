"""Data models for the reviews blueprint."""

from __future__ import annotations

from typing import TypedDict

from hawkerhub.core.types import FirestoreDocument


class Review(FirestoreDocument, total=False):
    """A review document in Firestore."""

    productId: str
    vendorId: str
    vendorName: str
    rating: int
    comment: str
    imageUrl: str | None
    isActive: bool


class ReviewStats(TypedDict):
    """Aggregate of the active reviews of one product."""

    totalReviews: int
    averageRating: float
    ratingDistribution: dict[int, int]
