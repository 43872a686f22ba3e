"""Service layer for product reviews."""

from __future__ import annotations

import datetime
import logging
import math
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from hawkerhub.core.constants import (
    MAX_RATING,
    MIN_RATING,
    PRODUCTS_COLLECTION,
    REVIEWS_COLLECTION,
    USERS_COLLECTION,
)
from hawkerhub.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

from .models import Review, ReviewStats

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

logger = logging.getLogger(__name__)

# Firestore caps the number of values in an "in" filter.
IN_QUERY_LIMIT = 30
TOP_RATED_CANDIDATES = 50
EDITABLE_FIELDS = ("rating", "comment")

_OLDEST = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


def _coerce_rating(value: Any) -> int:
    try:
        rating = int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError("Rating must be a whole number.") from e
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}.")
    return rating


def _created_at(review: dict[str, Any]) -> datetime.datetime:
    value = review.get("createdAt")
    return value if isinstance(value, datetime.datetime) else _OLDEST


def newest_first(reviews: Iterable[Review]) -> list[Review]:
    return sorted(reviews, key=_created_at, reverse=True)


def review_stats(reviews: Iterable[dict[str, Any]]) -> ReviewStats:
    """Count, average (one decimal, halves round up) and 1-5 distribution."""
    distribution = {star: 0 for star in range(MIN_RATING, MAX_RATING + 1)}
    ratings = [int(r.get("rating", 0)) for r in reviews]
    for rating in ratings:
        if rating in distribution:
            distribution[rating] += 1
    if not ratings:
        return {
            "totalReviews": 0,
            "averageRating": 0,
            "ratingDistribution": distribution,
        }
    average = sum(ratings) / len(ratings)
    return {
        "totalReviews": len(ratings),
        "averageRating": math.floor(average * 10 + 0.5) / 10,
        "ratingDistribution": distribution,
    }


def _to_list(query: Any) -> list[Review]:
    return [{"id": doc.id, **(doc.to_dict() or {})} for doc in query.stream()]  # type: ignore[misc]


class ReviewService:
    """Service class for the reviews vendors leave on products."""

    @staticmethod
    def _active_reviews(db: Client) -> Any:
        return db.collection(REVIEWS_COLLECTION).where(
            filter=firestore.FieldFilter("isActive", "==", True)
        )

    @staticmethod
    def create_review(
        db: Client, vendor_id: str, review_data: dict[str, Any]
    ) -> Review:
        """Store a vendor's review of a product. One active review per product."""
        product_id = review_data.get("productId")
        if not product_id:
            raise ValidationError("productId is required.")
        product = db.collection(PRODUCTS_COLLECTION).document(product_id).get()
        if not product.exists:
            raise NotFoundError("Product not found.")
        if ReviewService.has_vendor_reviewed_product(db, vendor_id, product_id):
            raise ConflictError("You have already reviewed this product.")

        vendor = db.collection(USERS_COLLECTION).document(vendor_id).get()
        vendor_name = (vendor.to_dict() or {}).get("name") if vendor.exists else None

        review = {
            "productId": product_id,
            "vendorId": vendor_id,
            "vendorName": vendor_name or "Vendor",
            "rating": _coerce_rating(review_data.get("rating")),
            "comment": review_data.get("comment") or "",
            "imageUrl": None,
            "isActive": True,
            "createdAt": firestore.SERVER_TIMESTAMP,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        }
        _, doc_ref = db.collection(REVIEWS_COLLECTION).add(review)
        logger.info(f"Vendor {vendor_id} reviewed product {product_id}")
        return {"id": doc_ref.id, **review}  # type: ignore[typeddict-item]

    @staticmethod
    def get_review(db: Client, review_id: str) -> Review:
        snapshot = db.collection(REVIEWS_COLLECTION).document(review_id).get()
        if not snapshot.exists:
            raise NotFoundError("Review not found.")
        return {"id": snapshot.id, **(snapshot.to_dict() or {})}  # type: ignore[typeddict-item]

    @staticmethod
    def get_product_reviews(db: Client, product_id: str) -> list[Review]:
        """Return a product's active reviews, newest first."""
        query = ReviewService._active_reviews(db).where(
            filter=firestore.FieldFilter("productId", "==", product_id)
        )
        return newest_first(_to_list(query))

    @staticmethod
    def get_vendor_reviews(db: Client, vendor_id: str) -> list[Review]:
        query = ReviewService._active_reviews(db).where(
            filter=firestore.FieldFilter("vendorId", "==", vendor_id)
        )
        return newest_first(_to_list(query))

    @staticmethod
    def get_supplier_reviews(db: Client, supplier_id: str) -> list[Review]:
        """Return active reviews of the supplier's products, newest first."""
        products = (
            db.collection(PRODUCTS_COLLECTION)
            .where(filter=firestore.FieldFilter("supplierId", "==", supplier_id))
            .stream()
        )
        product_ids = [doc.id for doc in products]

        reviews: list[Review] = []
        for start in range(0, len(product_ids), IN_QUERY_LIMIT):
            chunk = product_ids[start : start + IN_QUERY_LIMIT]
            query = ReviewService._active_reviews(db).where(
                filter=firestore.FieldFilter("productId", "in", chunk)
            )
            reviews.extend(_to_list(query))
        return newest_first(reviews)

    @staticmethod
    def update_review(
        db: Client, review_id: str, vendor_id: str, updates: dict[str, Any]
    ) -> Review:
        """Change the rating or comment of the caller's own review."""
        unknown = set(updates) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        review = ReviewService.get_review(db, review_id)
        if review.get("vendorId") != vendor_id:
            raise PermissionDeniedError("You can only edit your own reviews.")

        changes: dict[str, Any] = {
            key: value for key, value in updates.items() if value is not None
        }
        if "rating" in changes:
            changes["rating"] = _coerce_rating(changes["rating"])
        changes["updatedAt"] = firestore.SERVER_TIMESTAMP

        db.collection(REVIEWS_COLLECTION).document(review_id).update(changes)
        return {**review, **changes}  # type: ignore[typeddict-item]

    @staticmethod
    def delete_review(db: Client, review_id: str, vendor_id: str) -> bool:
        """Hide the caller's review. The document is kept with ``isActive`` false."""
        review = ReviewService.get_review(db, review_id)
        if review.get("vendorId") != vendor_id:
            raise PermissionDeniedError("You can only delete your own reviews.")
        db.collection(REVIEWS_COLLECTION).document(review_id).update(
            {"isActive": False, "updatedAt": firestore.SERVER_TIMESTAMP}
        )
        logger.info(f"Review {review_id} removed by {vendor_id}")
        return True

    @staticmethod
    def get_product_review_stats(db: Client, product_id: str) -> ReviewStats:
        return review_stats(ReviewService.get_product_reviews(db, product_id))

    @staticmethod
    def get_top_rated_products(db: Client, limit: int = 10) -> list[dict[str, Any]]:
        """Active products with at least one review, best average first.

        Ties on the average go to the product with more reviews.
        """
        products = (
            db.collection(PRODUCTS_COLLECTION)
            .where(filter=firestore.FieldFilter("isActive", "==", True))
            .limit(TOP_RATED_CANDIDATES)
            .stream()
        )
        rated = []
        for doc in products:
            stats = ReviewService.get_product_review_stats(db, doc.id)
            if stats["totalReviews"] > 0:
                product = {"id": doc.id, **(doc.to_dict() or {})}
                rated.append({**product, "reviewStats": stats})

        rated.sort(
            key=lambda p: (
                p["reviewStats"]["averageRating"],
                p["reviewStats"]["totalReviews"],
            ),
            reverse=True,
        )
        return rated[:limit]

    @staticmethod
    def has_vendor_reviewed_product(
        db: Client, vendor_id: str, product_id: str
    ) -> bool:
        query = (
            ReviewService._active_reviews(db)
            .where(filter=firestore.FieldFilter("vendorId", "==", vendor_id))
            .where(filter=firestore.FieldFilter("productId", "==", product_id))
            .limit(1)
        )
        return any(True for _ in query.stream())

    @staticmethod
    def get_recent_reviews(db: Client, limit: int = 10) -> list[Review]:
        query = (
            ReviewService._active_reviews(db)
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )
        return _to_list(query)
