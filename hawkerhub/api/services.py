"""Service layer for ratings and chats."""

from __future__ import annotations

import datetime
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from hawkerhub.core.constants import (
    CHATS_COLLECTION,
    MIN_CHAT_MEMBERS,
    RATINGS_COLLECTION,
    ROLE_SUPPLIER,
    USERS_COLLECTION,
    VERIFIED_MIN_AVG_RATING,
    VERIFIED_MIN_RATINGS,
)
from hawkerhub.errors import ValidationError

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client


class RatingService:
    """Service class for ratings left between vendors and suppliers."""

    @staticmethod
    def create_rating(db: Client, rating: dict[str, Any]) -> dict[str, Any]:
        """Store a rating and refresh the rated user's average."""
        new_rating = {
            "orderId": rating["orderId"],
            "raterId": rating["raterId"],
            "ratedId": rating["ratedId"],
            "value": rating["value"],
            "comment": rating.get("comment") or "",
            "timestamp": datetime.datetime.now(datetime.timezone.utc),
        }
        _, doc_ref = db.collection(RATINGS_COLLECTION).add(new_rating)
        RatingService.refresh_user_rating(db, new_rating["ratedId"])
        return {"id": doc_ref.id, **new_rating}

    @staticmethod
    def get_ratings_for_user(db: Client, user_id: str) -> list[dict[str, Any]]:
        query = db.collection(RATINGS_COLLECTION).where(
            filter=firestore.FieldFilter("ratedId", "==", user_id)
        )
        return [{"id": doc.id, **(doc.to_dict() or {})} for doc in query.stream()]

    @staticmethod
    def refresh_user_rating(db: Client, user_id: str) -> tuple[float, int]:
        """Recompute the rating aggregate on the user document.

        Suppliers with enough high ratings are also marked ``isVerified``.
        """
        values = [
            float(r.get("value", 0))
            for r in RatingService.get_ratings_for_user(db, user_id)
        ]
        num_ratings = len(values)
        avg_rating = round(sum(values) / num_ratings, 2) if num_ratings else 0.0
        updates: dict[str, Any] = {"avgRating": avg_rating, "numRatings": num_ratings}

        user_ref = db.collection(USERS_COLLECTION).document(user_id)
        user = user_ref.get()
        if user.exists and (user.to_dict() or {}).get("role") == ROLE_SUPPLIER:
            updates["isVerified"] = (
                num_ratings > VERIFIED_MIN_RATINGS
                and avg_rating >= VERIFIED_MIN_AVG_RATING
            )
        user_ref.set(updates, merge=True)
        return avg_rating, num_ratings


class ChatService:
    """Service class for chat threads."""

    @staticmethod
    def create_chat(db: Client, members: Any) -> dict[str, Any]:
        if not isinstance(members, list) or len(members) < MIN_CHAT_MEMBERS:
            raise ValidationError("A chat must have at least two members")

        new_chat = {
            "members": members,
            "lastMessage": "",
            "timestamp": datetime.datetime.now(datetime.timezone.utc),
        }
        _, doc_ref = db.collection(CHATS_COLLECTION).add(new_chat)
        return {"id": doc_ref.id, **new_chat}
