from __future__ import annotations

import datetime
from typing import Any

from firebase_admin import firestore
from flask import current_app, jsonify, request

from hawkerhub.errors import AppError
from hawkerhub.utils import to_json_safe, validate_form

from . import bp
from .forms import RatingForm
from .services import ChatService, RatingService

REQUIRED_RATING_FIELDS = ("orderId", "raterId", "ratedId", "value")


@bp.route("/ratings", methods=["POST"])
def create_rating() -> Any:
    """Create a new rating."""
    data = request.get_json(silent=True) or {}
    if not all(data.get(field) for field in REQUIRED_RATING_FIELDS):
        return jsonify({"message": "Missing required fields"}), 400

    form = validate_form(RatingForm())
    try:
        db = firestore.client()
        rating = RatingService.create_rating(
            db,
            {
                "orderId": form.orderId.data,
                "raterId": form.raterId.data,
                "ratedId": form.ratedId.data,
                "value": form.value.data,
                "comment": form.comment.data,
            },
        )
    except AppError:
        raise
    except Exception as e:
        current_app.logger.error(f"Error creating rating: {e}")
        return jsonify({"message": str(e)}), 500
    return jsonify(to_json_safe(rating)), 201


@bp.route("/ratings/<string:user_id>", methods=["GET"])
def list_ratings(user_id: str) -> Any:
    db = firestore.client()
    return jsonify(to_json_safe(RatingService.get_ratings_for_user(db, user_id)))


@bp.route("/chats", methods=["POST"])
def create_chat() -> Any:
    """Create a new chat between two or more members."""
    members = (request.get_json(silent=True) or {}).get("members")
    try:
        db = firestore.client()
        chat = ChatService.create_chat(db, members)
    except AppError:
        raise
    except Exception as e:
        current_app.logger.error(f"Error creating chat: {e}")
        return jsonify({"message": str(e)}), 500
    return jsonify(to_json_safe(chat)), 201


@bp.route("/health", methods=["GET"])
def health_check() -> Any:
    """Perform a simple health check."""
    return jsonify(
        {
            "status": "OK",
            "message": "HawkerHub API is running",
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "environment": current_app.config["ENVIRONMENT"],
        }
    )
