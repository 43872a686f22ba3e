from __future__ import annotations

from typing import Any

from firebase_admin import firestore
from flask import g, jsonify

from hawkerhub.auth.decorators import login_required
from hawkerhub.errors import NotFoundError, ValidationError
from hawkerhub.utils import get_json_body, to_json_safe

from . import bp
from .services import NotificationService


@bp.route("", methods=["GET"])
@login_required
def list_notifications() -> Any:
    db = firestore.client()
    notifications = NotificationService.get_user_notifications(db, g.user["uid"])
    return jsonify(to_json_safe(notifications))


@bp.route("/<string:notification_id>/read", methods=["POST"])
@login_required
def mark_read(notification_id: str) -> Any:
    db = firestore.client()
    if not NotificationService.mark_read(db, g.user["uid"], notification_id):
        raise NotFoundError("Notification not found.")
    return jsonify({"id": notification_id, "read": True})


@bp.route("/token", methods=["POST"])
@login_required
def register_token() -> Any:
    """Save the FCM registration token of the caller's device."""
    token = get_json_body().get("token")
    if not token or not isinstance(token, str):
        raise ValidationError("token is required.")
    db = firestore.client()
    NotificationService.register_token(db, g.user["uid"], token)
    return jsonify({"status": "registered"})
