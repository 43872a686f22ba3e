from __future__ import annotations

from typing import Any

from firebase_admin import firestore
from flask import current_app, g, jsonify

from hawkerhub.auth.decorators import login_required
from hawkerhub.errors import ValidationError
from hawkerhub.utils import get_json_body, to_json_safe, validate_form

from . import bp
from .forms import GroupOrderForm
from .services import GroupOrderService


@bp.route("", methods=["POST"])
@login_required
def create_group_order() -> Any:
    """Start a new group order with the caller as leader."""
    data = get_json_body()
    form = validate_form(GroupOrderForm())
    products = data.get("products") or []
    if not isinstance(products, list):
        raise ValidationError("products must be a list.")

    db = firestore.client()
    group_order = GroupOrderService.create_group_order(
        db,
        g.user["uid"],
        products,
        data.get("discountTiers"),
        title=form.title.data,
        deadline=form.deadline_value(),
    )
    current_app.logger.info(
        f"Group order {group_order['id']} created by {g.user['uid']}"
    )
    return jsonify(to_json_safe(group_order)), 201


@bp.route("", methods=["GET"])
@login_required
def list_open_group_orders() -> Any:
    """List group orders that are still open for contributions."""
    db = firestore.client()
    return jsonify(to_json_safe(GroupOrderService.get_open_group_orders(db)))


@bp.route("/mine", methods=["GET"])
@login_required
def list_my_group_orders() -> Any:
    """List group orders the caller leads or has joined."""
    db = firestore.client()
    orders = GroupOrderService.get_user_group_orders(db, g.user["uid"])
    return jsonify(to_json_safe(orders))


@bp.route("/<string:group_id>", methods=["GET"])
@login_required
def view_group_order(group_id: str) -> Any:
    db = firestore.client()
    return jsonify(to_json_safe(GroupOrderService.get_group_order(db, group_id)))


@bp.route("/<string:group_id>/join", methods=["POST"])
@login_required
def join_group_order(group_id: str) -> Any:
    """Add the caller's item selection to a group order."""
    data = get_json_body()
    db = firestore.client()
    result = GroupOrderService.join_group_order(
        db, group_id, g.user["uid"], data.get("items")
    )
    return jsonify(result.to_dict())


@bp.route("/<string:group_id>/close", methods=["POST"])
@login_required
def close_group_order(group_id: str) -> Any:
    db = firestore.client()
    GroupOrderService.close_group_order(db, group_id, g.user["uid"])
    return jsonify({"status": "closed", "id": group_id})
