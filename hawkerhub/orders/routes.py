from __future__ import annotations

from typing import Any

from firebase_admin import firestore
from flask import current_app, g, jsonify

from hawkerhub import get_notification_service
from hawkerhub.auth.decorators import login_required
from hawkerhub.core.constants import ROLE_SUPPLIER, ROLE_VENDOR
from hawkerhub.errors import PermissionDeniedError, ValidationError
from hawkerhub.utils import get_json_body, to_json_safe

from . import bp
from .services import OrderService


@bp.route("", methods=["POST"])
@login_required(role=ROLE_VENDOR)
def place_order() -> Any:
    """Place an order; one order document is created per supplier."""
    data = get_json_body()
    db = firestore.client()
    order_ids = OrderService.create_order(
        db, {"vendorId": g.user["uid"], "items": data.get("items")}
    )

    notifier = get_notification_service()
    for order_id in order_ids:
        order = OrderService.get_order(db, order_id)
        notifier.create_order_notification(
            db,
            "new_order",
            {
                "orderId": order_id,
                "vendorName": g.user.get("name", "A vendor"),
                "recipientId": order.get("supplierId"),
            },
        )
    return jsonify({"orderIds": order_ids}), 201


@bp.route("", methods=["GET"])
@login_required
def list_orders() -> Any:
    """List the caller's orders, as vendor or supplier."""
    db = firestore.client()
    if g.user.get("role") == ROLE_SUPPLIER:
        orders = OrderService.get_supplier_orders(db, g.user["uid"])
    else:
        orders = OrderService.get_vendor_orders(db, g.user["uid"])
    return jsonify(to_json_safe(orders))


@bp.route("/<string:order_id>", methods=["GET"])
@login_required
def view_order(order_id: str) -> Any:
    db = firestore.client()
    order = OrderService.get_order(db, order_id)
    if g.user["uid"] not in (order.get("vendorId"), order.get("supplierId")):
        raise PermissionDeniedError("You are not part of this order.")
    return jsonify(to_json_safe(order))


@bp.route("/<string:order_id>/status", methods=["POST"])
@login_required(role=ROLE_SUPPLIER)
def update_status(order_id: str) -> Any:
    """Supplier moves an order along (confirmed, shipped, delivered...)."""
    status = get_json_body().get("status")
    if not status:
        raise ValidationError("status is required.")

    db = firestore.client()
    order = OrderService.get_order(db, order_id)
    if order.get("supplierId") != g.user["uid"]:
        raise PermissionDeniedError("You can only update your own orders.")

    OrderService.update_order_status(
        db, order_id, status, notifier=get_notification_service()
    )
    current_app.logger.info(f"Order {order_id} moved to {status}")
    return jsonify({"id": order_id, "status": status})


@bp.route("/<string:order_id>/cancel", methods=["POST"])
@login_required(role=ROLE_VENDOR)
def cancel_order(order_id: str) -> Any:
    db = firestore.client()
    OrderService.cancel_order(db, order_id, g.user["uid"])
    current_app.logger.info(f"Order {order_id} cancelled by {g.user['uid']}")
    return jsonify({"id": order_id, "status": "cancelled"})
