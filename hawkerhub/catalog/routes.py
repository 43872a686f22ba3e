from __future__ import annotations

from typing import Any

from firebase_admin import firestore
from flask import current_app, g, jsonify

from hawkerhub import get_notification_service
from hawkerhub.auth.decorators import login_required
from hawkerhub.core.constants import ROLE_SUPPLIER
from hawkerhub.errors import PermissionDeniedError, ValidationError
from hawkerhub.utils import get_json_body, to_json_safe, validate_form

from . import bp
from .forms import FlashSaleForm, ProductForm, StockForm
from .services import ProductService

UPDATABLE_FIELDS = {
    "name",
    "description",
    "category",
    "unit",
    "price",
    "availableQuantity",
    "imageUrl",
    "isActive",
}


def _form_payload(form: ProductForm) -> dict[str, Any]:
    payload = {
        field.name: field.data for field in form if field.data not in (None, "")
    }
    payload["price"] = float(form.price.data)
    return payload


def _require_owner(db: Any, product_id: str) -> None:
    product = ProductService.get_product(db, product_id)
    if product.get("supplierId") != g.user["uid"]:
        raise PermissionDeniedError("You can only change your own products.")


@bp.route("", methods=["GET"])
@login_required
def list_available_products() -> Any:
    """Catalog for vendors: every active product that is in stock."""
    db = firestore.client()
    return jsonify(to_json_safe(ProductService.get_available_products(db)))


@bp.route("", methods=["POST"])
@login_required(role=ROLE_SUPPLIER)
def create_product() -> Any:
    form = validate_form(ProductForm())
    db = firestore.client()
    product = ProductService.create_product(db, _form_payload(form), g.user["uid"])
    current_app.logger.info(f"Product {product['id']} created by {g.user['uid']}")
    return jsonify(to_json_safe(product)), 201


@bp.route("/supplier/<string:supplier_id>", methods=["GET"])
@login_required
def list_supplier_products(supplier_id: str) -> Any:
    db = firestore.client()
    products = ProductService.get_products_by_supplier(db, supplier_id)
    return jsonify(to_json_safe(products))


@bp.route("/<string:product_id>", methods=["GET"])
@login_required
def view_product(product_id: str) -> Any:
    db = firestore.client()
    return jsonify(to_json_safe(ProductService.get_product(db, product_id)))


@bp.route("/<string:product_id>", methods=["PATCH"])
@login_required(role=ROLE_SUPPLIER)
def update_product(product_id: str) -> Any:
    """Partially update a product the caller owns."""
    data = get_json_body()
    unknown = set(data) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    db = firestore.client()
    _require_owner(db, product_id)
    updated = ProductService.update_product(db, product_id, data)
    return jsonify(to_json_safe(updated))


@bp.route("/<string:product_id>", methods=["DELETE"])
@login_required(role=ROLE_SUPPLIER)
def delete_product(product_id: str) -> Any:
    db = firestore.client()
    _require_owner(db, product_id)
    ProductService.delete_product(db, product_id)
    current_app.logger.info(f"Product {product_id} deleted by {g.user['uid']}")
    return jsonify({"status": "deleted", "id": product_id})


@bp.route("/<string:product_id>/stock", methods=["POST"])
@login_required(role=ROLE_SUPPLIER)
def adjust_stock(product_id: str) -> Any:
    form = validate_form(StockForm())
    db = firestore.client()
    _require_owner(db, product_id)
    new_quantity = ProductService.update_product_stock(
        db, product_id, form.quantityChange.data
    )
    return jsonify({"id": product_id, "availableQuantity": new_quantity})


@bp.route("/<string:product_id>/flash-sale", methods=["POST"])
@login_required(role=ROLE_SUPPLIER)
def start_flash_sale(product_id: str) -> Any:
    """Discount a product until the given end time."""
    form = validate_form(FlashSaleForm())
    db = firestore.client()
    updated = ProductService.start_flash_sale(
        db,
        product_id,
        g.user["uid"],
        float(form.salePrice.data),
        form.saleEndDate.data,
        notifier=get_notification_service(),
    )
    return jsonify(to_json_safe(updated))
