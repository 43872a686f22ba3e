from __future__ import annotations

from typing import Any

from firebase_admin import firestore
from flask import g, jsonify, request

from hawkerhub.auth.decorators import login_required
from hawkerhub.core.constants import ROLE_VENDOR
from hawkerhub.utils import get_json_body, to_json_safe, validate_form

from . import bp
from .forms import ReviewForm, ReviewUpdateForm
from .services import ReviewService

DEFAULT_LIMIT = 10
MAX_LIMIT = 50


def _limit() -> int:
    limit = request.args.get("limit", DEFAULT_LIMIT, type=int)
    return max(1, min(limit, MAX_LIMIT))


@bp.route("", methods=["POST"])
@login_required(role=ROLE_VENDOR)
def create_review() -> Any:
    """Review a product the caller has not reviewed yet."""
    form = validate_form(ReviewForm())
    db = firestore.client()
    review = ReviewService.create_review(
        db,
        g.user["uid"],
        {
            "productId": form.productId.data,
            "rating": form.rating.data,
            "comment": form.comment.data,
        },
    )
    return jsonify(to_json_safe(review)), 201


@bp.route("/recent", methods=["GET"])
@login_required
def list_recent_reviews() -> Any:
    db = firestore.client()
    return jsonify(to_json_safe(ReviewService.get_recent_reviews(db, _limit())))


@bp.route("/top-products", methods=["GET"])
@login_required
def list_top_rated_products() -> Any:
    db = firestore.client()
    return jsonify(to_json_safe(ReviewService.get_top_rated_products(db, _limit())))


@bp.route("/product/<string:product_id>", methods=["GET"])
@login_required
def list_product_reviews(product_id: str) -> Any:
    db = firestore.client()
    return jsonify(to_json_safe(ReviewService.get_product_reviews(db, product_id)))


@bp.route("/product/<string:product_id>/stats", methods=["GET"])
@login_required
def product_review_stats(product_id: str) -> Any:
    db = firestore.client()
    return jsonify(ReviewService.get_product_review_stats(db, product_id))


@bp.route("/product/<string:product_id>/mine", methods=["GET"])
@login_required(role=ROLE_VENDOR)
def has_reviewed_product(product_id: str) -> Any:
    """Tell a vendor whether they have already reviewed the product."""
    db = firestore.client()
    reviewed = ReviewService.has_vendor_reviewed_product(
        db, g.user["uid"], product_id
    )
    return jsonify({"productId": product_id, "reviewed": reviewed})


@bp.route("/vendor/<string:vendor_id>", methods=["GET"])
@login_required
def list_vendor_reviews(vendor_id: str) -> Any:
    db = firestore.client()
    return jsonify(to_json_safe(ReviewService.get_vendor_reviews(db, vendor_id)))


@bp.route("/supplier/<string:supplier_id>", methods=["GET"])
@login_required
def list_supplier_reviews(supplier_id: str) -> Any:
    db = firestore.client()
    return jsonify(to_json_safe(ReviewService.get_supplier_reviews(db, supplier_id)))


@bp.route("/<string:review_id>", methods=["PATCH"])
@login_required(role=ROLE_VENDOR)
def update_review(review_id: str) -> Any:
    data = get_json_body()
    form = validate_form(ReviewUpdateForm())
    updates = dict(data)
    for field in ("rating", "comment"):
        if field in data:
            updates[field] = getattr(form, field).data
    db = firestore.client()
    review = ReviewService.update_review(db, review_id, g.user["uid"], updates)
    return jsonify(to_json_safe(review))


@bp.route("/<string:review_id>", methods=["DELETE"])
@login_required(role=ROLE_VENDOR)
def delete_review(review_id: str) -> Any:
    db = firestore.client()
    ReviewService.delete_review(db, review_id, g.user["uid"])
    return jsonify({"status": "deleted", "id": review_id})
