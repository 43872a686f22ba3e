"""Service layer for group orders: contributions and bulk discount tiers."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from hawkerhub.core.constants import (
    GROUP_ORDER_CLOSED,
    GROUP_ORDER_OPEN,
    GROUP_ORDERS_COLLECTION,
)
from hawkerhub.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

from .models import DiscountTier, GroupOrder, JoinResult, MemberContribution, OrderItem

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction

logger = logging.getLogger(__name__)


def sort_tiers(tiers: Iterable[DiscountTier] | None) -> list[DiscountTier]:
    """Return discount tiers ordered by ascending quantity threshold."""
    return sorted(tiers or [], key=lambda tier: tier["quantity"])


def select_discount(
    tiers: Iterable[DiscountTier] | None, total_quantity: int
) -> float:
    """Pick the discount of the highest tier whose quantity threshold is met.

    Tiers are sorted before scanning, so callers may pass them in any order.
    When two tiers share a threshold, the later one in the sorted list wins.
    """
    discount = 0.0
    for tier in sort_tiers(tiers):
        if total_quantity >= tier["quantity"]:
            discount = float(tier["discount"])
    return discount


def contribution_total(items: Iterable[OrderItem]) -> float:
    """Sum price times quantity over a member's items."""
    return sum(float(item["price"]) * int(item["quantity"]) for item in items)


def total_quantity(members: Iterable[MemberContribution]) -> int:
    """Count units across every recorded contribution."""
    return sum(
        int(item.get("quantity", 0))
        for member in members
        for item in member.get("items", [])
    )


def validate_tiers(tiers: Any) -> list[DiscountTier]:
    """Validate and normalise a caller-supplied discount tier table."""
    if tiers is None:
        return []
    if not isinstance(tiers, list):
        raise ValidationError("discountTiers must be a list.")

    cleaned: list[DiscountTier] = []
    for tier in tiers:
        try:
            quantity = int(tier["quantity"])
            discount = float(tier["discount"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(
                "Each discount tier needs a numeric quantity and discount."
            ) from e
        if quantity <= 0:
            raise ValidationError("Discount tier quantity must be positive.")
        if not 0 <= discount < 1:
            raise ValidationError("Discount must be between 0 and 1.")
        cleaned.append({"quantity": quantity, "discount": discount})

    ordered = sort_tiers(cleaned)
    for lower, higher in zip(ordered, ordered[1:]):
        if higher["discount"] < lower["discount"]:
            raise ValidationError(
                "Discounts must not decrease as the quantity threshold rises."
            )
    return ordered


def validate_items(items: Any) -> list[OrderItem]:
    """Validate the item selection a member submits when joining."""
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required.")

    cleaned: list[OrderItem] = []
    for item in items:
        try:
            product_id = str(item["productId"])
            quantity = int(item["quantity"])
            price = float(item["price"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(
                "Each item needs a productId, quantity and price."
            ) from e
        if quantity <= 0:
            raise ValidationError("Item quantity must be positive.")
        if price < 0:
            raise ValidationError("Item price cannot be negative.")
        cleaned_item: OrderItem = {
            "productId": product_id,
            "quantity": quantity,
            "price": price,
        }
        if item.get("name"):
            cleaned_item["name"] = str(item["name"])
        cleaned.append(cleaned_item)
    return cleaned


class GroupOrderService:
    """Service class for group order operations."""

    @staticmethod
    def create_group_order(
        db: Client,
        leader_id: str,
        products: list[dict[str, Any]],
        discount_tiers: Any,
        title: str | None = None,
        deadline: datetime.datetime | None = None,
    ) -> GroupOrder:
        """Create a new open group order led by ``leader_id``."""
        tiers = validate_tiers(discount_tiers)
        group_ref = db.collection(GROUP_ORDERS_COLLECTION).document()

        group_data: dict[str, Any] = {
            "id": group_ref.id,
            "leaderId": leader_id,
            "memberIds": [],
            "products": products or [],
            "status": GROUP_ORDER_OPEN,
            "discountTiers": tiers,
            "createdAt": firestore.SERVER_TIMESTAMP,
            "updatedAt": firestore.SERVER_TIMESTAMP,
            "paymentCollected": 0.0,
            "totalCost": 0.0,
            "totalQuantity": 0,
            "discount": 0.0,
        }
        if title:
            group_data["title"] = title
        if deadline:
            group_data["deadline"] = deadline

        group_ref.set(group_data)
        logger.info(f"Group order created with ID: {group_ref.id}")
        return group_data  # type: ignore[return-value]

    @staticmethod
    def get_group_order(db: Client, group_id: str) -> GroupOrder:
        """Fetch a single group order or raise NotFoundError."""
        snapshot = db.collection(GROUP_ORDERS_COLLECTION).document(group_id).get()
        if not snapshot.exists:
            raise NotFoundError("Group order not found.")
        data = snapshot.to_dict() or {}
        data["id"] = snapshot.id
        return data  # type: ignore[return-value]

    @staticmethod
    def get_open_group_orders(db: Client) -> list[GroupOrder]:
        """Return every group order still accepting members."""
        query = db.collection(GROUP_ORDERS_COLLECTION).where(
            filter=firestore.FieldFilter("status", "==", GROUP_ORDER_OPEN)
        )
        orders = []
        for doc in query.stream():
            data = doc.to_dict() or {}
            data["id"] = doc.id
            orders.append(data)
        return orders

    @staticmethod
    def get_user_group_orders(db: Client, user_id: str) -> list[GroupOrder]:
        """Return group orders the user leads or has contributed to."""
        orders = []
        for doc in db.collection(GROUP_ORDERS_COLLECTION).stream():
            data = doc.to_dict() or {}
            is_member = any(
                member.get("userId") == user_id for member in data.get("memberIds", [])
            )
            if data.get("leaderId") == user_id or is_member:
                data["id"] = doc.id
                orders.append(data)
        return orders

    @staticmethod
    def _apply_contribution(
        group_data: dict[str, Any],
        group_id: str,
        user_id: str,
        items: list[OrderItem],
    ) -> tuple[dict[str, Any], JoinResult]:
        """Fold a member's items into the order and recompute the discount."""
        new_contribution = contribution_total(items)
        members: list[MemberContribution] = list(group_data.get("memberIds") or [])

        if any(member.get("userId") == user_id for member in members):
            # Existing behaviour: a repeat join records another contribution.
            logger.warning(
                f"User {user_id} joined group order {group_id} again; "
                "recording an additional contribution."
            )

        members.append(
            {
                "userId": user_id,
                "items": items,
                "contribution": new_contribution,
                "joinedAt": datetime.datetime.now(datetime.timezone.utc),
            }
        )

        total_cost = float(group_data.get("totalCost") or 0.0) + new_contribution
        quantity = total_quantity(members)
        discount = select_discount(group_data.get("discountTiers"), quantity)
        discounted_cost = total_cost * (1 - discount)

        updates = {
            "memberIds": members,
            "totalCost": total_cost,
            "totalQuantity": quantity,
            "discount": discount,
            "paymentCollected": discounted_cost,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        }
        result = JoinResult(
            group_id=group_id,
            user_id=user_id,
            contribution=new_contribution,
            total_cost=total_cost,
            total_quantity=quantity,
            discount=discount,
            payment_collected=discounted_cost,
            member_count=len(members),
        )
        return updates, result

    @staticmethod
    def join_group_order(
        db: Client, group_id: str, user_id: str, items: Any
    ) -> JoinResult:
        """Add a member's contribution inside a single Firestore transaction."""
        cleaned_items = validate_items(items)
        group_ref = db.collection(GROUP_ORDERS_COLLECTION).document(group_id)
        transaction = db.transaction()

        @firestore.transactional
        def join_in_transaction(transaction: Transaction) -> JoinResult:
            snapshot = group_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError("Group order not found.")

            group_data = snapshot.to_dict() or {}
            if group_data.get("status", GROUP_ORDER_OPEN) != GROUP_ORDER_OPEN:
                raise ConflictError("This group order is no longer open.")

            updates, result = GroupOrderService._apply_contribution(
                group_data, group_id, user_id, cleaned_items
            )
            transaction.update(group_ref, updates)
            return result

        result = join_in_transaction(transaction)
        logger.info(f"User {user_id} successfully joined group order {group_id}")
        return result

    @staticmethod
    def close_group_order(db: Client, group_id: str, user_id: str) -> None:
        """Stop accepting contributions. Only the leader may close an order."""
        group_ref = db.collection(GROUP_ORDERS_COLLECTION).document(group_id)
        transaction = db.transaction()

        @firestore.transactional
        def close_in_transaction(transaction: Transaction) -> None:
            snapshot = group_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError("Group order not found.")

            group_data = snapshot.to_dict() or {}
            if group_data.get("leaderId") != user_id:
                raise PermissionDeniedError(
                    "Only the group leader can close this order."
                )
            if group_data.get("status") == GROUP_ORDER_CLOSED:
                raise ConflictError("This group order is already closed.")

            transaction.update(
                group_ref,
                {
                    "status": GROUP_ORDER_CLOSED,
                    "closedAt": firestore.SERVER_TIMESTAMP,
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                },
            )

        close_in_transaction(transaction)
        logger.info(f"Group order {group_id} closed by {user_id}")
