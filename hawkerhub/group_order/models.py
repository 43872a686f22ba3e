"""Data models for the group order blueprint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypedDict

from hawkerhub.core.types import FirestoreDocument


class DiscountTier(TypedDict):
    """A bulk pricing breakpoint: at ``quantity`` units, ``discount`` off."""

    quantity: int
    discount: float


class OrderItem(TypedDict, total=False):
    """A single product line inside a member's contribution."""

    productId: str
    quantity: int
    price: float
    name: str


class MemberContribution(TypedDict, total=False):
    """One member's recorded share of a group order."""

    userId: str
    items: list[OrderItem]
    contribution: float
    joinedAt: Any


class GroupOrder(FirestoreDocument, total=False):
    """A group order document in Firestore."""

    leaderId: str
    title: str
    # Historical field name; holds MemberContribution records, not ids.
    memberIds: list[MemberContribution]
    products: list[dict[str, Any]]
    discountTiers: list[DiscountTier]
    status: str
    totalCost: float
    totalQuantity: int
    discount: float
    paymentCollected: float
    deadline: Any
    closedAt: Any


@dataclass
class JoinResult:
    """Summary of a group order after a member's contribution is folded in."""

    group_id: str
    user_id: str
    contribution: float
    total_cost: float
    total_quantity: int
    discount: float
    payment_collected: float
    member_count: int

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase shape used by the JSON API."""
        return {
            "groupId": self.group_id,
            "userId": self.user_id,
            "contribution": self.contribution,
            "totalCost": self.total_cost,
            "totalQuantity": self.total_quantity,
            "discount": self.discount,
            "paymentCollected": self.payment_collected,
            "memberCount": self.member_count,
        }
