"""Tests for the group order service."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock, patch

from mockfirestore import MockFirestore

from hawkerhub.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from hawkerhub.group_order.services import (
    GroupOrderService,
    contribution_total,
    select_discount,
    total_quantity,
    validate_items,
    validate_tiers,
)
from tests.conftest import MockTransaction, identity_transactional, patch_mockfirestore

TIERS = [
    {"quantity": 5, "discount": 0.10},
    {"quantity": 10, "discount": 0.20},
]


class DiscountSelectionTestCase(unittest.TestCase):
    def test_no_tier_met(self) -> None:
        self.assertEqual(select_discount(TIERS, 4), 0.0)

    def test_highest_met_tier_wins(self) -> None:
        self.assertEqual(select_discount(TIERS, 7), 0.10)
        self.assertEqual(select_discount(TIERS, 12), 0.20)

    def test_threshold_is_inclusive(self) -> None:
        self.assertEqual(select_discount(TIERS, 5), 0.10)
        self.assertEqual(select_discount(TIERS, 10), 0.20)

    def test_unsorted_tiers_are_sorted_first(self) -> None:
        """A table stored out of order still yields the highest met tier."""
        reversed_tiers = list(reversed(TIERS))
        self.assertEqual(select_discount(reversed_tiers, 12), 0.20)
        self.assertEqual(select_discount(reversed_tiers, 7), 0.10)

    def test_empty_or_missing_tiers(self) -> None:
        self.assertEqual(select_discount([], 100), 0.0)
        self.assertEqual(select_discount(None, 100), 0.0)

    def test_discount_is_monotonic_in_quantity(self) -> None:
        discounts = [select_discount(TIERS, q) for q in range(0, 20)]
        self.assertEqual(discounts, sorted(discounts))


class GroupOrderHelpersTestCase(unittest.TestCase):
    def test_contribution_total(self) -> None:
        items = [
            {"productId": "p1", "quantity": 3, "price": 20.0},
            {"productId": "p2", "quantity": 1, "price": 50.0},
        ]
        self.assertEqual(contribution_total(items), 110.0)

    def test_total_quantity_counts_every_contribution(self) -> None:
        members = [
            {"userId": "a", "items": [{"productId": "p1", "quantity": 3, "price": 1}]},
            {"userId": "a", "items": [{"productId": "p1", "quantity": 2, "price": 1}]},
            {"userId": "b", "items": []},
        ]
        self.assertEqual(total_quantity(members), 5)

    def test_validate_tiers_sorts_and_checks_ranges(self) -> None:
        self.assertEqual(validate_tiers(list(reversed(TIERS))), TIERS)
        self.assertEqual(validate_tiers(None), [])
        with self.assertRaises(ValidationError):
            validate_tiers([{"quantity": 0, "discount": 0.1}])
        with self.assertRaises(ValidationError):
            validate_tiers([{"quantity": 5, "discount": 1.5}])
        with self.assertRaises(ValidationError):
            validate_tiers([{"quantity": "lots"}])

    def test_validate_tiers_rejects_falling_discounts(self) -> None:
        with self.assertRaises(ValidationError):
            validate_tiers(
                [{"quantity": 5, "discount": 0.2}, {"quantity": 10, "discount": 0.1}]
            )
        flat = [{"quantity": 5, "discount": 0.1}, {"quantity": 10, "discount": 0.1}]
        self.assertEqual(validate_tiers(flat), flat)

    def test_validate_items(self) -> None:
        with self.assertRaises(ValidationError):
            validate_items([])
        with self.assertRaises(ValidationError):
            validate_items([{"productId": "p1", "quantity": 0, "price": 10}])
        with self.assertRaises(ValidationError):
            validate_items([{"productId": "p1", "quantity": 1, "price": -1}])
        cleaned = validate_items([{"productId": "p1", "quantity": "2", "price": "12.5"}])
        self.assertEqual(cleaned, [{"productId": "p1", "quantity": 2, "price": 12.5}])


class GroupOrderServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        patch_mockfirestore()
        self.db = MockFirestore()
        self.db.transaction = MagicMock(side_effect=MockTransaction)

        patcher = patch(
            "hawkerhub.group_order.services.firestore.transactional",
            side_effect=identity_transactional,
        )
        patcher.start()
        self.addCleanup(patcher.stop)

        group = GroupOrderService.create_group_order(
            self.db, "leader", [{"productId": "p1", "name": "Onions"}], TIERS
        )
        self.group_id = group["id"]

    def _group(self) -> dict:
        return self.db.collection("groupOrders").document(self.group_id).get().to_dict()

    def test_create_group_order(self) -> None:
        data = self._group()
        self.assertEqual(data["status"], "open")
        self.assertEqual(data["leaderId"], "leader")
        self.assertEqual(data["memberIds"], [])
        self.assertEqual(data["totalQuantity"], 0)
        self.assertEqual(data["discountTiers"], TIERS)

    def test_create_rejects_bad_tiers(self) -> None:
        with self.assertRaises(ValidationError):
            GroupOrderService.create_group_order(
                self.db, "leader", [], [{"quantity": -1, "discount": 0.1}]
            )

    def test_join_below_threshold(self) -> None:
        result = GroupOrderService.join_group_order(
            self.db,
            self.group_id,
            "user1",
            [{"productId": "p1", "quantity": 3, "price": 20.0}],
        )
        self.assertEqual(result.contribution, 60.0)
        self.assertEqual(result.total_quantity, 3)
        self.assertEqual(result.discount, 0.0)
        self.assertEqual(result.payment_collected, 60.0)
        self.assertEqual(self._group()["paymentCollected"], 60.0)

    def test_join_sums_members_and_applies_tier(self) -> None:
        GroupOrderService.join_group_order(
            self.db,
            self.group_id,
            "user1",
            [{"productId": "p1", "quantity": 4, "price": 10.0}],
        )
        result = GroupOrderService.join_group_order(
            self.db,
            self.group_id,
            "user2",
            [{"productId": "p1", "quantity": 3, "price": 10.0}],
        )

        self.assertEqual(result.total_quantity, 7)
        self.assertEqual(result.total_cost, 70.0)
        self.assertEqual(result.discount, 0.10)
        self.assertAlmostEqual(result.payment_collected, 63.0)
        self.assertEqual(result.member_count, 2)

        data = self._group()
        self.assertEqual([m["userId"] for m in data["memberIds"]], ["user1", "user2"])
        self.assertAlmostEqual(data["paymentCollected"], 63.0)

    def test_rejoin_records_another_contribution(self) -> None:
        items = [{"productId": "p1", "quantity": 6, "price": 10.0}]
        GroupOrderService.join_group_order(self.db, self.group_id, "user1", items)
        with self.assertLogs("hawkerhub.group_order.services", level="WARNING"):
            result = GroupOrderService.join_group_order(
                self.db, self.group_id, "user1", items
            )

        self.assertEqual(result.member_count, 2)
        self.assertEqual(result.total_quantity, 12)
        self.assertEqual(result.discount, 0.20)
        self.assertAlmostEqual(result.payment_collected, 96.0)

    def test_join_missing_group(self) -> None:
        with self.assertRaises(NotFoundError):
            GroupOrderService.join_group_order(
                self.db, "nope", "user1", [{"productId": "p1", "quantity": 1, "price": 1}]
            )

    def test_join_closed_group(self) -> None:
        GroupOrderService.close_group_order(self.db, self.group_id, "leader")
        with self.assertRaises(ConflictError):
            GroupOrderService.join_group_order(
                self.db,
                self.group_id,
                "user1",
                [{"productId": "p1", "quantity": 1, "price": 1}],
            )
        self.assertEqual(self._group()["memberIds"], [])

    def test_only_leader_can_close(self) -> None:
        with self.assertRaises(PermissionDeniedError):
            GroupOrderService.close_group_order(self.db, self.group_id, "user1")
        GroupOrderService.close_group_order(self.db, self.group_id, "leader")
        self.assertEqual(self._group()["status"], "closed")
        with self.assertRaises(ConflictError):
            GroupOrderService.close_group_order(self.db, self.group_id, "leader")

    def test_open_and_user_group_orders(self) -> None:
        GroupOrderService.join_group_order(
            self.db,
            self.group_id,
            "user1",
            [{"productId": "p1", "quantity": 1, "price": 5}],
        )
        other = GroupOrderService.create_group_order(self.db, "leader2", [], [])
        GroupOrderService.close_group_order(self.db, other["id"], "leader2")

        open_ids = [g["id"] for g in GroupOrderService.get_open_group_orders(self.db)]
        self.assertEqual(open_ids, [self.group_id])

        mine = GroupOrderService.get_user_group_orders(self.db, "user1")
        self.assertEqual([g["id"] for g in mine], [self.group_id])
        led = GroupOrderService.get_user_group_orders(self.db, "leader2")
        self.assertEqual([g["id"] for g in led], [other["id"]])


class JoinTransactionTestCase(unittest.TestCase):
    """Exercise the transactional body against a MagicMock transaction."""

    def test_reads_and_writes_through_transaction(self) -> None:
        db = MagicMock()
        group_ref = db.collection.return_value.document.return_value
        snapshot = MagicMock()
        snapshot.exists = True
        snapshot.to_dict.return_value = {
            "status": "open",
            "memberIds": [],
            "totalCost": 0.0,
            "discountTiers": TIERS,
        }
        group_ref.get.return_value = snapshot
        transaction = db.transaction.return_value

        with patch(
            "hawkerhub.group_order.services.firestore.transactional",
            side_effect=identity_transactional,
        ):
            result = GroupOrderService.join_group_order(
                db, "g1", "user1", [{"productId": "p1", "quantity": 5, "price": 2.0}]
            )

        group_ref.get.assert_called_with(transaction=transaction)
        transaction.update.assert_called_once()
        ref, updates = transaction.update.call_args[0]
        self.assertEqual(ref, group_ref)
        self.assertEqual(updates["totalQuantity"], 5)
        self.assertEqual(updates["discount"], 0.10)
        self.assertAlmostEqual(updates["paymentCollected"], 9.0)
        self.assertEqual(result.to_dict()["memberCount"], 1)


if __name__ == "__main__":
    unittest.main()
