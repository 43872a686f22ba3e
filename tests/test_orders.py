"""Tests for vendor orders."""

from __future__ import annotations

import datetime
import unittest
from unittest.mock import MagicMock, patch

from mockfirestore import MockFirestore

from hawkerhub.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from hawkerhub.orders.services import OrderService
from tests.conftest import MockTransaction, identity_transactional, patch_mockfirestore
from tests.helpers import BaseRouteTestCase


def _items() -> list[dict]:
    return [
        {"productId": "onion", "supplierId": "sup1", "quantity": 3, "price": 30},
        {"productId": "garlic", "supplierId": "sup1", "quantity": 1, "price": 80},
        {"productId": "oil", "supplierId": "sup2", "quantity": 2, "price": 150},
    ]


class OrderServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        patch_mockfirestore()
        self.db = MockFirestore()
        self.db.transaction = MagicMock(side_effect=MockTransaction)
        patcher = patch(
            "hawkerhub.orders.services.firestore.transactional",
            side_effect=identity_transactional,
        )
        patcher.start()
        self.addCleanup(patcher.stop)

        products = self.db.collection("products")
        products.document("onion").set({"availableQuantity": 10})
        products.document("garlic").set({"availableQuantity": 1})
        products.document("oil").set({"availableQuantity": 5})

    def _stock(self, product_id: str) -> int:
        return self.db.collection("products").document(product_id).get().to_dict()[
            "availableQuantity"
        ]

    def test_create_order_splits_per_supplier(self) -> None:
        order_ids = OrderService.create_order(
            self.db, {"vendorId": "v1", "items": _items()}
        )
        self.assertEqual(len(order_ids), 2)

        orders = {o["supplierId"]: o for o in (OrderService.get_order(self.db, i) for i in order_ids)}
        self.assertEqual(orders["sup1"]["totalAmount"], 170)
        self.assertEqual(orders["sup2"]["totalAmount"], 300)
        self.assertEqual(orders["sup1"]["status"], "pending")

        self.assertEqual(self._stock("onion"), 7)
        self.assertEqual(self._stock("garlic"), 0)
        self.assertEqual(self._stock("oil"), 3)

    def test_insufficient_stock_writes_nothing(self) -> None:
        items = _items()
        items[1]["quantity"] = 2
        with self.assertRaises(ValidationError):
            OrderService.create_order(self.db, {"vendorId": "v1", "items": items})
        # document() leaves an empty placeholder in mockfirestore.
        written = [d for d in self.db.collection("orders").stream() if d.to_dict()]
        self.assertEqual(written, [])
        self.assertEqual(self._stock("onion"), 10)

    def test_repeated_product_lines_share_one_stock_check(self) -> None:
        items = [
            {"productId": "onion", "supplierId": "sup1", "quantity": 6, "price": 30},
            {"productId": "onion", "supplierId": "sup1", "quantity": 6, "price": 30},
        ]
        with self.assertRaises(ValidationError):
            OrderService.create_order(self.db, {"vendorId": "v1", "items": items})
        self.assertEqual(self._stock("onion"), 10)

        items[1]["quantity"] = 4
        OrderService.create_order(self.db, {"vendorId": "v1", "items": items})
        self.assertEqual(self._stock("onion"), 0)

    def test_unknown_product(self) -> None:
        items = [{"productId": "salt", "supplierId": "sup1", "quantity": 1, "price": 5}]
        with self.assertRaises(NotFoundError):
            OrderService.create_order(self.db, {"vendorId": "v1", "items": items})

    def test_validation(self) -> None:
        with self.assertRaises(ValidationError):
            OrderService.create_order(self.db, {"items": _items()})
        with self.assertRaises(ValidationError):
            OrderService.create_order(self.db, {"vendorId": "v1", "items": []})

    def test_client_key_replay_returns_same_orders(self) -> None:
        data = {"vendorId": "v1", "items": _items()}
        first = OrderService.create_order(self.db, data, client_key="abc")
        second = OrderService.create_order(self.db, data, client_key="abc")

        self.assertEqual(sorted(first), ["abc_sup1", "abc_sup2"])
        self.assertEqual(sorted(second), sorted(first))
        self.assertEqual(self._stock("onion"), 7)

    def test_status_update_notifies_vendor(self) -> None:
        [order_id, _] = OrderService.create_order(
            self.db, {"vendorId": "v1", "items": _items()}
        )
        notifier = MagicMock()

        OrderService.update_order_status(self.db, order_id, "shipped", notifier=notifier)

        self.assertEqual(OrderService.get_order(self.db, order_id)["status"], "shipped")
        notifier.create_order_notification.assert_called_once_with(
            self.db,
            "order_status_changed",
            {"orderId": order_id, "status": "shipped", "recipientId": "v1"},
        )
        with self.assertRaises(ValidationError):
            OrderService.update_order_status(self.db, order_id, "teleported")

    def test_cancel_restores_stock(self) -> None:
        [order_id, _] = OrderService.create_order(
            self.db, {"vendorId": "v1", "items": _items()}
        )

        with self.assertRaises(PermissionDeniedError):
            OrderService.cancel_order(self.db, order_id, "v2")

        OrderService.cancel_order(self.db, order_id, "v1")
        self.assertEqual(OrderService.get_order(self.db, order_id)["status"], "cancelled")
        self.assertEqual(self._stock("onion"), 10)
        self.assertEqual(self._stock("garlic"), 1)

        with self.assertRaises(ConflictError):
            OrderService.cancel_order(self.db, order_id, "v1")

    def test_vendor_orders_newest_first(self) -> None:
        now = datetime.datetime(2024, 5, 1, tzinfo=datetime.timezone.utc)
        orders = self.db.collection("orders")
        orders.document("o1").set({"vendorId": "v1", "createdAt": now})
        orders.document("o2").set(
            {"vendorId": "v1", "createdAt": now + datetime.timedelta(hours=1)}
        )
        orders.document("o3").set({"vendorId": "v2", "createdAt": now})

        result = OrderService.get_vendor_orders(self.db, "v1")
        self.assertEqual([o["id"] for o in result], ["o2", "o1"])


class SupplierOrdersTestCase(unittest.TestCase):
    def test_vendor_details_are_attached(self) -> None:
        db = MagicMock()
        order_doc = MagicMock(id="o1")
        order_doc.to_dict.return_value = {"vendorId": "v1", "supplierId": "sup1"}
        query = db.collection.return_value.where.return_value.order_by.return_value
        query.stream.return_value = [order_doc]

        vendor_snap = MagicMock(id="v1", exists=True)
        vendor_snap.to_dict.return_value = {"name": "Ravi", "phoneNumber": "9876543210"}
        db.get_all.return_value = [vendor_snap]

        [order] = OrderService.get_supplier_orders(db, "sup1")

        self.assertEqual(order["vendorName"], "Ravi")
        self.assertEqual(order["vendorPhone"], "9876543210")


class OrderRoutesTestCase(BaseRouteTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.db.collection("products").document("onion").set({"availableQuantity": 10})
        self.create_user("sup1", role="supplier", fcmToken="device-token")

    def _place(self) -> str:
        self.login("v1", role="vendor")
        response = self.client.post(
            "/orders",
            json={
                "items": [
                    {"productId": "onion", "supplierId": "sup1", "quantity": 2, "price": 30}
                ]
            },
        )
        self.assertEqual(response.status_code, 201)
        return response.get_json()["orderIds"][0]

    def test_place_order_notifies_supplier(self) -> None:
        order_id = self._place()
        stored = list(self.db.collection("notifications").stream())
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0].to_dict()["recipientId"], "sup1")
        self.assertEqual(stored[0].to_dict()["data"]["orderId"], order_id)

    def test_supplier_updates_status(self) -> None:
        order_id = self._place()
        self.login("sup1", role="supplier")
        response = self.client.post(f"/orders/{order_id}/status", json={"status": "confirmed"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get(f"/orders/{order_id}").get_json()["status"], "confirmed")

    def test_outsider_cannot_view_order(self) -> None:
        order_id = self._place()
        self.login("v2", role="vendor")
        self.assertEqual(self.client.get(f"/orders/{order_id}").status_code, 403)

    def test_vendor_cancels(self) -> None:
        order_id = self._place()
        response = self.client.post(f"/orders/{order_id}/cancel")
        self.assertEqual(response.status_code, 200)
        stock = self.db.collection("products").document("onion").get().to_dict()
        self.assertEqual(stock["availableQuantity"], 10)

    def test_insufficient_stock(self) -> None:
        self.login("v1", role="vendor")
        response = self.client.post(
            "/orders",
            json={
                "items": [
                    {"productId": "onion", "supplierId": "sup1", "quantity": 50, "price": 30}
                ]
            },
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("Insufficient stock", response.get_json()["message"])


if __name__ == "__main__":
    unittest.main()
