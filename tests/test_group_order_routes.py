"""Tests for the group order routes."""

from __future__ import annotations

import unittest

from tests.helpers import BaseRouteTestCase

TIERS = [{"quantity": 10, "discount": 0.2}, {"quantity": 5, "discount": 0.1}]


class GroupOrderRoutesTestCase(BaseRouteTestCase):
    def _create(self) -> str:
        self.login("leader")
        response = self.client.post(
            "/group-orders",
            json={
                "title": "Weekly onions",
                "products": [{"productId": "p1", "name": "Onions"}],
                "discountTiers": TIERS,
                "deadline": "2030-01-01T10:00:00",
            },
        )
        self.assertEqual(response.status_code, 201)
        return response.get_json()["id"]

    def test_create_sorts_tiers(self) -> None:
        group_id = self._create()
        data = self.db.collection("groupOrders").document(group_id).get().to_dict()
        self.assertEqual([t["quantity"] for t in data["discountTiers"]], [5, 10])
        self.assertEqual(data["title"], "Weekly onions")

    def test_create_rejects_bad_deadline(self) -> None:
        self.login("leader")
        response = self.client.post(
            "/group-orders", json={"products": [], "deadline": "next week"}
        )
        self.assertEqual(response.status_code, 400)

    def test_create_rejects_long_title(self) -> None:
        self.login("leader")
        response = self.client.post(
            "/group-orders", json={"products": [], "title": "x" * 121}
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("title", response.get_json()["message"])

    def test_create_without_deadline(self) -> None:
        self.login("leader")
        response = self.client.post("/group-orders", json={"products": []})
        self.assertEqual(response.status_code, 201)
        self.assertNotIn("deadline", response.get_json())

    def test_requires_login(self) -> None:
        response = self.client.get("/group-orders")
        self.assertEqual(response.status_code, 401)

    def test_join_and_view(self) -> None:
        group_id = self._create()
        self.login("member")

        response = self.client.post(
            f"/group-orders/{group_id}/join",
            json={"items": [{"productId": "p1", "quantity": 7, "price": 10}]},
        )

        self.assertEqual(response.status_code, 200)
        result = response.get_json()
        self.assertEqual(result["totalQuantity"], 7)
        self.assertEqual(result["discount"], 0.1)
        self.assertAlmostEqual(result["paymentCollected"], 63.0)

        view = self.client.get(f"/group-orders/{group_id}").get_json()
        self.assertEqual(view["memberIds"][0]["userId"], "member")

        mine = self.client.get("/group-orders/mine").get_json()
        self.assertEqual([g["id"] for g in mine], [group_id])

    def test_join_validation(self) -> None:
        group_id = self._create()
        response = self.client.post(f"/group-orders/{group_id}/join", json={"items": []})
        self.assertEqual(response.status_code, 400)

    def test_join_unknown_group(self) -> None:
        self.login("member")
        response = self.client.post(
            "/group-orders/missing/join",
            json={"items": [{"productId": "p1", "quantity": 1, "price": 1}]},
        )
        self.assertEqual(response.status_code, 404)

    def test_close_flow(self) -> None:
        group_id = self._create()

        self.login("member")
        self.assertEqual(
            self.client.post(f"/group-orders/{group_id}/close").status_code, 403
        )

        self.login("leader")
        self.assertEqual(
            self.client.post(f"/group-orders/{group_id}/close").status_code, 200
        )
        self.assertEqual(self.client.get("/group-orders").get_json(), [])

        self.login("member")
        response = self.client.post(
            f"/group-orders/{group_id}/join",
            json={"items": [{"productId": "p1", "quantity": 1, "price": 1}]},
        )
        self.assertEqual(response.status_code, 409)


if __name__ == "__main__":
    unittest.main()
