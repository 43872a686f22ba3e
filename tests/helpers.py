"""Shared base class for route tests."""

from __future__ import annotations

import unittest
from typing import Any
from unittest.mock import MagicMock, patch

from mockfirestore import MockFirestore

from hawkerhub import create_app
from tests.conftest import MockTransaction, identity_transactional, patch_mockfirestore


class BaseRouteTestCase(unittest.TestCase):
    """App and test client wired to an in-memory Firestore."""

    def setUp(self) -> None:
        patch_mockfirestore()
        self.db = MockFirestore()
        self.db.transaction = MagicMock(side_effect=MockTransaction)

        patchers = {
            "init_app": patch("firebase_admin.initialize_app"),
            "client": patch("firebase_admin.firestore.client", return_value=self.db),
            "transactional": patch(
                "firebase_admin.firestore.transactional",
                side_effect=identity_transactional,
            ),
            "messaging": patch("hawkerhub.notifications.services.messaging.send"),
        }
        self.mocks = {name: p.start() for name, p in patchers.items()}
        for p in patchers.values():
            self.addCleanup(p.stop)

        self.app = create_app({"TESTING": True, "WTF_CSRF_ENABLED": False})
        self.client = self.app.test_client()

    def create_user(self, uid: str, role: str = "vendor", **fields: Any) -> None:
        self.db.collection("users").document(uid).set(
            {"name": uid.title(), "role": role, **fields}
        )

    def login(self, uid: str, role: str = "vendor", **fields: Any) -> None:
        """Create the user's profile and put them in the session."""
        self.create_user(uid, role, **fields)
        with self.client.session_transaction() as sess:
            sess["user_id"] = uid
