"""Tests for the app factory."""

import os
import unittest
from unittest.mock import patch

from hawkerhub import create_app, get_notification_service
from hawkerhub.notifications.services import NotificationService


class AppFactoryTestCase(unittest.TestCase):
    """Test case for the app factory."""

    @patch("firebase_admin.initialize_app")
    @patch("firebase_admin.firestore.client")
    def test_404_error_handler(self, mock_firestore_client, mock_init_app):
        """Unknown routes get a JSON 404."""
        app = create_app({"TESTING": True, "WTF_CSRF_ENABLED": False})

        with app.test_client() as client:
            response = client.get("/non_existent_page")
            self.assertEqual(response.status_code, 404)
            self.assertEqual(response.get_json(), {"message": "Not found"})

    def test_405_error_handler(self):
        app = create_app({"TESTING": True})
        with app.test_client() as client:
            response = client.delete("/api/health")
            self.assertEqual(response.status_code, 405)
            self.assertEqual(response.get_json(), {"message": "Method not allowed"})

    def test_mail_config_sanitization(self):
        """Test that MAIL_USERNAME and MAIL_PASSWORD are sanitized correctly."""
        env_vars = {
            "MAIL_USERNAME": '"user@example.com"',
            "MAIL_PASSWORD": '"xxxx xxxx xxxx"',
            "SECRET_KEY": "dev",
        }

        with patch.dict(os.environ, env_vars):
            app = create_app({"TESTING": True})

            # Username should have quotes stripped
            self.assertEqual(app.config["MAIL_USERNAME"], "user@example.com")

            # Password should have quotes stripped AND spaces removed
            self.assertEqual(app.config["MAIL_PASSWORD"], "xxxxxxxxxxxx")

    def test_empty_env_values_use_defaults(self):
        env_vars = {"ENVIRONMENT": "  ", "CACHE_TTL_MINUTES": "", "PUSH_ENABLED": "0"}
        with patch.dict(os.environ, env_vars):
            app = create_app({"TESTING": True})
            self.assertEqual(app.config["ENVIRONMENT"], "development")
            self.assertEqual(app.config["CACHE_TTL_MINUTES"], 30)
            self.assertFalse(app.config["PUSH_ENABLED"])

    def test_notification_service_is_registered(self):
        app = create_app({"TESTING": True, "MAX_NOTIFICATIONS": 5})
        with app.app_context():
            service = get_notification_service()
        self.assertIsInstance(service, NotificationService)
        self.assertEqual(service.max_notifications, 5)
        # Push is never sent from tests.
        self.assertFalse(service.push_enabled)

    @patch("hawkerhub._init_firebase")
    def test_firebase_skipped_when_testing(self, mock_init_firebase):
        create_app({"TESTING": True})
        mock_init_firebase.assert_not_called()


if __name__ == "__main__":
    unittest.main()
