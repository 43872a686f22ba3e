"""Notification service: in-app history, Firestore records and FCM push."""

from __future__ import annotations

import datetime
import logging
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from firebase_admin import exceptions, firestore, messaging

from hawkerhub.core.constants import (
    DEFAULT_NOTIFICATION_ICON,
    DEFAULT_NOTIFICATION_TAG,
    MAX_NOTIFICATIONS,
    NOTIFICATIONS_COLLECTION,
    USERS_COLLECTION,
)
from hawkerhub.utils import EmailError, send_email

from .models import Notification

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

logger = logging.getLogger(__name__)

Listener = Callable[[list[Notification]], None]

# Title and body templates per notification type; {placeholders} come from data.
MESSAGES: dict[str, tuple[str, str]] = {
    "new_order": ("New Order", "New order received from {vendorName}"),
    "order_status_changed": (
        "Order Update",
        "Order {orderId} is now {status}",
    ),
    "payment_received": (
        "Payment Confirmed",
        "Payment of ₹{amount} received for order {orderId}",
    ),
    "order_delivered": ("Delivery Update", "Order {orderId} has been delivered"),
    "low_stock": ("Stock Alert", "{productName} is running low ({quantity} left)"),
    "group_invite": ("Group Order Invite", "You have been invited to a group order"),
    "product_approved": ("Product Approved", "{productName} is now listed"),
    "flash_sale": (
        "New Flash Sale!",
        "A new flash sale for {productName} has started!",
    ),
}
DEFAULT_TITLE = "System Update"
DEFAULT_BODY = "You have a new notification"

TOAST_TYPES = {
    "new_order": "success",
    "payment_received": "success",
    "product_approved": "success",
    "flash_sale": "success",
    "low_stock": "warning",
    "order_cancelled": "warning",
    "payment_failed": "error",
    "system_error": "error",
}

NOTIFICATION_ACTIONS = [
    {"action": "view", "title": "View"},
    {"action": "dismiss", "title": "Dismiss"},
]


class _SafeDict(dict):
    """Leave unknown placeholders untouched when formatting templates."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def format_message(notification_type: str, data: dict[str, Any]) -> tuple[str, str]:
    """Return the title and body for a notification type."""
    if notification_type not in MESSAGES:
        return DEFAULT_TITLE, data.get("message") or DEFAULT_BODY
    title, body = MESSAGES[notification_type]
    values = _SafeDict({k: v for k, v in data.items() if v is not None})
    return title, body.format_map(values)


def toast_type(notification_type: str) -> str:
    """Map a notification type to the toast style the client shows."""
    return TOAST_TYPES.get(notification_type, "info")


def deep_link(notification_type: str, data: dict[str, Any]) -> str:
    """Return the in-app URL a notification should open."""
    if data.get("url"):
        return str(data["url"])
    if data.get("orderId"):
        return f"/orders/{data['orderId']}"
    if data.get("groupId"):
        return f"/group-orders/{data['groupId']}"
    if data.get("productId"):
        return f"/products/{data['productId']}"
    return "/"


def build_push_payload(
    title: str,
    body: str,
    data: dict[str, Any],
    icon: str = DEFAULT_NOTIFICATION_ICON,
) -> dict[str, Any]:
    """Return the push payload shape the client's background handler reads."""
    return {
        "notification": {"title": title, "body": body, "icon": icon},
        # FCM data values must be strings.
        "data": {k: str(v) for k, v in data.items() if v is not None},
    }


def build_push_message(token: str, payload: dict[str, Any]) -> messaging.Message:
    """Wrap a push payload in an FCM message with web push actions."""
    notification = payload["notification"]
    data = payload["data"]
    return messaging.Message(
        token=token,
        notification=messaging.Notification(
            title=notification["title"], body=notification["body"]
        ),
        data=data,
        webpush=messaging.WebpushConfig(
            notification=messaging.WebpushNotification(
                title=notification["title"],
                body=notification["body"],
                icon=notification["icon"],
                tag=data.get("tag", DEFAULT_NOTIFICATION_TAG),
                require_interaction=True,
                actions=[
                    messaging.WebpushNotificationAction(a["action"], a["title"])
                    for a in NOTIFICATION_ACTIONS
                ],
            ),
            fcm_options=messaging.WebpushFCMOptions(link=data.get("url", "/")),
        ),
    )


def render_background_notification(payload: dict[str, Any]) -> dict[str, Any]:
    """Return the OS notification a background message handler displays.

    Values fall back from ``notification`` to ``data`` to defaults.
    """
    notification = payload.get("notification") or {}
    data = payload.get("data") or {}
    return {
        "title": notification.get("title")
        or data.get("title")
        or "HawkerHub Notification",
        "body": notification.get("body") or data.get("body") or "You have a new update!",
        "icon": notification.get("icon") or data.get("icon") or DEFAULT_NOTIFICATION_ICON,
        "badge": DEFAULT_NOTIFICATION_ICON,
        "tag": data.get("tag") or DEFAULT_NOTIFICATION_TAG,
        "data": {**data, "url": data.get("url") or "/"},
        "actions": list(NOTIFICATION_ACTIONS),
        "requireInteraction": True,
    }


def resolve_notification_click(action: str | None, data: dict[str, Any]) -> str | None:
    """Return the URL to open for a notification click, or None to just close."""
    if action == "dismiss":
        return None
    return data.get("url") or "/"


class NotificationService:
    """Creates notifications and fans them out to storage, listeners and push.

    One instance lives on the Flask app; call ``shutdown()`` when the app
    stops.
    """

    def __init__(
        self,
        max_notifications: int = MAX_NOTIFICATIONS,
        icon: str = DEFAULT_NOTIFICATION_ICON,
        push_enabled: bool = True,
    ) -> None:
        self.max_notifications = max_notifications
        self.icon = icon
        self.push_enabled = push_enabled
        self.notifications: list[Notification] = []
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        self._listeners = [cb for cb in self._listeners if cb is not listener]

    def _notify_listeners(self) -> None:
        snapshot = list(self.notifications)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Notification listener error: {e}")

    def add_notification(self, notification: dict[str, Any]) -> Notification:
        """Add a notification to the newest-first in-memory history."""
        record: Notification = {
            "id": notification.get("id") or uuid.uuid4().hex,
            "title": notification.get("title", DEFAULT_TITLE),
            "body": notification.get("body", DEFAULT_BODY),
            "icon": notification.get("icon") or self.icon,
            "timestamp": notification.get("timestamp")
            or datetime.datetime.now(datetime.timezone.utc),
            "read": bool(notification.get("read", False)),
            "type": notification.get("type") or "general",
            "data": notification.get("data") or {},
        }
        self.notifications.insert(0, record)
        del self.notifications[self.max_notifications :]
        self._notify_listeners()
        return record

    def create_order_notification(
        self, db: Client, notification_type: str, data: dict[str, Any]
    ) -> Notification:
        """Build, store and deliver a notification about an order event."""
        title, body = format_message(notification_type, data)
        record = self.add_notification(
            {"type": notification_type, "title": title, "body": body, "data": data}
        )

        recipient_id = data.get("recipientId")
        if not recipient_id:
            return record

        db.collection(NOTIFICATIONS_COLLECTION).document(record["id"]).set(
            {
                "recipientId": recipient_id,
                "type": notification_type,
                "title": title,
                "body": body,
                "data": data,
                "toastType": toast_type(notification_type),
                "read": False,
                "createdAt": firestore.SERVER_TIMESTAMP,
            }
        )

        recipient_doc = db.collection(USERS_COLLECTION).document(recipient_id).get()
        recipient = (recipient_doc.to_dict() or {}) if recipient_doc.exists else {}
        self._push(recipient, notification_type, title, body, data)
        self._email(recipient, title, body)
        return record

    def _push(
        self,
        recipient: dict[str, Any],
        notification_type: str,
        title: str,
        body: str,
        data: dict[str, Any],
    ) -> None:
        token = recipient.get("fcmToken")
        if not token or not self.push_enabled:
            return
        payload = build_push_payload(
            title,
            body,
            {**data, "type": notification_type, "url": deep_link(notification_type, data)},
            icon=self.icon,
        )
        try:
            message_id = messaging.send(build_push_message(token, payload))
            logger.info(f"Push sent: {message_id}")
        except (exceptions.FirebaseError, ValueError) as e:
            # Push is not retried; the stored notification remains.
            logger.warning(f"Push to {recipient.get('name', 'user')} failed: {e}")

    def _email(self, recipient: dict[str, Any], title: str, body: str) -> None:
        email = recipient.get("email")
        if not email or not recipient.get("emailNotifications"):
            return
        try:
            send_email(to=email, subject=f"HawkerHub: {title}", body=body)
        except EmailError as e:
            logger.error(f"Email failed: {e}")

    @staticmethod
    def get_user_notifications(
        db: Client, user_id: str, limit: int = MAX_NOTIFICATIONS
    ) -> list[dict[str, Any]]:
        """Return a user's stored notifications, newest first."""
        query = (
            db.collection(NOTIFICATIONS_COLLECTION)
            .where(filter=firestore.FieldFilter("recipientId", "==", user_id))
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )
        return [{"id": doc.id, **(doc.to_dict() or {})} for doc in query.stream()]

    @staticmethod
    def mark_read(db: Client, user_id: str, notification_id: str) -> bool:
        """Mark one of the user's notifications as read."""
        ref = db.collection(NOTIFICATIONS_COLLECTION).document(notification_id)
        snapshot = ref.get()
        if not snapshot.exists or (snapshot.to_dict() or {}).get("recipientId") != user_id:
            return False
        ref.update({"read": True})
        return True

    @staticmethod
    def register_token(db: Client, user_id: str, token: str) -> None:
        """Store the device's FCM registration token on the user profile."""
        db.collection(USERS_COLLECTION).document(user_id).set(
            {"fcmToken": token}, merge=True
        )

    def shutdown(self) -> None:
        """Drop listeners and in-memory history."""
        self._listeners.clear()
        self.notifications.clear()
