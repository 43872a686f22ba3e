"""Data models for notifications."""

from __future__ import annotations

from typing import Any, TypedDict


class Notification(TypedDict, total=False):
    """An in-app notification."""

    id: str
    type: str
    title: str
    body: str
    icon: str
    timestamp: Any
    read: bool
    data: dict[str, Any]
