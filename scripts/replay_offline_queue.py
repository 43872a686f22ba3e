"""
Replay an offline queue file exported from a device against Firestore.

Usage: KEY_PATH=service-account.json python scripts/replay_offline_queue.py queue.json
"""

from __future__ import annotations

import os
import sys

import firebase_admin
from firebase_admin import credentials, firestore

from hawkerhub import create_app, get_notification_service
from hawkerhub.offline import (
    FirestoreBackend,
    JsonFileStorage,
    OfflineService,
    SyncEvent,
)


def initialize_app() -> firebase_admin.App:
    """Initializes the Firebase app from the service account key."""
    key_path = os.environ.get("KEY_PATH")
    if not key_path:
        print("Error: KEY_PATH environment variable must be set.")
        sys.exit(1)
    return firebase_admin.initialize_app(credentials.Certificate(key_path))


def print_event(event: SyncEvent) -> None:
    print(f"[{event.type.value}] {event.message}")


def main() -> None:
    """Main entry point for the replay script."""
    if len(sys.argv) != 2:
        print("Usage: replay_offline_queue.py <queue.json>")
        sys.exit(1)

    try:
        app = initialize_app()
        # The Flask app reuses the default Firebase app and provides mail and
        # notification config for replayed status changes.
        flask_app = create_app()
        with flask_app.app_context():
            service = OfflineService(
                FirestoreBackend(
                    firestore.client(app=app), notifier=get_notification_service()
                ),
                JsonFileStorage(sys.argv[1]),
                online=False,
            )
            service.on_sync_status_change(print_event)
            service.start()
            print(f"Loaded {service.pending_count} pending operations.")

            report = service.handle_online()
            service.shutdown()
            flask_app.extensions["notifications"].shutdown()
        if report is None:
            print("Nothing to replay.")
            return

        print(f"Committed: {len(report.committed)}, failed: {len(report.failed)}")
        for operation in service.pending_operations:
            print(f"  {operation.id} {operation.type.value}: {operation.last_error}")
        if not report.success:
            sys.exit(1)
    except Exception as e:
        print(f"\nAn error occurred during replay: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
