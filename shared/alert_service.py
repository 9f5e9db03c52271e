#!/usr/bin/env python3
"""
Alert Service Module

User-facing notification surface for the session keeper.

Architecture:
    SessionKeeper -> NotificationService -> UI subscribers (toasts)
                                         -> Pub/Sub topic (optional, on GCP)

Only two failure classes ever reach the user:
    - Exhausted refresh retries: "Session expired" with a Sign In action
    - Exhausted initialization retries: "System Error" with a Refresh action

notify() is fire-and-forget. It never raises: a failing subscriber or a
failed publish is logged and the caller carries on.

Usage:
    from shared.alert_service import NotificationService, NotificationKind

    notifier = NotificationService(config)
    notifier.subscribe(render_toast)
    notifier.notify(
        NotificationKind.ERROR,
        "Session expired",
        {
            "description": "Please sign in again to continue.",
            "duration_ms": 5000,
            "action": {"label": "Sign In", "callback": navigator.reload},
        },
    )
"""

import json
import logging
import os
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from shared.secret_manager import is_running_on_gcp, get_project_id

logger = logging.getLogger(__name__)


class NotificationKind(Enum):
    """Notification kinds understood by the UI layer."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"


class NotificationService:
    """
    Dispatches notifications to in-process subscribers and, when enabled,
    relays them to Google Cloud Pub/Sub.

    On GCP with notifications.pubsub_enabled:
        - Publishes to the configured topic (default "session-keeper-notifications")

    Locally:
        - Subscribers only; set NOTIFY_DRY_RUN=true to log relay payloads
    """

    DEFAULT_TOPIC = "session-keeper-notifications"

    def __init__(self, config: Optional[Dict[str, Any]] = None, source: str = "SESSION_KEEPER"):
        """
        Args:
            config: Configuration dictionary (reads the "notifications" section)
            source: Name stamped on relayed payloads
        """
        notify_config = (config or {}).get("notifications", {})
        self.source = source
        self._subscribers: List[Callable[[Dict[str, Any]], None]] = []
        self._pubsub_enabled = notify_config.get("pubsub_enabled", False)
        self._topic = notify_config.get("topic", self.DEFAULT_TOPIC)
        self._dry_run = os.environ.get("NOTIFY_DRY_RUN", "").lower() == "true"
        self._publisher = None
        self._topic_path = None

        if self._pubsub_enabled and not self._dry_run:
            self._initialize_publisher()

    def _initialize_publisher(self) -> None:
        """Initialize the Pub/Sub publisher if running on GCP."""
        if not is_running_on_gcp():
            logger.info("Not running on GCP - notifications delivered in-process only")
            return

        try:
            from google.cloud import pubsub_v1

            project_id = get_project_id()
            if not project_id:
                logger.error("Could not determine GCP project ID for Pub/Sub")
                return

            self._publisher = pubsub_v1.PublisherClient()
            self._topic_path = self._publisher.topic_path(project_id, self._topic)
            logger.info(f"Notification relay initialized with Pub/Sub topic: {self._topic_path}")
        except Exception as e:
            logger.error(f"Failed to initialize Pub/Sub publisher: {e}")

    def subscribe(self, callback: Callable[[Dict[str, Any]], None]) -> Callable[[], None]:
        """
        Register a UI subscriber.

        Returns:
            A function that removes the subscriber again.
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def notify(
        self,
        kind: NotificationKind,
        message: str,
        options: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Surface a notification to the user.

        Args:
            kind: Notification kind
            message: Short headline
            options: description, duration_ms, action {label, callback}
        """
        options = options or {}
        notification = {
            "kind": kind.value,
            "message": message,
            "description": options.get("description"),
            "duration_ms": options.get("duration_ms"),
            "action": options.get("action"),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        log_msg = f"NOTIFY [{kind.value.upper()}] {message}"
        if notification["description"]:
            log_msg += f" - {notification['description']}"
        if kind in (NotificationKind.ERROR, NotificationKind.WARNING):
            logger.warning(log_msg)
        else:
            logger.info(log_msg)

        for subscriber in list(self._subscribers):
            try:
                subscriber(notification)
            except Exception as e:
                logger.error(f"Notification subscriber failed: {e}", exc_info=True)

        self._relay(notification)

    def _relay(self, notification: Dict[str, Any]) -> None:
        """Publish a JSON-safe copy of the notification to Pub/Sub."""
        action = notification.get("action") or {}
        payload = {
            "source": self.source,
            "kind": notification["kind"],
            "message": notification["message"],
            "description": notification["description"],
            "action_label": action.get("label"),
            "timestamp": notification["timestamp"],
        }

        if self._dry_run:
            logger.info(f"DRY RUN - Would publish: {json.dumps(payload)}")
            return

        if not self._publisher:
            return

        try:
            future = self._publisher.publish(self._topic_path, json.dumps(payload).encode("utf-8"))
            message_id = future.result(timeout=5)
            logger.debug(f"Notification published to Pub/Sub with message ID: {message_id}")
        except Exception as e:
            logger.error(f"Failed to publish notification to Pub/Sub: {e}")
