#!/usr/bin/env python3
"""
Failure Handler - Single Recovery Path for Lost Sessions

Invoked when the refresh operation runs out of retries. Runs at most once
per manager instance:

1. Cancel every timer the manager owns
2. Run emergency auth cleanup
3. Tell the user the session expired and offer a Sign In action
4. After a short grace period, sign out through the session provider
5. Navigate to the safe entry point, whether or not sign-out succeeded

The in-progress flag is never cleared automatically. A failed session is
recovered by a fresh manager instance (e.g. after navigation); cleanup()
on the manager is the only thing that resets it.
"""

import logging
from typing import Union

from shared.alert_service import NotificationKind
from shared.session_errors import FailureReason
from shared.task_scheduler import TimerRegistry

logger = logging.getLogger(__name__)

FORCED_SIGN_OUT_TIMER = "forced_sign_out"


class FailureHandler:
    """Single-flight handling of unrecoverable session failures."""

    def __init__(
        self,
        session_provider,
        notifier,
        navigator,
        emergency_cleanup,
        scheduler,
        timers: TimerRegistry,
        settings,
    ):
        """
        Args:
            session_provider: Provides end_session(options)
            notifier: Notification surface (notify(kind, message, options))
            navigator: reload() / navigate(url) for the hard fallback
            emergency_cleanup: Async callable clearing client auth state
            scheduler: Task scheduler
            timers: Timer registry owned by the manager
            settings: SessionKeeperSettings
        """
        self._provider = session_provider
        self._notifier = notifier
        self._navigator = navigator
        self._emergency_cleanup = emergency_cleanup
        self._scheduler = scheduler
        self._timers = timers
        self._settings = settings

        self.in_progress = False
        self.last_reason = None

    async def handle_token_failure(self, reason: Union[FailureReason, str]):
        """
        Enter the failure sequence, or do nothing if it is already running.

        Args:
            reason: Why the session could not be kept alive
        """
        if self.in_progress:
            logger.info("Already handling token failure")
            return

        self.in_progress = True
        self.last_reason = reason
        label = reason.value if isinstance(reason, FailureReason) else reason
        logger.error(f"Token failure: {label}")

        try:
            cancelled = self._timers.cancel_all()
            logger.info(f"Cancelled {cancelled} active timer(s)")

            await self._emergency_cleanup()

            self._notifier.notify(
                NotificationKind.ERROR,
                "Session expired",
                {
                    "description": "Please sign in again to continue.",
                    "duration_ms": 5000,
                    "action": {"label": "Sign In", "callback": self._navigator.reload},
                },
            )

            self._timers.schedule(
                FORCED_SIGN_OUT_TIMER,
                self._scheduler.call_later(self._settings.failure_grace_seconds, self._force_sign_out),
            )
        except Exception as e:
            logger.error(f"Error handling token failure: {e}", exc_info=True)
            # Force reload as last resort
            self._navigator.reload()

    async def _force_sign_out(self):
        callback_url = self._settings.sign_out_callback_url
        try:
            await self._provider.end_session({"callback_url": callback_url})
            logger.info(f"Forced sign-out completed - redirecting to {callback_url}")
        except Exception as e:
            logger.error(f"Sign out failed: {e}")
        self._navigator.navigate(callback_url)

    def reset(self):
        """Clear the in-progress flag (manager teardown only)."""
        self.in_progress = False
        self.last_reason = None
