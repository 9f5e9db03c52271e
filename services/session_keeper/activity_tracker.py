#!/usr/bin/env python3
"""
Activity Tracker - Feeds User Activity into the Refresh Scheduler

Listens for coarse interaction events and two environment events coming
from the host application through an EventSource:

| Event                | Handling                                          |
|----------------------|---------------------------------------------------|
| mousedown, mousemove | throttled (1/s) activity check                    |
| keypress, scroll     | throttled (1/s) activity check                    |
| touchstart, click    | throttled (1/s) activity check                    |
| visibility_restored  | record activity, then forced refresh              |
| online               | forced refresh                                    |

An activity check records lastActivity and forces a refresh when the
credential has less than activity_refresh_threshold_seconds left. It never
escalates failures itself: only the refresh operation does that.
"""

import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional

from shared.token_store import SharedTokenStore
from shared.token_validator import seconds_until_expiry

logger = logging.getLogger(__name__)

INTERACTION_EVENTS = ("mousedown", "mousemove", "keypress", "scroll", "touchstart", "click")
VISIBILITY_RESTORED = "visibility_restored"
CONNECTIVITY_RESTORED = "online"


class Subscription:
    """A registered event handler; unsubscribe() is idempotent."""

    def __init__(self, source: 'EventSource', event: str, handler: Callable):
        self._source = source
        self.event = event
        self.handler = handler
        self.active = True

    def unsubscribe(self):
        if self.active:
            self._source._remove(self)
            self.active = False


class EventSource:
    """
    Minimal observer hub the host application emits browser-style events into.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Subscription]] = defaultdict(list)

    def subscribe(self, event: str, handler: Callable[[Any], None]) -> Subscription:
        subscription = Subscription(self, event, handler)
        self._handlers[event].append(subscription)
        return subscription

    def emit(self, event: str, payload: Any = None):
        for subscription in list(self._handlers.get(event, ())):
            try:
                subscription.handler(payload)
            except Exception as e:
                logger.error(f"Handler for {event} failed: {e}", exc_info=True)

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._handlers.get(event, ()))
        return sum(len(subs) for subs in self._handlers.values())

    def _remove(self, subscription: Subscription):
        subs = self._handlers.get(subscription.event, [])
        if subscription in subs:
            subs.remove(subscription)


class Throttle:
    """
    Leading-edge throttle with one trailing call.

    The first call in a window runs immediately. Calls suppressed inside the
    window collapse into a single trailing call at the end of the window.
    """

    def __init__(self, func: Callable[[], Any], window: float, scheduler):
        self._func = func
        self._window = window
        self._scheduler = scheduler
        self._last_exec: Optional[float] = None
        self._trailing = None

    def __call__(self, *_args):
        now = self._scheduler.now()
        if self._last_exec is None or now - self._last_exec > self._window:
            self._last_exec = now
            self._func()
            return

        self._scheduler.cancel(self._trailing)
        remaining = self._window - (now - self._last_exec)
        self._trailing = self._scheduler.call_later(remaining, self._fire_trailing)

    def _fire_trailing(self):
        self._trailing = None
        self._last_exec = self._scheduler.now()
        self._func()

    def cancel(self):
        self._scheduler.cancel(self._trailing)
        self._trailing = None


class ActivityTracker:
    """Turns interaction and environment events into refresh requests."""

    def __init__(
        self,
        events: EventSource,
        session_provider,
        token_store: SharedTokenStore,
        scheduler,
        request_refresh: Callable[[bool], Awaitable[Any]],
        settings,
    ):
        """
        Args:
            events: Event source the host application emits into
            session_provider: Provides get_current_session()
            token_store: Shared token store (lastActivity is written here)
            scheduler: Task scheduler
            request_refresh: The refresh operation, called with force_refresh=True
            settings: SessionKeeperSettings
        """
        self._events = events
        self._provider = session_provider
        self._store = token_store
        self._scheduler = scheduler
        self._request_refresh = request_refresh
        self._settings = settings

        self._throttle = Throttle(self._dispatch_activity, settings.activity_throttle_seconds, scheduler)
        self._subscriptions: List[Subscription] = []

    @property
    def attached(self) -> bool:
        return bool(self._subscriptions)

    def attach(self):
        """Install event listeners (replacing any installed earlier)."""
        self.detach()
        for event in INTERACTION_EVENTS:
            self._subscriptions.append(self._events.subscribe(event, self._throttle))
        self._subscriptions.append(self._events.subscribe(VISIBILITY_RESTORED, self._on_visibility_restored))
        self._subscriptions.append(self._events.subscribe(CONNECTIVITY_RESTORED, self._on_connectivity_restored))
        logger.info("Activity listeners set up")

    def detach(self):
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()
        self._throttle.cancel()

    def _dispatch_activity(self):
        self._scheduler.spawn(self.handle_user_activity)

    def _on_visibility_restored(self, _payload=None):
        logger.info("Tab became visible - checking session")
        self._store.record_activity(self._scheduler.now())
        self._scheduler.spawn(self._request_refresh, True)

    def _on_connectivity_restored(self, _payload=None):
        logger.info("Connection restored - refreshing token")
        self._scheduler.spawn(self._request_refresh, True)

    async def handle_user_activity(self):
        """Record activity and force a refresh if the credential is close to expiry."""
        try:
            session = await self._provider.get_current_session()
            if not session:
                logger.warning("No session during activity check")
                return

            now = self._scheduler.now()
            self._store.record_activity(now)

            remaining = seconds_until_expiry(session.credential, now)
            if remaining is None:
                logger.warning("Session credential has no readable expiry - leaving it to the refresh cycle")
                return

            if remaining < self._settings.activity_refresh_threshold_seconds:
                logger.info("Refreshing token due to activity and approaching expiry")
                await self._request_refresh(True)
        except Exception as e:
            logger.error(f"Error handling user activity: {e}")
