#!/usr/bin/env python3
"""
Session Lifecycle Manager - Owns One Application Session's Credential

Composes the session keeper components around injected collaborators:

| Collaborator      | Interface                                           |
|-------------------|-----------------------------------------------------|
| session_provider  | async get_current_session(), async end_session(opts)|
| storage           | get(key), set(key, value), remove(key), keys()      |
| notifier          | notify(kind, message, options)                      |
| editor_state      | () -> EditorState(active_canvas, active_design_id)  |
| navigator         | reload(), navigate(url)                             |
| events            | EventSource the host emits browser events into      |
| scheduler         | AsyncioTaskScheduler / VirtualTaskScheduler         |
| auth_cleanup      | check_for_stale_session(), async emergency_cleanup()|

Construction immediately initializes (activity listeners, auto-save, stale
session check). Initialization failures are retried with a linearly growing
delay; once retries are exhausted the manager goes inert and asks the user
to refresh the page. start_token_refresh_cycle() is called by the host once
the app is ready; cleanup() tears everything down and may be called again.
"""

import logging
from typing import Callable, Optional

from shared.alert_service import NotificationKind
from shared.auth_cleanup import AuthCleanup
from shared.config_loader import SessionKeeperSettings
from shared.session_errors import FailureReason, InitializationError
from shared.task_scheduler import TimerRegistry
from shared.token_store import SharedTokenStore

from services.session_keeper.activity_tracker import ActivityTracker, EventSource
from services.session_keeper.auto_save import AutoSaveEngine, EditorState
from services.session_keeper.failure_handler import FailureHandler
from services.session_keeper.refresh_scheduler import RefreshScheduler, RefreshState

logger = logging.getLogger(__name__)

INIT_RETRY_TIMER = "init_retry"
CRITICAL_RELOAD_DELAY_SECONDS = 5


class SessionLifecycleManager:
    """
    Keeps the session credential valid for one application session.

    Attributes:
        token_store: Shared token store holding the current credential
        timers: Every timer handle this manager owns
        refresh_scheduler: Refresh cycle and refresh operation
        activity_tracker: Interaction/environment event handling
        failure_handler: Single-flight failure recovery
        auto_save: Local backup of editor state
        degraded_reason: Why the manager left the normal path (stale session
                         at startup, or initialization failure), else None
    """

    def __init__(
        self,
        session_provider,
        storage,
        notifier,
        editor_state: Callable[[], EditorState],
        navigator,
        scheduler,
        events: Optional[EventSource] = None,
        settings: Optional[SessionKeeperSettings] = None,
        auth_cleanup=None,
    ):
        self.settings = settings or SessionKeeperSettings()
        self.events = events or EventSource()
        self._scheduler = scheduler
        self._notifier = notifier
        self._navigator = navigator

        self.token_store = SharedTokenStore(storage)
        self.timers = TimerRegistry(scheduler)
        self._auth_cleanup = auth_cleanup or AuthCleanup(
            storage, self.token_store, scheduler.now, self.settings.max_idle_seconds
        )

        self.failure_handler = FailureHandler(
            session_provider,
            notifier,
            navigator,
            self._auth_cleanup.emergency_cleanup,
            scheduler,
            self.timers,
            self.settings,
        )
        self.refresh_scheduler = RefreshScheduler(
            session_provider, self.token_store, scheduler, self.timers, self.failure_handler, self.settings
        )
        self.activity_tracker = ActivityTracker(
            self.events,
            session_provider,
            self.token_store,
            scheduler,
            self.refresh_scheduler.refresh_token,
            self.settings,
        )
        self.auto_save = AutoSaveEngine(editor_state, storage, scheduler, self.timers, self.settings)

        self.initialized = False
        self.is_inert = False
        self.stale_session_detected = False
        self.degraded_reason: Optional[FailureReason] = None
        self._init_attempts = 0

        self._safe_initialize()

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def current_token(self) -> Optional[str]:
        return self.token_store.current_token

    @property
    def state(self) -> RefreshState:
        return self.refresh_scheduler.state

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def _initialize(self):
        self.activity_tracker.attach()
        self.auto_save.start()

        if self._auth_cleanup.check_for_stale_session():
            logger.warning(
                f"[{FailureReason.STALE_SESSION.value}] Stale session detected during initialization - "
                "cleanup triggered"
            )
            self.stale_session_detected = True
            self.degraded_reason = FailureReason.STALE_SESSION

    def _safe_initialize(self):
        try:
            self._initialize()
            self.initialized = True
            logger.info("Session keeper initialized")
        except Exception as e:
            logger.error(f"Failed to initialize session keeper: {e}", exc_info=True)
            self._init_attempts += 1

            max_attempts = self.settings.max_init_attempts
            if self._init_attempts < max_attempts:
                delay = self.settings.init_retry_base_delay_seconds * self._init_attempts
                logger.info(
                    f"Retrying initialization in {delay:.1f}s "
                    f"(attempt {self._init_attempts + 1}/{max_attempts})"
                )
                self.timers.schedule(INIT_RETRY_TIMER, self._scheduler.call_later(delay, self._safe_initialize))
            else:
                error = InitializationError(f"Initialization failed after {self._init_attempts} attempts: {e}")
                logger.critical(str(error))
                self._handle_critical_failure()

    def _handle_critical_failure(self):
        self.is_inert = True
        self.degraded_reason = FailureReason.INITIALIZATION_FAILURE
        try:
            self.timers.cancel_all()
            self.activity_tracker.detach()

            self._notifier.notify(
                NotificationKind.ERROR,
                "System Error",
                {
                    "description": "A critical error occurred. Please refresh the page.",
                    "duration_ms": 10000,
                    "action": {"label": "Refresh", "callback": self._navigator.reload},
                },
            )
        except Exception as e:
            logger.error(f"Failed to handle critical failure: {e}", exc_info=True)
            # Reload as absolute last resort
            self._scheduler.call_later(CRITICAL_RELOAD_DELAY_SECONDS, self._navigator.reload)

    def start_token_refresh_cycle(self) -> bool:
        """
        Start (or restart) the periodic refresh cycle.

        Returns:
            bool: False if the manager is inert and refused to start.
        """
        if self.is_inert:
            logger.warning("Session keeper is inert - refresh cycle not started")
            return False
        self.refresh_scheduler.start_cycle()
        return True

    def cleanup(self):
        """Cancel all timers, detach listeners and reset failure handling."""
        cancelled = self.timers.cancel_all()
        self.activity_tracker.detach()
        self.failure_handler.reset()
        self.refresh_scheduler.reset()
        self.token_store.clear(persisted=False)
        logger.info(f"Session keeper cleaned up ({cancelled} timer(s) cancelled)")
