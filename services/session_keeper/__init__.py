"""
Session Keeper Service

Keeps a browser editing application's session credential valid for the
life of an application session.

How It Works:
-------------
1. Refreshes the credential immediately, then every 20 minutes
2. Retries failed refreshes with exponential backoff (1s, 2s, ...)
3. Forces a refresh on user activity when < 10 minutes remain,
   and whenever the tab becomes visible or connectivity returns
4. After 3 consecutive failures, runs the single failure path:
   cancel timers, clean up auth state, notify, sign out after 3s
5. Independently backs up the active design to local storage every 30s

Configuration:
--------------
| Setting                            | Value | Description                        |
|------------------------------------|-------|------------------------------------|
| refresh_interval_seconds           | 1200  | Periodic refresh cycle             |
| refresh_buffer_seconds             | 300   | Re-fetch when < 5 min remain       |
| activity_refresh_threshold_seconds | 600   | Activity forces refresh below this |
| max_token_retries                  | 3     | Failures before escalation         |
| failure_grace_seconds              | 3     | Delay before forced sign-out       |
| auto_save_interval_seconds         | 30    | Backup snapshot interval           |

Usage:
------
    manager = SessionLifecycleManager(provider, storage, notifier,
                                      editor_state, navigator, scheduler)
    manager.start_token_refresh_cycle()
    ...
    manager.cleanup()

    python -m services.session_keeper.main      # headless runner
"""

from services.session_keeper.activity_tracker import (
    ActivityTracker,
    EventSource,
    Subscription,
    Throttle,
    INTERACTION_EVENTS,
    VISIBILITY_RESTORED,
    CONNECTIVITY_RESTORED,
)
from services.session_keeper.auto_save import AutoSaveEngine, EditorState
from services.session_keeper.failure_handler import FailureHandler
from services.session_keeper.manager import SessionLifecycleManager
from services.session_keeper.refresh_scheduler import (
    RefreshScheduler,
    RefreshState,
    compute_backoff_delay,
)

__all__ = [
    'SessionLifecycleManager',
    'RefreshScheduler', 'RefreshState', 'compute_backoff_delay',
    'ActivityTracker', 'EventSource', 'Subscription', 'Throttle',
    'INTERACTION_EVENTS', 'VISIBILITY_RESTORED', 'CONNECTIVITY_RESTORED',
    'FailureHandler',
    'AutoSaveEngine', 'EditorState',
]
