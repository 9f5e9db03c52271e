#!/usr/bin/env python3
"""
Auth Cleanup Module

Clears client-side auth state when a session is found to be stale at
startup, or when the failure handler gives up on the current session.

Only auth keys are removed from durable storage. Editor backup snapshots
(design_<id>_backup) are left untouched.
"""

import json
import logging
from typing import Callable, Iterable, Optional

from shared.token_store import AUTH_STATE_KEY, SharedTokenStore

logger = logging.getLogger(__name__)

# A session idle for longer than this is treated as stale on startup
DEFAULT_MAX_IDLE_SECONDS = 24 * 60 * 60

AUTH_KEY_PREFIXES = ("auth_", "session_", "token_")


class AuthCleanup:
    """
    Stale-session detection and emergency cleanup of client auth state.
    """

    def __init__(
        self,
        storage,
        token_store: SharedTokenStore,
        clock: Callable[[], float],
        max_idle_seconds: float = DEFAULT_MAX_IDLE_SECONDS,
        key_prefixes: Iterable[str] = AUTH_KEY_PREFIXES,
    ):
        """
        Args:
            storage: Durable key-value storage (get/set/remove/keys)
            token_store: The session's shared token store
            clock: Returns the current time in epoch seconds
            max_idle_seconds: Idle time after which a session is stale
            key_prefixes: Storage key prefixes that hold auth state
        """
        self._storage = storage
        self._token_store = token_store
        self._clock = clock
        self.max_idle_seconds = max_idle_seconds
        self._key_prefixes = tuple(key_prefixes)

    def _last_seen(self) -> Optional[float]:
        raw = self._storage.get(AUTH_STATE_KEY)
        if not raw:
            return None
        try:
            state = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Mirrored auth state is unreadable - treating as stale")
            return 0.0
        if not isinstance(state, dict):
            logger.warning("Mirrored auth state is not an object - treating as stale")
            return 0.0
        times =[t for t in (state.get("lastActivity"), state.get("lastRefresh")) if t is not None]
        return max(times) if times else None

    def check_for_stale_session(self) -> bool:
        """
        Clear auth state if the previous session went idle too long.

        Returns:
            bool: True if a stale session was found and cleaned up.
        """
        last_seen = self._last_seen()
        if last_seen is None:
            return False

        idle = self._clock() - last_seen
        if idle <= self.max_idle_seconds:
            return False

        logger.warning(f"Stale session detected (idle {int(idle)}s) - clearing auth state")
        self._clear_auth_state()
        return True

    async def emergency_cleanup(self):
        """Drop the current credential and every auth key in storage."""
        logger.warning("Emergency auth cleanup")
        self._clear_auth_state()

    def _clear_auth_state(self):
        self._token_store.clear()
        for key in self._storage.keys():
            if key.startswith(self._key_prefixes):
                self._storage.remove(key)
