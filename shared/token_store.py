#!/usr/bin/env python3
"""
Token Store Module

Holds the current session credential for one application session together
with the last refresh and last activity times. Consumers that need the
credential read it from here; only the refresh operation and the activity
handler write to it.

When constructed with durable storage, refresh/activity times are mirrored
under AUTH_STATE_KEY so the next manager instance can tell whether the
previous session went stale.
"""

import json
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

AUTH_STATE_KEY = "auth_session_state"


class SharedTokenStore:
    """
    Process-wide credential state for one application session.

    Attributes:
        current_token: Last credential accepted by the refresh operation
        last_refresh: Epoch seconds of the last successful refresh
        last_activity: Epoch seconds of the last handled user activity
    """

    def __init__(self, storage=None):
        """
        Args:
            storage: Optional durable key-value storage (get/set/remove)
                     used to mirror refresh and activity times.
        """
        self._storage = storage
        self.current_token: Optional[str] = None
        self.last_refresh: Optional[float] = None
        self.last_activity: Optional[float] = None

    def set_current_token(self, token: str, refreshed_at: float):
        """Record a freshly accepted credential."""
        self.current_token = token
        self.last_refresh = refreshed_at
        self._mirror()

    def record_activity(self, at: float):
        self.last_activity = at
        self._mirror()

    def snapshot(self) -> Dict[str, Any]:
        return {
            "hasToken": self.current_token is not None,
            "lastRefresh": self.last_refresh,
            "lastActivity": self.last_activity,
        }

    def clear(self, persisted: bool = True):
        """
        Forget the credential and timestamps.

        Args:
            persisted: Also drop the mirrored state from durable storage.
                       Teardown keeps it so the next instance can judge staleness.
        """
        self.current_token = None
        self.last_refresh = None
        self.last_activity = None
        if persisted and self._storage is not None:
            try:
                self._storage.remove(AUTH_STATE_KEY)
            except Exception as e:
                logger.warning(f"Could not clear mirrored auth state: {e}")

    def _mirror(self):
        if self._storage is None:
            return
        state = {"lastRefresh": self.last_refresh, "lastActivity": self.last_activity}
        try:
            self._storage.set(AUTH_STATE_KEY, json.dumps(state))
        except Exception as e:
            # Mirroring is advisory; the in-memory state stays authoritative
            logger.warning(f"Could not mirror auth state to storage: {e}")
