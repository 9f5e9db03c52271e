#!/usr/bin/env python3
"""
Auto-Save Engine - Local Backup of In-Progress Editor State

Every auto_save_interval_seconds the engine serializes the active canvas and
writes a backup snapshot to durable storage if it differs from the snapshot
already stored for that design.

Snapshot format (JSON string under key design_<designId>_backup):
    {"designId": "...", "serializedState": {...}, "timestamp": <epoch ms>}

Backups are advisory. They are independent of credential health, never gated
by failure handling, and every error in this path is logged and swallowed.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from shared.backup_storage import backup_key
from shared.session_errors import AutoSaveError
from shared.task_scheduler import TimerRegistry

logger = logging.getLogger(__name__)

AUTO_SAVE_TIMER = "auto_save"


@dataclass
class EditorState:
    """What the editor exposes at the moment of an auto-save tick."""
    active_canvas: Any = None          # object with to_json()
    active_design_id: Optional[str] = None


def _normalize(state: Any) -> Any:
    """JSON round-trip so comparisons see exactly what storage will hold."""
    return json.loads(json.dumps(state))


class AutoSaveEngine:
    """Periodic best-effort backup of the active design."""

    def __init__(
        self,
        editor_state: Callable[[], EditorState],
        storage,
        scheduler,
        timers: TimerRegistry,
        settings,
    ):
        """
        Args:
            editor_state: Returns the current EditorState
            storage: Durable key-value storage (get/set)
            scheduler: Task scheduler
            timers: Timer registry owned by the manager
            settings: SessionKeeperSettings
        """
        self._editor_state = editor_state
        self._storage = storage
        self._scheduler = scheduler
        self._timers = timers
        self._settings = settings
        self.saves = 0

    def start(self):
        """Start (or restart) the auto-save timer."""
        interval = self._settings.auto_save_interval_seconds
        self._timers.schedule(AUTO_SAVE_TIMER, self._scheduler.call_every(interval, self.tick))
        logger.info(f"Auto-save set up ({int(interval)}s interval)")

    def stop(self):
        self._timers.cancel(AUTO_SAVE_TIMER)

    def tick(self) -> bool:
        """
        Run one auto-save pass.

        Returns:
            bool: True if a new snapshot was written.
        """
        try:
            return self._save_if_changed()
        except Exception as e:
            logger.error(f"Auto-save error: {e}")
            return False

    def _save_if_changed(self) -> bool:
        state = self._editor_state()
        if state is None or state.active_canvas is None or not state.active_design_id:
            return False

        design_id = state.active_design_id
        key = backup_key(design_id)

        try:
            serialized = _normalize(state.active_canvas.to_json())
        except (TypeError, ValueError) as e:
            raise AutoSaveError(f"Canvas state for {design_id} is not serializable: {e}") from e

        previous = self._load_previous(key)
        if previous is not None and previous.get("serializedState") == serialized:
            return False

        snapshot = {
            "designId": design_id,
            "serializedState": serialized,
            "timestamp": int(self._scheduler.now() * 1000),
        }
        self._storage.set(key, json.dumps(snapshot))
        self.saves += 1
        logger.info(f"Auto-save completed (local backup for {design_id})")
        return True

    def _load_previous(self, key: str) -> Optional[dict]:
        raw = self._storage.get(key)
        if not raw:
            return None
        try:
            previous = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Existing backup under {key} is unreadable - overwriting")
            return None
        return previous if isinstance(previous, dict) else None
