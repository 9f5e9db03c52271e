#!/usr/bin/env python3
"""
Refresh Scheduler - Keeps the Session Credential Fresh

Owns the periodic refresh cycle and the refresh operation shared by every
trigger: the cycle tick, the immediate refresh at cycle start, forced
refreshes from user activity, and forced refreshes when connectivity is
restored.

State machine:
    IDLE -> REFRESHING                      (any trigger)
    REFRESHING -> IDLE                      (credential stored)
    REFRESHING -> BACKOFF -> REFRESHING     (error, retries left)
    REFRESHING -> FAILED                    (error, retries exhausted)

FAILED is terminal for this manager instance: the failure handler takes
over and a fresh instance is needed to recover.
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

from shared.session_errors import (
    FailureReason,
    InvalidTokenStructureError,
    MaxRetriesExceededError,
    NoSessionError,
)
from shared.task_scheduler import TimerRegistry
from shared.token_store import SharedTokenStore
from shared.token_validator import seconds_until_expiry, validate_token_structure

logger = logging.getLogger(__name__)

REFRESH_CYCLE_TIMER = "refresh_cycle"
BACKOFF_RETRY_TIMER = "backoff_retry"


class RefreshState(Enum):
    """States of the credential refresh state machine."""
    IDLE = "Idle"
    REFRESHING = "Refreshing"
    BACKOFF = "Backoff"      # Waiting on a one-shot retry timer
    FAILED = "Failed"        # Retries exhausted, failure handler invoked


def compute_backoff_delay(retry_count: int, base_delay: float) -> float:
    """
    Delay before retry number `retry_count` (1-based).

    base_delay * 2 ** (retry_count - 1): with a 1s base, retries 1, 2, 3
    wait 1s, 2s and 4s.
    """
    if retry_count < 1:
        raise ValueError(f"retry_count must be >= 1, got {retry_count}")
    return base_delay * (2 ** (retry_count - 1))


class RefreshScheduler:
    """
    Periodic and forced refresh of the session credential.

    Concurrent refresh requests are coalesced: a caller arriving while a
    refresh is in flight waits for that refresh and gets its result, so two
    triggers can never interleave writes to the token store.
    """

    def __init__(
        self,
        session_provider,
        token_store: SharedTokenStore,
        scheduler,
        timers: TimerRegistry,
        failure_handler,
        settings,
    ):
        """
        Args:
            session_provider: get_current_session() / end_session(options)
            token_store: Shared token store written on success
            scheduler: Task scheduler (now/call_later/call_every/spawn)
            timers: Timer registry owned by the manager
            failure_handler: FailureHandler invoked once retries run out
            settings: SessionKeeperSettings
        """
        self._provider = session_provider
        self._store = token_store
        self._scheduler = scheduler
        self._timers = timers
        self._failure_handler = failure_handler
        self._settings = settings

        self.retry_count = 0
        self.state = RefreshState.IDLE
        self._inflight: Optional[asyncio.Future] = None

    @property
    def max_retries(self) -> int:
        return self._settings.max_token_retries

    def start_cycle(self):
        """
        (Re)start the periodic refresh cycle.

        Cancels any existing cycle timer first, issues one immediate forced
        refresh, then refreshes every refresh_interval_seconds.
        """
        self._timers.cancel(REFRESH_CYCLE_TIMER)

        self._scheduler.spawn(self.refresh_token, True)
        self._timers.schedule(
            REFRESH_CYCLE_TIMER,
            self._scheduler.call_every(self._settings.refresh_interval_seconds, self.refresh_token, False),
        )
        logger.info(
            f"Token refresh cycle started ({int(self._settings.refresh_interval_seconds // 60)}min intervals)"
        )

    def stop_cycle(self):
        self._timers.cancel(REFRESH_CYCLE_TIMER)
        self._timers.cancel(BACKOFF_RETRY_TIMER)

    def reset(self):
        """Forget retry history so a restarted cycle gets the full backoff sequence."""
        self.retry_count = 0
        self.state = RefreshState.IDLE

    async def refresh_token(self, force_refresh: bool = False) -> Optional[str]:
        """
        Run one refresh, or join the refresh already in flight.

        Args:
            force_refresh: True for refreshes triggered outside the cycle

        Returns:
            The credential now in the token store, or None if this attempt
            was skipped or failed.
        """
        if self._failure_handler.in_progress:
            logger.info("Skipping token refresh - handling failure")
            return None

        if self._inflight is not None:
            logger.debug("Token refresh already in flight - joining it")
            return await self._inflight

        future = asyncio.get_running_loop().create_future()
        self._inflight = future
        token = None
        try:
            token = await self._refresh_once(force_refresh)
            return token
        finally:
            self._inflight = None
            if not future.done():
                future.set_result(token)

    async def _refresh_once(self, force_refresh: bool) -> Optional[str]:
        self.state = RefreshState.REFRESHING
        logger.info(f"Refreshing token (force: {force_refresh}, attempt: {self.retry_count + 1})")

        try:
            token = await self._acquire_credential()
        except Exception as e:
            await self._on_refresh_error(e, force_refresh)
            return None

        self._store.set_current_token(token, self._scheduler.now())
        self.retry_count = 0
        self.state = RefreshState.IDLE
        logger.info("Token refreshed successfully")
        return token

    async def _acquire_credential(self) -> str:
        """
        Fetch, validate and (near expiry) re-fetch the session credential.

        Raises:
            NoSessionError: The provider has no session
            InvalidTokenStructureError: The credential failed validation
        """
        session = await self._provider.get_current_session()
        if not session:
            raise NoSessionError("No session found during token refresh")

        token = session.credential
        if not validate_token_structure(token):
            raise InvalidTokenStructureError("Invalid token structure detected")

        remaining = seconds_until_expiry(token, self._scheduler.now())
        if remaining is not None and remaining < self._settings.refresh_buffer_seconds:
            logger.warning(f"Token expires soon: {int(remaining)} seconds remaining")

            fresh = await self._provider.get_current_session()
            fresh_token = fresh.credential if fresh else None
            if fresh_token and fresh_token != token and validate_token_structure(fresh_token):
                logger.info("Got fresh token from session refresh")
                token = fresh_token
            else:
                logger.warning("Could not get fresh token, proceeding with current")

        return token

    async def _on_refresh_error(self, error: Exception, force_refresh: bool):
        self.retry_count += 1
        reason = getattr(error, "reason", None)
        label = reason.value if isinstance(reason, FailureReason) else type(error).__name__
        logger.error(f"Token refresh failed [{label}]: {error}")

        if self.retry_count < self.max_retries:
            delay = compute_backoff_delay(self.retry_count, self._settings.backoff_base_delay_seconds)
            logger.warning(
                f"Retrying token refresh in {delay:.1f}s (attempt {self.retry_count}/{self.max_retries})"
            )
            self.state = RefreshState.BACKOFF
            self._timers.schedule(
                BACKOFF_RETRY_TIMER,
                self._scheduler.call_later(delay, self.refresh_token, force_refresh),
            )
            return

        exhausted = MaxRetriesExceededError(f"Max token refresh attempts reached ({self.retry_count})")
        logger.critical(str(exhausted))
        self.state = RefreshState.FAILED
        await self._failure_handler.handle_token_failure(exhausted.reason)
