#!/usr/bin/env python3
"""
Session Errors Module

Failure taxonomy for the session keeper.

Refresh-path errors (NO_SESSION, INVALID_TOKEN_STRUCTURE) are retried locally
with exponential backoff and only escalate as MAX_RETRIES_EXCEEDED.
Initialization errors are retried a fixed number of times and then leave the
manager inert. Auto-save errors are always local: logged, never escalated.
"""

from enum import Enum
from typing import Optional


class FailureReason(Enum):
    """Reason codes carried by session keeper errors and failure handling."""
    NO_SESSION = "NO_SESSION"
    INVALID_TOKEN_STRUCTURE = "INVALID_TOKEN_STRUCTURE"
    MAX_RETRIES_EXCEEDED = "MAX_RETRIES_EXCEEDED"
    INITIALIZATION_FAILURE = "INITIALIZATION_FAILURE"
    AUTO_SAVE_FAILURE = "AUTO_SAVE_FAILURE"
    STALE_SESSION = "STALE_SESSION"


class SessionKeeperError(Exception):
    """Base class for all session keeper errors."""

    reason: FailureReason = FailureReason.INITIALIZATION_FAILURE

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.reason.value)


class NoSessionError(SessionKeeperError):
    """The session provider returned no session."""
    reason = FailureReason.NO_SESSION


class InvalidTokenStructureError(SessionKeeperError):
    """The session credential failed the structural check."""
    reason = FailureReason.INVALID_TOKEN_STRUCTURE


class MaxRetriesExceededError(SessionKeeperError):
    """Refresh retries are exhausted."""
    reason = FailureReason.MAX_RETRIES_EXCEEDED


class InitializationError(SessionKeeperError):
    """Manager initialization could not complete."""
    reason = FailureReason.INITIALIZATION_FAILURE


class AutoSaveError(SessionKeeperError):
    """A backup snapshot could not be written."""
    reason = FailureReason.AUTO_SAVE_FAILURE
