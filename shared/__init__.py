"""
Shared infrastructure modules for the session keeper.

This package contains the utilities the session keeper service builds on:
- config_loader: JSON config with built-in defaults and env overrides
- logger_service: Local file + console logging setup
- secret_manager: GCP environment detection
- alert_service: User notification surface (in-process + optional Pub/Sub)
- token_validator: Structural check and payload decoding for credentials
- token_store: Shared token store for one application session
- task_scheduler: Delayed/periodic tasks (asyncio and virtual clock)
- backup_storage: Durable origin-scoped key-value storage
- session_provider: HTTP client for the app's session endpoints
- auth_cleanup: Stale-session detection and emergency auth cleanup
- session_errors: Failure taxonomy

Usage:
    from shared import ConfigLoader, setup_logging, NotificationService

    loader = ConfigLoader("config/config.json")
    config = loader.load_config()
    setup_logging(config)
"""

from shared.config_loader import ConfigLoader, SessionKeeperSettings, get_config_loader
from shared.logger_service import setup_logging, LocalFileLogger
from shared.secret_manager import is_running_on_gcp
from shared.alert_service import NotificationService, NotificationKind
from shared.token_validator import validate_token_structure, decode_token, seconds_until_expiry
from shared.token_store import SharedTokenStore
from shared.task_scheduler import (
    TimerHandle,
    TimerRegistry,
    AsyncioTaskScheduler,
    VirtualTaskScheduler,
)
from shared.backup_storage import FileKeyValueStorage, backup_key
from shared.session_provider import HttpSessionProvider, Session
from shared.auth_cleanup import AuthCleanup
from shared.session_errors import (
    FailureReason,
    SessionKeeperError,
    NoSessionError,
    InvalidTokenStructureError,
    MaxRetriesExceededError,
    InitializationError,
    AutoSaveError,
)

__all__ = [
    # Config
    'ConfigLoader', 'SessionKeeperSettings', 'get_config_loader',
    # Logging
    'setup_logging', 'LocalFileLogger',
    # Cloud
    'is_running_on_gcp',
    # Notifications
    'NotificationService', 'NotificationKind',
    # Credentials
    'validate_token_structure', 'decode_token', 'seconds_until_expiry',
    'SharedTokenStore',
    # Scheduling
    'TimerHandle', 'TimerRegistry', 'AsyncioTaskScheduler', 'VirtualTaskScheduler',
    # Storage
    'FileKeyValueStorage', 'backup_key',
    # Session
    'HttpSessionProvider', 'Session', 'AuthCleanup',
    # Errors
    'FailureReason', 'SessionKeeperError', 'NoSessionError',
    'InvalidTokenStructureError', 'MaxRetriesExceededError',
    'InitializationError', 'AutoSaveError',
]
