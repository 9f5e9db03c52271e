#!/usr/bin/env python3
"""
Session Keeper Service - Headless Runner

Runs a SessionLifecycleManager on an asyncio event loop against the real
HTTP session endpoint and file-backed storage. There is no editor attached
in headless mode, so auto-save ticks are no-ops; the process is useful to
keep a session alive and to watch refresh behavior in the logs.

Usage:
------
    python -m services.session_keeper.main                      # config/config.json
    python -m services.session_keeper.main --config path.json   # explicit config
    SESSION_ENDPOINT_URL=https://app.example.com/api/auth/session \\
        python -m services.session_keeper.main

Stops cleanly on SIGINT / SIGTERM, or when the session is lost and the
failure handler navigates away.
"""

import argparse
import asyncio
import logging
import os
import signal
import sys

# Ensure project root is in path for imports when running as script
_project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from shared.alert_service import NotificationService
from shared.backup_storage import FileKeyValueStorage
from shared.config_loader import ConfigLoader
from shared.logger_service import setup_logging
from shared.session_provider import HttpSessionProvider
from shared.task_scheduler import AsyncioTaskScheduler

from services.session_keeper.auto_save import EditorState
from services.session_keeper.manager import SessionLifecycleManager

logger = logging.getLogger(__name__)


class HeadlessNavigator:
    """Navigation requests end the headless run instead of loading a page."""

    def __init__(self, stop_event: asyncio.Event):
        self._stop_event = stop_event

    def reload(self):
        logger.warning("Reload requested - stopping session keeper")
        self._stop_event.set()

    def navigate(self, url: str):
        logger.warning(f"Navigation to {url} requested - stopping session keeper")
        self._stop_event.set()


async def run_session_keeper(config_path: str = None):
    """
    Main coroutine for the headless session keeper.

    Args:
        config_path: Optional path to the JSON config file
    """
    loader = ConfigLoader(config_path)
    config = loader.load_config()
    settings = loader.get_settings()
    file_logger = setup_logging(config)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    scheduler = AsyncioTaskScheduler(loop)
    provider = HttpSessionProvider(settings.session_url, settings.signout_url)
    storage = FileKeyValueStorage(settings.storage_dir, origin=settings.origin)
    notifier = NotificationService(config)

    logger.info("=" * 60)
    logger.info("SESSION KEEPER STARTING")
    logger.info(f"Session endpoint: {settings.session_url}")
    logger.info(f"Refresh interval: {int(settings.refresh_interval_seconds)}s")
    logger.info(f"Storage: {storage.data_file}")
    logger.info("=" * 60)

    manager = SessionLifecycleManager(
        session_provider=provider,
        storage=storage,
        notifier=notifier,
        editor_state=EditorState,
        navigator=HeadlessNavigator(stop_event),
        scheduler=scheduler,
        settings=settings,
    )

    try:
        if manager.start_token_refresh_cycle():
            await stop_event.wait()
    finally:
        manager.cleanup()
        await scheduler.shutdown()
        provider.close()
        logger.info("Session keeper stopped")
        file_logger.close()


def main():
    """Entry point for the headless session keeper."""
    parser = argparse.ArgumentParser(description="Keep an application session credential fresh")
    parser.add_argument("--config", help="Path to config JSON (default: config/config.json)")
    args = parser.parse_args()

    try:
        asyncio.run(run_session_keeper(args.config))
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
