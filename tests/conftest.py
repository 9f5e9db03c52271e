"""
Shared fixtures for session keeper tests.

Time is driven by VirtualTaskScheduler, collaborators are mocks, and
credentials are built as unsigned three-segment tokens.
"""

import os
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shared.config_loader import SessionKeeperSettings
from shared.task_scheduler import TimerRegistry, VirtualTaskScheduler
from shared.token_store import SharedTokenStore

from tests.helpers import START_TIME, MemoryStorage, make_session


@pytest.fixture
def scheduler():
    return VirtualTaskScheduler(start=START_TIME)


@pytest.fixture
def timers(scheduler):
    return TimerRegistry(scheduler)


@pytest.fixture
def settings():
    return SessionKeeperSettings()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def token_store():
    return SharedTokenStore()


@pytest.fixture
def provider():
    """Session provider returning a healthy session by default."""
    mock = MagicMock()
    mock.get_current_session = AsyncMock(return_value=make_session())
    mock.end_session = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def navigator():
    return MagicMock()
