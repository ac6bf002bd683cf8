"""
FeedSteer Test Suite - Shared Pytest Fixtures

This conftest.py provides fixtures for all test categories including:
- An in-memory Redis double for the preference store
- A controllable clock for cooldown and session timing
- Page, registry, store and controller instances wired with zero delays

Usage:
    pytest tests/ -v
"""

import asyncio
from datetime import datetime
from typing import Dict, Optional
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from core.config import EngineConfig
from core.controller import ApplicationController
from core.observer import ChangeObserver
from core.page import InMemoryPage
from core.registry import ChipRegistry
from core.sessions import SessionTracker
from persistence.event_logger import EventLogger
from persistence.preference_store import PreferenceStore


# Wednesday 2024-01-03 10:00 (local), weekday index 3 with Sunday=0
WEDNESDAY_10AM = datetime(2024, 1, 3, 10, 0)


# =============================================================================
# Test Doubles
# =============================================================================

class InMemoryRedis:
    """The subset of the redis.Redis API the preference store uses."""

    def __init__(self) -> None:
        self.data: Dict[str, str] = {}

    def ping(self) -> bool:
        return True

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str, nx: bool = False) -> Optional[bool]:
        if nx and key in self.data:
            return None
        self.data[key] = value
        return True

    def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed


class FailingRedis:
    """Every call fails as if the server were down."""

    def _fail(self, *args, **kwargs):
        raise RedisConnectionError("Connection refused")

    ping = get = set = delete = _fail


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def run(coro):
    """Drive a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


async def settle(seconds: float = 0.01) -> None:
    """Yield long enough for zero-delay timers (the in-flight reset) to fire."""
    await asyncio.sleep(seconds)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def config() -> EngineConfig:
    """Production cooldown and session threshold, no waiting anywhere else."""
    return EngineConfig(
        cooldown_seconds=2.0,
        click_reset_seconds=0.0,
        retry_delay_seconds=0.0,
        min_session_seconds=5.0,
        initial_load_seconds=0.0,
        page_load_seconds=0.0,
        candidate_load_seconds=0.0,
    )


@pytest.fixture
def redis_client() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def store(redis_client) -> PreferenceStore:
    return PreferenceStore(redis_client, now=lambda: WEDNESDAY_10AM)


@pytest.fixture
def analytics() -> MagicMock:
    return MagicMock(spec=EventLogger)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_clock() -> FakeClock:
    return FakeClock(start=0.0)


@pytest.fixture
def page() -> InMemoryPage:
    return InMemoryPage(title="Home")


@pytest.fixture
def registry(page) -> ChipRegistry:
    return ChipRegistry(page)


@pytest.fixture
def sessions(analytics, session_clock) -> SessionTracker:
    return SessionTracker(analytics, min_duration_seconds=5.0, clock=session_clock)


@pytest.fixture
def controller(registry, store, analytics, config, sessions, clock) -> ApplicationController:
    return ApplicationController(
        registry=registry,
        store=store,
        analytics=analytics,
        config=config,
        sessions=sessions,
        clock=clock,
    )


@pytest.fixture
def observer(controller, page, config) -> ChangeObserver:
    return ChangeObserver(controller, page.feed, config)
