"""
FeedSteer Time-Preference Scheduler

Periodically checks which time preference is active and notifies the
engine when that changes (a rule window opened, closed, or was edited), so
the page can be re-steered without waiting for the next navigation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from core.schemas.inputs import TimePreference
from persistence.preference_store import PreferenceStore


logger = logging.getLogger(__name__)


def _rule_key(rule: Optional[TimePreference]) -> Optional[tuple]:
    if rule is None:
        return None
    return (rule.id, rule.preference, rule.start_hour, rule.end_hour)


class TimePreferenceScheduler:
    """Runs check_now() every `interval_seconds` until stopped."""

    def __init__(
        self,
        store: PreferenceStore,
        on_change: Callable[[Optional[TimePreference]], None],
        interval_seconds: float = 3600.0,
    ) -> None:
        self.store = store
        self.on_change = on_change
        self.interval_seconds = interval_seconds
        self._active_key: Optional[tuple] = None
        self._task: Optional[asyncio.Task] = None

    def check_now(self) -> Optional[TimePreference]:
        """Re-evaluate the active rule; call on_change if it differs from the last check."""
        active = self.store.get_active_time_scoped_preference()
        key = _rule_key(active)

        if key != self._active_key:
            self._active_key = key
            if active is not None:
                logger.info(
                    f"Active time preference found: {active.preference!r} ({active.time_range})"
                )
            else:
                logger.info("No active time preference found")
            self.on_change(active)
        return active

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._active_key = _rule_key(self.store.get_active_time_scoped_preference())
            self._task = asyncio.get_running_loop().create_task(self._run())
            logger.info(f"Checking time preferences every {self.interval_seconds:.0f}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.check_now()
            except Exception as e:
                logger.error(f"Error checking time preferences: {e}")
