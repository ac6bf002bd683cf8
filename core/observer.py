"""
FeedSteer Change Observer

Watches the page's change feed and schedules ApplicationController.apply().

Channels:
    NAVIGATION  → synchronous reset, apply() after the page-load delay
    CONTENT     → apply() after the chip-load delay, only while no
                  programmatic click is in flight and nothing has been
                  applied on this page yet

Bursts collapse through the controller's flags and cooldown, not through a
queue: every notification that passes the gate schedules its own delayed
apply(), and all but the first become no-ops. A delayed apply() never lands
inside the cooldown window, so chips rendered right after a fallback are
still steered once the cooldown ends.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Set

from core.config import EngineConfig
from core.controller import ApplicationController
from core.page import ChangeChannel, ChangeFeed, ChangeNotification, Subscription


logger = logging.getLogger(__name__)


class ChangeObserver:
    """Subscribes to the two change channels; holds only handles."""

    def __init__(
        self,
        controller: ApplicationController,
        feed: ChangeFeed,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.controller = controller
        self.feed = feed
        self.config = config or controller.config
        self._subscriptions: List[Subscription] = []
        self._pending: Set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Subscribe both watches and schedule the initial-load apply()."""
        if self._subscriptions:
            return
        self._subscriptions = [
            self.feed.subscribe(ChangeChannel.NAVIGATION, self._on_navigation),
            self.feed.subscribe(ChangeChannel.CONTENT, self._on_content),
        ]
        # Covers the first page load, before any mutation arrives
        self.schedule_apply(self.config.initial_load_seconds)
        logger.info("ChangeObserver started")

    def stop(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()
        logger.info("ChangeObserver stopped")

    @property
    def running(self) -> bool:
        return bool(self._subscriptions)

    @property
    def pending(self) -> int:
        return len(self._pending)

    # -------------------------------------------------------------------------
    # Watches
    # -------------------------------------------------------------------------

    def _on_navigation(self, notification: ChangeNotification) -> None:
        if self.controller.state.is_external_action_in_flight:
            return

        logger.info(f"Title changed to {notification.title!r}, resetting state")
        self.controller.reset_for_navigation()
        self.schedule_apply(self.config.page_load_seconds)

    def _on_content(self, notification: ChangeNotification) -> None:
        state = self.controller.state
        if state.is_external_action_in_flight or state.has_applied_this_page:
            return
        if not notification.has_candidate:
            return

        logger.debug("Chips found, scheduling apply")
        self.schedule_apply(self.config.candidate_load_seconds)

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def schedule_apply(self, delay: float) -> Optional[asyncio.Task]:
        """
        Run controller.apply() after `delay` seconds on the running loop, or
        once the controller's cooldown ends if that is later.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, apply() not scheduled")
            return None

        delay = max(delay, self.controller.cooldown_remaining())
        task = loop.create_task(self._delayed_apply(delay))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _delayed_apply(self, delay: float) -> None:
        await asyncio.sleep(delay)
        # Loop timers may fire marginally early; wait out the rest once
        remaining = self.controller.cooldown_remaining()
        if remaining > 0:
            await asyncio.sleep(remaining)
        if self.controller.state.has_applied_this_page:
            logger.debug("Skipping delayed apply: page already steered")
            return
        await self.controller.apply()

    async def drain(self) -> None:
        """Wait until every scheduled apply() has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
