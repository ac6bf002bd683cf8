"""
FeedSteer Engine Assembly

Wires one page to one controller, observer and scheduler. The engine is
constructed once and passed by reference; nothing here is process-global.

Usage:
    engine = PreferenceEngine.create(page, store, analytics)
    engine.start()          # inside a running event loop
    ...
    await engine.stop()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from core.config import EngineConfig
from core.controller import ApplicationController
from core.observer import ChangeObserver
from core.page import InMemoryPage
from core.registry import ChipRegistry
from core.scheduler import TimePreferenceScheduler
from core.schemas.inputs import TimePreference
from core.sessions import SessionTracker
from persistence.event_logger import EventLogger
from persistence.preference_store import PreferenceStore


logger = logging.getLogger(__name__)


def _reapply_on_rule_change(
    controller: ApplicationController,
    observer: ChangeObserver,
    config: EngineConfig,
) -> Callable[[Optional[TimePreference]], None]:
    def on_change(active: Optional[TimePreference]) -> None:
        # Equivalent of reloading the tab: reset, then re-apply once loaded
        controller.reset_for_navigation()
        observer.schedule_apply(config.page_load_seconds)
    return on_change


@dataclass
class PreferenceEngine:
    """All collaborators for one steered page."""
    page: InMemoryPage
    store: PreferenceStore
    analytics: EventLogger
    controller: ApplicationController
    observer: ChangeObserver
    scheduler: TimePreferenceScheduler
    config: EngineConfig

    @classmethod
    def create(
        cls,
        page: InMemoryPage,
        store: PreferenceStore,
        analytics: EventLogger,
        config: Optional[EngineConfig] = None,
    ) -> PreferenceEngine:
        config = config or EngineConfig()
        registry = ChipRegistry(page, default_candidate=config.default_candidate)
        sessions = SessionTracker(analytics, min_duration_seconds=config.min_session_seconds)
        controller = ApplicationController(
            registry=registry,
            store=store,
            analytics=analytics,
            config=config,
            sessions=sessions,
        )
        observer = ChangeObserver(controller, page.feed, config)

        scheduler = TimePreferenceScheduler(
            store,
            on_change=_reapply_on_rule_change(controller, observer, config),
            interval_seconds=config.scheduler_interval_seconds,
        )

        return cls(
            page=page,
            store=store,
            analytics=analytics,
            controller=controller,
            observer=observer,
            scheduler=scheduler,
            config=config,
        )

    def start(self) -> None:
        self.observer.start()
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        self.observer.stop()
        self.controller.shutdown()
