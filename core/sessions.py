"""
FeedSteer Session Tracker

Usage accounting: a session is the interval during which one chip is the
active selection. Opening a session always closes the previous one first,
so at most one session is open at a time and durable durations never
overlap.

Rules:
    - duration >= min_duration → emitted as a youtube_usage event
    - duration <  min_duration → discarded
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from core.schemas.inputs import SessionSource
from persistence.event_logger import EventLogger


logger = logging.getLogger(__name__)


@dataclass
class Session:
    """An open usage-accounting interval."""
    started_at: float
    source: Optional[SessionSource]
    selected_text: Optional[str]


@dataclass(frozen=True)
class ClosedSession:
    """A session that passed the duration threshold and was emitted."""
    source: Optional[SessionSource]
    selected_text: Optional[str]
    started_at: float
    duration_seconds: float


class SessionTracker:
    """Opens and closes usage sessions and tags activity with the open one."""

    MAX_CLOSED_HISTORY: int = 50

    def __init__(
        self,
        analytics: EventLogger,
        min_duration_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.analytics = analytics
        self.min_duration_seconds = min_duration_seconds
        self._clock = clock
        self.current: Optional[Session] = None
        self.closed: List[ClosedSession] = []

    def start_session(self, value: Optional[str], source: Optional[SessionSource]) -> Session:
        """Close the open session (emitting it if durable) and open a new one."""
        self._close_current()
        self.current = Session(started_at=self._clock(), source=source, selected_text=value)
        logger.info(
            f"Session started: chip={value!r} source={source.value if source else None}"
        )
        return self.current

    def close_on_teardown(self) -> Optional[ClosedSession]:
        """Page unload: close the open session without opening another."""
        return self._close_current()

    def _close_current(self) -> Optional[ClosedSession]:
        session = self.current
        if session is None:
            return None
        self.current = None

        duration = self._clock() - session.started_at
        if duration < self.min_duration_seconds:
            logger.debug(f"Discarding short session ({duration:.2f}s) for {session.selected_text!r}")
            return None

        closed = ClosedSession(
            source=session.source,
            selected_text=session.selected_text,
            started_at=session.started_at,
            duration_seconds=duration,
        )
        self.closed.append(closed)
        if len(self.closed) > self.MAX_CLOSED_HISTORY:
            self.closed = self.closed[-self.MAX_CLOSED_HISTORY:]
        self.analytics.log_usage(duration, session.source, session.selected_text)
        return closed

    # -------------------------------------------------------------------------
    # Activity tagging
    # -------------------------------------------------------------------------

    def _current_tags(self):
        if self.current is None:
            return None, None
        return self.current.source, self.current.selected_text

    def record_search(self, query: str) -> None:
        source, text = self._current_tags()
        self.analytics.log_search_query(query, source, text)
        self.analytics.log_mainpage_action("search", source, text)

    def record_click(self) -> None:
        source, text = self._current_tags()
        self.analytics.log_mainpage_action("click", source, text)

    def record_video_click(self, video_id: str, title: str) -> None:
        source, text = self._current_tags()
        self.analytics.log_video_click(video_id, title, source, text)
