"""
FeedSteer Analytics Event Logger

Fire-and-forget writer that inserts usage analytics events into the
Supabase `logs` table.

Schema:
    logs (
        id          BIGSERIAL PRIMARY KEY,
        event_id    TEXT,
        user_id     TEXT,
        event_type  TEXT,
        timestamp   TIMESTAMPTZ,
        engine_version TEXT,
        data        JSONB
    )

All writes are best-effort. Errors are logged but never raised, and never
re-recorded as error_occurred events (an emission failure must not trigger
another emission).
"""

from __future__ import annotations

import asyncio
import logging
import os
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from supabase import create_client, Client

from core.schemas.inputs import SessionSource


logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Analytics event kinds."""
    MANUAL_CHIP_SELECTED = "manual_chip_selected"
    TIMEPREF_CHIP_SELECTED = "timepref_chip_selected"
    YOUTUBE_USAGE = "youtube_usage"
    SEARCH_QUERY_ENTERED = "search_query_entered"
    MAINPAGE_ACTION = "mainpage_action"
    VIDEO_CLICKED = "video_clicked"
    EXTENSION_INSTALLED = "extension_installed"
    ERROR_OCCURRED = "error_occurred"


def _source_value(source: Optional[SessionSource]) -> Optional[str]:
    return source.value if source is not None else None


class EventLogger:
    """
    Builds and inserts analytics events into Supabase.

    Inserts run in the event loop's default executor when a loop is running,
    so callers never block on (or await) the network round trip.
    """

    TABLE_NAME = "logs"
    ENGINE_VERSION = "1.0.0"

    def __init__(
        self,
        client: Optional[Client] = None,
        user_id_provider: Optional[Callable[[], str]] = None,
    ) -> None:
        self._client = client
        self._user_id_provider = user_id_provider

    @classmethod
    def from_env(cls, user_id_provider: Optional[Callable[[], str]] = None) -> EventLogger:
        """Create a logger from SUPABASE_URL / SUPABASE_KEY (disabled if missing)."""
        url = os.getenv("SUPABASE_URL")
        key = os.getenv("SUPABASE_KEY")
        if not url or not key:
            logger.warning("Supabase credentials missing, analytics logging disabled")
            return cls(client=None, user_id_provider=user_id_provider)
        return cls(client=create_client(url, key), user_id_provider=user_id_provider)

    @property
    def enabled(self) -> bool:
        return self._client is not None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def record_event(self, event_type: EventType, data: Dict[str, Any]) -> None:
        """Build and submit an analytics event. Never raises."""
        if self._client is None:
            logger.debug(f"Analytics disabled, dropping {event_type.value}")
            return

        try:
            entry = self._build_entry(event_type, data)
        except Exception as e:
            logger.warning(f"Could not build analytics event {event_type.value}: {e}")
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._insert(entry)
            return
        loop.run_in_executor(None, self._insert, entry)

    def log_manual_selection(self, chip_text: str) -> None:
        self.record_event(EventType.MANUAL_CHIP_SELECTED, {
            "chip_text": chip_text,
            "source": SessionSource.MANUAL.value,
        })

    def log_time_scoped_selection(self, chip_text: str, time_range: str) -> None:
        self.record_event(EventType.TIMEPREF_CHIP_SELECTED, {
            "chip_text": chip_text,
            "source": SessionSource.TIME_SCOPED.value,
            "time_range": time_range,
        })

    def log_usage(
        self,
        duration_seconds: float,
        chip_source: Optional[SessionSource],
        chip_text: Optional[str] = None,
    ) -> None:
        self.record_event(EventType.YOUTUBE_USAGE, {
            "duration_seconds": round(duration_seconds, 3),
            "chip_source": _source_value(chip_source),
            "chip_text": chip_text,
        })

    def log_search_query(
        self,
        search_query: str,
        chip_source: Optional[SessionSource],
        chip_text: Optional[str] = None,
    ) -> None:
        self.record_event(EventType.SEARCH_QUERY_ENTERED, {
            "search_query": search_query,
            "chip_source": _source_value(chip_source),
            "chip_text": chip_text,
        })

    def log_mainpage_action(
        self,
        action: str,
        chip_source: Optional[SessionSource],
        chip_text: Optional[str] = None,
    ) -> None:
        self.record_event(EventType.MAINPAGE_ACTION, {
            "action": action,
            "chip_source": _source_value(chip_source),
            "chip_text": chip_text,
        })

    def log_video_click(
        self,
        video_id: str,
        video_title: str,
        chip_source: Optional[SessionSource],
        chip_text: Optional[str] = None,
    ) -> None:
        self.record_event(EventType.VIDEO_CLICKED, {
            "video_id": video_id,
            "video_title": video_title,
            "chip_source": _source_value(chip_source),
            "chip_text": chip_text,
        })

    def log_first_run(self, user_id: str) -> None:
        """Recorded once, when the anonymous user id is first created."""
        self.record_event(EventType.EXTENSION_INSTALLED, {"user_id": user_id})

    def log_error(self, error: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
        self.record_event(EventType.ERROR_OCCURRED, {
            "error_message": str(error),
            "error_type": type(error).__name__,
            "error_stack": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
            **(context or {}),
        })

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _build_entry(self, event_type: EventType, data: Dict[str, Any]) -> Dict[str, Any]:
        user_id = self._user_id_provider() if self._user_id_provider else "anonymous"
        return {
            "event_id": f"evt_{uuid.uuid4()}",
            "user_id": user_id,
            "event_type": event_type.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "engine_version": self.ENGINE_VERSION,
            "data": data,
        }

    def _insert(self, entry: Dict[str, Any]) -> None:
        try:
            self._client.table(self.TABLE_NAME).insert(entry).execute()
            logger.debug(f"Event logged: {entry['event_type']} ({entry['event_id']})")
        except Exception as e:
            logger.warning(f"Analytics insertion failed for {entry['event_type']}: {e}")
