"""
FeedSteer Preference Store

Redis-backed persistence for the user's category preferences.

Key Schemas:
    PREF:{namespace}:GLOBAL       → Global preference (plain string)
    PREF:{namespace}:TIME_RULES   → Time preferences (JSON list)
    PREF:{namespace}:USER_ID      → Anonymous analytics user id

Reads are fail-open: any Redis or decoding error is logged and treated as
"preference absent" so the controller falls through to the next source.
Writes raise StoreUnavailable.

The temporary fallback (the substitute chosen by the last fuzzy match) is
kept in memory only; it describes the current page, not the user.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional

import redis
from pydantic import ValidationError
from redis.exceptions import RedisError

from core.exceptions import PreferenceConflict, PreferenceNotFound, StoreUnavailable
from core.schemas.inputs import PreferenceSource, TimePreference, TimePreferenceUpdate


logger = logging.getLogger(__name__)


class PreferenceStore:
    """
    Preference persistence with an in-memory temporary fallback.

    Constructed once per engine and passed by reference to the controller;
    there is no process-wide instance.
    """

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        namespace: str = "default",
        now: Callable[[], datetime] = datetime.now,
        on_user_created: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.client = client
        self.namespace = namespace
        self._now = now
        self._fallback_user_id: Optional[str] = None
        self.on_user_created = on_user_created

        self.temporary_fallback: Optional[str] = None
        self.temporary_fallback_source: Optional[PreferenceSource] = None

        if client is None:
            logger.warning("Redis client not configured, preferences unavailable")

    # -------------------------------------------------------------------------
    # Key Builders
    # -------------------------------------------------------------------------

    def _global_key(self) -> str:
        return f"PREF:{self.namespace}:GLOBAL"

    def _time_rules_key(self) -> str:
        return f"PREF:{self.namespace}:TIME_RULES"

    def _user_id_key(self) -> str:
        return f"PREF:{self.namespace}:USER_ID"

    def _require_client(self) -> redis.Redis:
        if self.client is None:
            raise StoreUnavailable("Redis client not configured")
        return self.client

    # -------------------------------------------------------------------------
    # Global Preference
    # -------------------------------------------------------------------------

    def get_global_preference(self) -> Optional[str]:
        """Get the global preference, None if unset or unreadable."""
        if self.client is None:
            return None
        try:
            value = self.client.get(self._global_key())
        except RedisError as e:
            logger.error(f"Error getting global preference: {e}")
            return None
        return value or None

    def set_global_preference(self, value: Optional[str]) -> None:
        """Set the global preference; None or "" clears it."""
        client = self._require_client()
        try:
            if value:
                client.set(self._global_key(), value)
            else:
                client.delete(self._global_key())
        except RedisError as e:
            raise StoreUnavailable(f"Failed to save global preference: {e}") from e
        logger.info(f"Global preference {'set to ' + repr(value) if value else 'cleared'}")

    # -------------------------------------------------------------------------
    # Time Preferences
    # -------------------------------------------------------------------------

    def get_time_preferences(self) -> List[TimePreference]:
        """All stored time preferences (empty if unset or unreadable)."""
        if self.client is None:
            return []
        try:
            data = self.client.get(self._time_rules_key())
            if not data:
                return []
            return [TimePreference(**item) for item in json.loads(data)]
        except (RedisError, json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.error(f"Error getting time preferences: {e}")
            return []

    def _write_time_preferences(self, preferences: List[TimePreference]) -> None:
        client = self._require_client()
        try:
            client.set(
                self._time_rules_key(),
                json.dumps([p.model_dump() for p in preferences])
            )
        except RedisError as e:
            raise StoreUnavailable(f"Failed to save time preferences: {e}") from e

    def save_time_preference(self, preference: TimePreference) -> TimePreference:
        """Add a new time preference; rejects ids in use and overlapping windows."""
        preferences = self.get_time_preferences()

        if any(p.id == preference.id for p in preferences):
            raise PreferenceConflict(f"Time preference with id {preference.id} already exists")
        if self.find_overlap(preference, preferences):
            raise PreferenceConflict("Time preference overlaps with an existing preference")

        preferences.append(preference)
        self._write_time_preferences(preferences)
        logger.info(
            f"Saved time preference {preference.id}: {preference.preference!r} "
            f"({preference.time_range}, days={preference.days})"
        )
        return preference

    def update_time_preference(self, preference_id: str, updates: TimePreferenceUpdate) -> TimePreference:
        """
        Apply a partial update to an existing time preference.

        Raises:
            PreferenceNotFound: Unknown id.
            PreferenceConflict: The updated window overlaps another rule.
            ValidationError: The merged rule is invalid.
        """
        preferences = self.get_time_preferences()
        index = next((i for i, p in enumerate(preferences) if p.id == preference_id), None)
        if index is None:
            raise PreferenceNotFound(f"Time preference with id {preference_id} not found")

        merged = preferences[index].model_dump()
        merged.update(updates.model_dump(exclude_none=True))
        updated = TimePreference(**merged)

        others = [p for p in preferences if p.id != preference_id]
        if self.find_overlap(updated, others):
            raise PreferenceConflict("Updated time preference overlaps with an existing preference")

        preferences[index] = updated
        self._write_time_preferences(preferences)
        return updated

    def delete_time_preference(self, preference_id: str) -> None:
        preferences = self.get_time_preferences()
        remaining = [p for p in preferences if p.id != preference_id]
        if len(remaining) == len(preferences):
            raise PreferenceNotFound(f"Time preference with id {preference_id} not found")
        self._write_time_preferences(remaining)

    def get_active_time_scoped_preference(self, now: Optional[datetime] = None) -> Optional[TimePreference]:
        """First enabled time preference covering the given instant (local time)."""
        when = now or self._now()
        for preference in self.get_time_preferences():
            if preference.is_active_at(when):
                return preference
        return None

    @staticmethod
    def find_overlap(
        candidate: TimePreference,
        existing: List[TimePreference],
    ) -> Optional[TimePreference]:
        """The first existing rule the candidate overlaps, if any."""
        for preference in existing:
            if candidate.overlaps(preference):
                return preference
        return None

    # -------------------------------------------------------------------------
    # Temporary Fallback
    # -------------------------------------------------------------------------

    def set_temporary_fallback(
        self,
        value: Optional[str],
        source: Optional[PreferenceSource] = None,
    ) -> None:
        """Record the substitute chip used when the exact preference was missing."""
        self.temporary_fallback = value
        self.temporary_fallback_source = source if value else None
        if value:
            logger.info(f"Temporary preference set to {value!r} (source: {source.value if source else 'none'})")
        else:
            logger.debug("Temporary preference cleared")

    # -------------------------------------------------------------------------
    # Analytics Identity
    # -------------------------------------------------------------------------

    def get_user_id(self) -> str:
        """
        Anonymous user id, created on first use.

        on_user_created fires only for the writer whose SET NX created the
        id; the in-memory fallback used while Redis is down is not a first run.
        """
        if self.client is not None:
            try:
                key = self._user_id_key()
                user_id = self.client.get(key)
                if user_id:
                    return user_id
                candidate = str(uuid.uuid4())
                # SET NX keeps the first writer's id
                created = self.client.set(key, candidate, nx=True)
                user_id = self.client.get(key) or candidate
            except RedisError as e:
                logger.warning(f"Could not read user id from Redis: {e}")
            else:
                if created:
                    logger.info(f"Created anonymous user id {user_id}")
                    if self.on_user_created is not None:
                        self.on_user_created(user_id)
                return user_id

        if self._fallback_user_id is None:
            self._fallback_user_id = str(uuid.uuid4())
        return self._fallback_user_id
