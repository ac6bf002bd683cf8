"""
FeedSteer Input Schemas

This module defines Pydantic V2 models for:
- Candidates exposed by the page environment
- Preferences (global and time-scoped rules)
- Inbound messages from the popup/messaging collaborator (closed union)
- Page-mirror ingress and activity tracking payloads
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Set, Union
from uuid import uuid4

from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator


# =============================================================================
# Enums
# =============================================================================

class PreferenceSource(str, Enum):
    """Where a desired value came from."""
    GLOBAL = "global"
    TIME = "time"

    @property
    def session_source(self) -> "SessionSource":
        if self is PreferenceSource.TIME:
            return SessionSource.TIME_SCOPED
        return SessionSource.MANUAL


class SessionSource(str, Enum):
    """Usage-accounting tag for an open session (None means no source)."""
    MANUAL = "manual"
    TIME_SCOPED = "time_pref"


class MessageType(str, Enum):
    """Request types accepted from the messaging collaborator."""
    GET_CANDIDATES = "GET_CANDIDATES"
    SELECT_CANDIDATE = "SELECT_CANDIDATE"


# =============================================================================
# Environment Models
# =============================================================================

class Candidate(BaseModel):
    """An option currently exposed by the environment (a category chip)."""
    text: str = Field(..., min_length=1, description="Visible chip label")
    position: int = Field(..., ge=0, description="Presentation order on the page")


# =============================================================================
# Preferences
# =============================================================================

class TimePreference(BaseModel):
    """
    A time-scoped rule selecting a category on given days and hours.

    Days use 0 = Sunday ... 6 = Saturday. The hour window is
    [start_hour, end_hour) and wraps overnight when start_hour > end_hour.
    """
    id: str = Field(default_factory=lambda: str(uuid4()), description="Rule identifier")
    preference: str = Field(..., min_length=1, description="Category to select")
    days: List[int] = Field(..., min_length=1, description="Active weekdays (0=Sunday)")
    start_hour: int = Field(..., ge=0, lt=24, description="Window start hour (inclusive)")
    end_hour: int = Field(..., ge=0, lt=24, description="Window end hour (exclusive)")
    enabled: bool = Field(True, description="Disabled rules are never active")

    @field_validator("days")
    @classmethod
    def validate_days(cls, v: List[int]) -> List[int]:
        if any(day < 0 or day > 6 for day in v):
            raise ValueError("days must be in 0..6 (0=Sunday)")
        return sorted(set(v))

    @model_validator(mode="after")
    def validate_window(self) -> "TimePreference":
        if self.start_hour == self.end_hour:
            raise ValueError("start_hour and end_hour must differ (empty window)")
        return self

    @property
    def time_range(self) -> str:
        return f"{self.start_hour}-{self.end_hour}"

    @property
    def is_overnight(self) -> bool:
        return self.start_hour > self.end_hour

    def active_hours(self) -> Set[int]:
        """Hours of the day covered by this rule's window."""
        if self.start_hour < self.end_hour:
            return set(range(self.start_hour, self.end_hour))
        return set(range(self.start_hour, 24)) | set(range(0, self.end_hour))

    def is_active_at(self, when: datetime) -> bool:
        """True if the rule is enabled and covers the instant's weekday and hour."""
        if not self.enabled:
            return False
        # datetime.weekday() is Monday=0; rules are Sunday=0
        weekday = (when.weekday() + 1) % 7
        if weekday not in self.days:
            return False
        return when.hour in self.active_hours()

    def overlaps(self, other: "TimePreference") -> bool:
        """
        Two enabled rules overlap iff they share a weekday and their hour
        windows intersect. Windows are compared with the same wrap rule used
        by is_active_at, so overnight and same-day ranges classify alike.
        """
        if not self.enabled or not other.enabled:
            return False
        if not set(self.days) & set(other.days):
            return False
        return bool(self.active_hours() & other.active_hours())


class TimePreferenceUpdate(BaseModel):
    """Partial update for an existing time preference."""
    preference: Optional[str] = Field(None, min_length=1)
    days: Optional[List[int]] = Field(None, min_length=1)
    start_hour: Optional[int] = Field(None, ge=0, lt=24)
    end_hour: Optional[int] = Field(None, ge=0, lt=24)
    enabled: Optional[bool] = None


class GlobalPreferencePayload(BaseModel):
    """Body for setting (or clearing, with null) the global preference."""
    value: Optional[str] = Field(None, description="Desired chip label, null clears it")


# =============================================================================
# Messages (closed union, discriminated on "type")
# =============================================================================

class GetCandidatesMessage(BaseModel):
    """Ask for the current candidates and the temporary fallback."""
    type: Literal["GET_CANDIDATES"] = MessageType.GET_CANDIDATES.value


class SelectCandidateMessage(BaseModel):
    """Select a candidate on the user's behalf."""
    type: Literal["SELECT_CANDIDATE"] = MessageType.SELECT_CANDIDATE.value
    text: str = Field(..., min_length=1, description="Chip label to select")
    clear_temporary_fallback: bool = Field(
        False,
        description="Drop the substitute value recorded by the last fuzzy match"
    )


Message = Annotated[
    Union[GetCandidatesMessage, SelectCandidateMessage],
    Field(discriminator="type"),
]

_message_adapter = TypeAdapter(Message)


def parse_message(data: dict) -> Union[GetCandidatesMessage, SelectCandidateMessage]:
    """Validate a raw message dict into its variant."""
    return _message_adapter.validate_python(data)


# =============================================================================
# Page Mirror Ingress
# =============================================================================

class NavigationPayload(BaseModel):
    """The page's title node changed (SPA navigation)."""
    title: str = Field(..., description="New page title")


class CandidateInsertPayload(BaseModel):
    """The chip bar was (re)rendered with these labels, in order."""
    candidates: List[str] = Field(..., description="Chip labels in presentation order")
    selected: List[str] = Field(
        default_factory=list,
        description="Labels currently carrying a selected flag"
    )

    @field_validator("candidates")
    @classmethod
    def validate_unique(cls, v: List[str]) -> List[str]:
        cleaned = [text.strip() for text in v if text and text.strip()]
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("candidate labels must be unique")
        return cleaned


# =============================================================================
# Activity Tracking
# =============================================================================

class SearchPayload(BaseModel):
    """The user submitted a search from the main page."""
    query: str = Field(..., min_length=1)


class VideoClickPayload(BaseModel):
    """The user opened a video from the feed."""
    video_id: str = Field(..., min_length=1)
    title: str = Field("", description="Video title as shown in the feed")
