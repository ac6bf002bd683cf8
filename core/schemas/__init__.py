"""
FeedSteer Schemas

Public exports for input and output Pydantic models.
"""

# Input schemas - Environment & preferences
from core.schemas.inputs import (
    Candidate,
    PreferenceSource,
    SessionSource,
    TimePreference,
    TimePreferenceUpdate,
    GlobalPreferencePayload,
)

# Input schemas - Messages
from core.schemas.inputs import (
    MessageType,
    GetCandidatesMessage,
    SelectCandidateMessage,
    Message,
    parse_message,
)

# Input schemas - Page ingress & activity
from core.schemas.inputs import (
    NavigationPayload,
    CandidateInsertPayload,
    SearchPayload,
    VideoClickPayload,
)

# Output schemas
from core.schemas.outputs import (
    GetCandidatesResponse,
    SelectCandidateResponse,
    PageSnapshot,
    GlobalPreferenceResponse,
    TimePreferencesResponse,
)

__all__ = [
    # Input - Environment & preferences
    "Candidate",
    "PreferenceSource",
    "SessionSource",
    "TimePreference",
    "TimePreferenceUpdate",
    "GlobalPreferencePayload",
    # Input - Messages
    "MessageType",
    "GetCandidatesMessage",
    "SelectCandidateMessage",
    "Message",
    "parse_message",
    # Input - Page ingress & activity
    "NavigationPayload",
    "CandidateInsertPayload",
    "SearchPayload",
    "VideoClickPayload",
    # Output
    "GetCandidatesResponse",
    "SelectCandidateResponse",
    "PageSnapshot",
    "GlobalPreferenceResponse",
    "TimePreferencesResponse",
]
