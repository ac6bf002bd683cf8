"""
FeedSteer Output Schemas

Pydantic V2 models for responses returned to the messaging collaborator
and the HTTP API.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from core.schemas.inputs import Candidate, PreferenceSource, TimePreference


class GetCandidatesResponse(BaseModel):
    """Reply to GET_CANDIDATES."""
    candidates: List[Candidate] = Field(default_factory=list)
    temporary_fallback: Optional[str] = Field(
        None,
        description="Substitute selected because the exact preference was unavailable"
    )
    temporary_fallback_source: Optional[PreferenceSource] = Field(
        None,
        description="Which preference the substitute stands in for"
    )


class SelectCandidateResponse(BaseModel):
    """Reply to SELECT_CANDIDATE."""
    success: bool


class PageSnapshot(BaseModel):
    """Current state of the mirrored page."""
    title: str = ""
    candidates: List[Candidate] = Field(default_factory=list)
    selected: Optional[str] = None
    visible: bool = True
    selection_actions: int = Field(0, ge=0, description="Selection actions issued so far")


class GlobalPreferenceResponse(BaseModel):
    value: Optional[str] = None


class TimePreferencesResponse(BaseModel):
    preferences: List[TimePreference] = Field(default_factory=list)
    active: Optional[TimePreference] = None
