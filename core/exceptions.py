"""
FeedSteer Engine Exceptions

Failure classes shared by the engine, the persistence layer and the API.
None of these are fatal to the engine: the controller recovers from all of
them locally, and the HTTP layer maps the store errors to status codes.
"""


class PreferenceEngineError(Exception):
    """Base class for all engine errors."""
    pass


class CandidateNotFound(PreferenceEngineError):
    """Raised when neither an exact nor a similar candidate exists."""
    pass


class EnvironmentUnavailable(PreferenceEngineError):
    """Raised when the candidate container is absent from the page."""
    pass


class StoreUnavailable(PreferenceEngineError):
    """Raised when the preference store cannot be reached."""
    pass


class PreferenceConflict(PreferenceEngineError):
    """Raised when a time preference overlaps an existing one."""
    pass


class PreferenceNotFound(PreferenceEngineError):
    """Raised when a time preference id does not exist."""
    pass
