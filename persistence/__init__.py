"""
FeedSteer Persistence Layer

Public exports for the Redis connection, preference store and analytics logger.
"""

from .connection import get_redis_client
from .preference_store import PreferenceStore
from .event_logger import EventLogger, EventType

__all__ = [
    "get_redis_client",
    "PreferenceStore",
    "EventLogger",
    "EventType",
]
