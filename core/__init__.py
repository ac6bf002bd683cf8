"""
FeedSteer Core

Central module exports for the FeedSteer preference engine.
"""

from core.controller import ApplicationController
from core.engine import PreferenceEngine
from core.matcher import match

__version__ = "1.0.0"

__all__ = [
    "ApplicationController",
    "PreferenceEngine",
    "match",
]
