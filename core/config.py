"""
FeedSteer Engine Configuration

Timing constants for the preference engine. Every value can be overridden
through an environment variable so deployments (and tests) can tune the
reaction speed without code changes.

Environment:
    FEEDSTEER_COOLDOWN_SECONDS          (default: 2.0)
    FEEDSTEER_CLICK_RESET_SECONDS       (default: 0.1)
    FEEDSTEER_RETRY_DELAY_SECONDS       (default: 0.5)
    FEEDSTEER_MIN_SESSION_SECONDS       (default: 5.0)
    FEEDSTEER_INITIAL_LOAD_SECONDS      (default: 1.5)
    FEEDSTEER_PAGE_LOAD_SECONDS         (default: 1.0)
    FEEDSTEER_CANDIDATE_LOAD_SECONDS    (default: 0.5)
    FEEDSTEER_SCHEDULER_INTERVAL_SECONDS (default: 3600)
    FEEDSTEER_DEFAULT_CANDIDATE         (default: "All")
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass


logger = logging.getLogger(__name__)


DEFAULT_CANDIDATE = "All"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


@dataclass(frozen=True)
class EngineConfig:
    """Timing and default values used by the controller and observer."""

    cooldown_seconds: float = 2.0
    """Minimum interval between two apply() attempts."""

    click_reset_seconds: float = 0.1
    """How long a programmatic selection suppresses re-entry."""

    retry_delay_seconds: float = 0.5
    """Delay before the single candidate re-fetch."""

    min_session_seconds: float = 5.0
    """Sessions shorter than this are discarded, not logged."""

    initial_load_seconds: float = 1.5
    page_load_seconds: float = 1.0
    candidate_load_seconds: float = 0.5

    scheduler_interval_seconds: float = 3600.0
    """How often the time-preference scheduler re-checks active rules."""

    default_candidate: str = DEFAULT_CANDIDATE
    """Canonical option used when nothing else can be resolved."""

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Build a config from FEEDSTEER_* environment variables."""
        return cls(
            cooldown_seconds=_env_float("FEEDSTEER_COOLDOWN_SECONDS", cls.cooldown_seconds),
            click_reset_seconds=_env_float("FEEDSTEER_CLICK_RESET_SECONDS", cls.click_reset_seconds),
            retry_delay_seconds=_env_float("FEEDSTEER_RETRY_DELAY_SECONDS", cls.retry_delay_seconds),
            min_session_seconds=_env_float("FEEDSTEER_MIN_SESSION_SECONDS", cls.min_session_seconds),
            initial_load_seconds=_env_float("FEEDSTEER_INITIAL_LOAD_SECONDS", cls.initial_load_seconds),
            page_load_seconds=_env_float("FEEDSTEER_PAGE_LOAD_SECONDS", cls.page_load_seconds),
            candidate_load_seconds=_env_float(
                "FEEDSTEER_CANDIDATE_LOAD_SECONDS", cls.candidate_load_seconds
            ),
            scheduler_interval_seconds=_env_float(
                "FEEDSTEER_SCHEDULER_INTERVAL_SECONDS", cls.scheduler_interval_seconds
            ),
            default_candidate=os.getenv("FEEDSTEER_DEFAULT_CANDIDATE") or DEFAULT_CANDIDATE,
        )
