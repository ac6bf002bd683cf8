"""
FeedSteer Application Controller

Decides when and how to apply the user's category preference to the page.

Pipeline (one apply() call):
    in-flight guard → cooldown → fetch chips (one retry) → precedence
    → exact select → similarity fallback → session accounting

Phases:
    IDLE → COOLDOWN_BLOCKED → RESOLVING → APPLIED → IDLE
    STOPPED after shutdown()

Nothing here is fatal: every branch degrades to selecting nothing new and
recording a session for whatever the page currently shows.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple, Union

from core.config import EngineConfig
from core.exceptions import CandidateNotFound
from core.matcher import best_match
from core.registry import ChipRegistry
from core.schemas.inputs import (
    Candidate,
    GetCandidatesMessage,
    PreferenceSource,
    SelectCandidateMessage,
    SessionSource,
    TimePreference,
)
from core.schemas.outputs import GetCandidatesResponse, SelectCandidateResponse
from core.sessions import SessionTracker
from persistence.event_logger import EventLogger
from persistence.preference_store import PreferenceStore


logger = logging.getLogger(__name__)


# =============================================================================
# State
# =============================================================================

class ControllerPhase(str, Enum):
    IDLE = "IDLE"
    COOLDOWN_BLOCKED = "COOLDOWN_BLOCKED"
    RESOLVING = "RESOLVING"
    APPLIED = "APPLIED"
    STOPPED = "STOPPED"


@dataclass
class ControllerState:
    """Re-entry guards, owned and mutated by the controller only."""
    last_applied_at: Optional[float] = None
    is_external_action_in_flight: bool = False
    has_applied_this_page: bool = False


@dataclass(frozen=True)
class ResolvedPreference:
    value: str
    source: PreferenceSource
    rule: Optional[TimePreference] = None


# =============================================================================
# Controller
# =============================================================================

class ApplicationController:
    """
    Applies preferences to the page in response to change notifications.

    Owns ControllerState and the SessionTracker; the observer only reads
    the state to gate re-entry.
    """

    def __init__(
        self,
        registry: ChipRegistry,
        store: PreferenceStore,
        analytics: EventLogger,
        config: Optional[EngineConfig] = None,
        sessions: Optional[SessionTracker] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.registry = registry
        self.store = store
        self.analytics = analytics
        self.config = config or EngineConfig()
        self.sessions = sessions or SessionTracker(
            analytics, min_duration_seconds=self.config.min_session_seconds
        )
        self._clock = clock

        self.state = ControllerState()
        self._phase = ControllerPhase.IDLE
        self._reset_handle: Optional[asyncio.TimerHandle] = None

        logger.info("ApplicationController initialized")

    # -------------------------------------------------------------------------
    # Apply
    # -------------------------------------------------------------------------

    async def apply(self) -> None:
        """Apply the highest-precedence preference to the current page."""
        if self._phase == ControllerPhase.STOPPED:
            return
        if self.state.is_external_action_in_flight:
            logger.debug("Skipping apply: programmatic selection in flight")
            return

        remaining = self.cooldown_remaining()
        if remaining > 0:
            # A running apply keeps its RESOLVING phase
            if self._phase != ControllerPhase.RESOLVING:
                self._phase = ControllerPhase.COOLDOWN_BLOCKED
            logger.debug(f"Skipping apply: cooldown ({remaining:.2f}s remaining)")
            return

        # Stamped before the retry await so concurrent calls see it
        self.state.last_applied_at = self._clock()
        self._phase = ControllerPhase.RESOLVING

        try:
            await self._apply()
        except Exception as e:
            logger.exception(f"Error applying preference: {e}")
            self.analytics.log_error(e, {"context": "apply_preference"})
        finally:
            if self._phase != ControllerPhase.STOPPED:
                self._phase = ControllerPhase.IDLE

    def cooldown_remaining(self) -> float:
        """Seconds until apply() is allowed again (0 when it is allowed now)."""
        last = self.state.last_applied_at
        if last is None:
            return 0.0
        return max(0.0, self.config.cooldown_seconds - (self._clock() - last))

    @property
    def phase(self) -> ControllerPhase:
        """Current phase; a cooldown block lapses back to IDLE once the cooldown ends."""
        if self._phase == ControllerPhase.COOLDOWN_BLOCKED and self.cooldown_remaining() <= 0:
            return ControllerPhase.IDLE
        return self._phase

    async def _apply(self) -> None:
        candidates = await self._fetch_candidates()
        if not candidates:
            logger.info("No chips after retry, falling back to default")
            self.sessions.start_session(self.config.default_candidate, None)
            return

        resolved = self._resolve_preference()
        self.state.has_applied_this_page = True

        if resolved is None:
            self._open_fallback_session()
            self._phase = ControllerPhase.APPLIED
            return

        if self._select(resolved.value):
            self.store.set_temporary_fallback(None)
            self._open_session(resolved.value, resolved)
            self._phase = ControllerPhase.APPLIED
            return

        try:
            text = self._select_similar(resolved, candidates)
        except CandidateNotFound as e:
            logger.info(str(e))
            self.store.set_temporary_fallback(None)
            self._open_fallback_session()
        else:
            self._open_session(text, resolved)
        self._phase = ControllerPhase.APPLIED

    def _select_similar(self, resolved: ResolvedPreference, candidates: List[Candidate]) -> str:
        result = best_match(resolved.value, candidates)
        if result is None:
            raise CandidateNotFound(f"No chip similar to {resolved.value!r}")

        text = result.candidate.text
        logger.info(
            f"Using similar chip {text!r} instead of {resolved.value!r} "
            f"(score={result.score:.3f})"
        )
        if not self._select(text):
            raise CandidateNotFound(f"Similar chip {text!r} could not be selected")
        self.store.set_temporary_fallback(text, resolved.source)
        return text

    async def _fetch_candidates(self) -> List[Candidate]:
        candidates = self.registry.list_candidates()
        if candidates:
            return candidates

        await asyncio.sleep(self.config.retry_delay_seconds)
        return self.registry.list_candidates()

    def _resolve_preference(self) -> Optional[ResolvedPreference]:
        """Active time preference overrides the global one."""
        try:
            rule = self.store.get_active_time_scoped_preference()
        except Exception as e:
            logger.error(f"Error getting active time preference: {e}")
            rule = None
        if rule is not None:
            logger.info(f"Using time preference: {rule.preference!r} ({rule.time_range})")
            return ResolvedPreference(rule.preference, PreferenceSource.TIME, rule)

        try:
            value = self.store.get_global_preference()
        except Exception as e:
            logger.error(f"Error getting global preference: {e}")
            value = None
        if value:
            logger.info(f"Using global preference: {value!r}")
            return ResolvedPreference(value, PreferenceSource.GLOBAL)
        return None

    def _open_session(self, text: str, resolved: ResolvedPreference) -> None:
        self.sessions.start_session(text, resolved.source.session_source)
        if resolved.rule is not None:
            self.analytics.log_time_scoped_selection(text, resolved.rule.time_range)

    def _open_fallback_session(self) -> None:
        current = self.registry.current_selection()
        self.sessions.start_session(current or self.config.default_candidate, None)

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def _select(self, text: str) -> bool:
        """
        Click a chip by exact label.

        The default chip is always re-clicked; any other chip that is
        already selected counts as success without an action. The in-flight
        flag is raised before the click so the page's own re-render does not
        re-trigger the observer.
        """
        force = text == self.config.default_candidate
        if not force and self.registry.is_selected(text):
            logger.debug(f"Chip {text!r} is already selected")
            return True
        if not self.registry.has_candidate(text):
            return False

        self.state.is_external_action_in_flight = True
        self.state.has_applied_this_page = True
        try:
            clicked = self.registry.select(text)
        except Exception as e:
            logger.error(f"Error clicking chip {text!r}: {e}")
            self.state.is_external_action_in_flight = False
            return False

        self._schedule_in_flight_reset()
        return clicked

    def _schedule_in_flight_reset(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to defer on: nothing can re-enter before we return
            self._clear_in_flight()
            return
        self._reset_handle = loop.call_later(self.config.click_reset_seconds, self._clear_in_flight)

    def _clear_in_flight(self) -> None:
        self.state.is_external_action_in_flight = False
        self._reset_handle = None

    # -------------------------------------------------------------------------
    # Messaging
    # -------------------------------------------------------------------------

    def list_candidates(self) -> GetCandidatesResponse:
        return GetCandidatesResponse(
            candidates=self.registry.list_candidates(),
            temporary_fallback=self.store.temporary_fallback,
            temporary_fallback_source=self.store.temporary_fallback_source,
        )

    def select(self, text: str, clear_temporary_fallback: bool = False) -> bool:
        """Manual selection requested by the user (SELECT_CANDIDATE)."""
        self.state.is_external_action_in_flight = False
        self.state.has_applied_this_page = False

        if clear_temporary_fallback:
            self.store.set_temporary_fallback(None)

        success = self._select(text)
        if success:
            self.sessions.start_session(text, SessionSource.MANUAL)
            self.analytics.log_manual_selection(text)
        return success

    def handle_message(
        self,
        message: Union[GetCandidatesMessage, SelectCandidateMessage],
    ) -> Union[GetCandidatesResponse, SelectCandidateResponse]:
        """Dispatch one message variant to its handler."""
        if isinstance(message, GetCandidatesMessage):
            return self.list_candidates()
        if isinstance(message, SelectCandidateMessage):
            success = self.select(message.text, message.clear_temporary_fallback)
            return SelectCandidateResponse(success=success)
        raise TypeError(f"Unknown message type: {type(message).__name__}")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def reset_for_navigation(self) -> None:
        """Synchronous per-page reset; runs before any apply() it schedules."""
        self.state.has_applied_this_page = False
        self.registry.hide()

    def teardown(self) -> None:
        """Page unload: close the open usage session."""
        self.sessions.close_on_teardown()

    def shutdown(self) -> None:
        self.teardown()
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None
        self._phase = ControllerPhase.STOPPED
        logger.info("ApplicationController stopped")

    @property
    def current_session(self) -> Tuple[Optional[SessionSource], Optional[str]]:
        session = self.sessions.current
        if session is None:
            return None, None
        return session.source, session.selected_text
