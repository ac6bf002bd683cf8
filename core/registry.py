"""
FeedSteer Chip Registry

Thin adapter between the controller and the page environment. Reads the
current chips and their selection state, applying the page's exclusivity
rule: the default chip ("All") is not selected while any other chip is.
"""

import logging
from typing import List, Optional

from core.config import DEFAULT_CANDIDATE
from core.exceptions import EnvironmentUnavailable
from core.page import Environment
from core.schemas.inputs import Candidate


logger = logging.getLogger(__name__)


class ChipRegistry:
    """Read/act adapter over an Environment."""

    def __init__(self, environment: Environment, default_candidate: str = DEFAULT_CANDIDATE) -> None:
        self.environment = environment
        self.default_candidate = default_candidate

    def list_candidates(self) -> List[Candidate]:
        """Current chips in presentation order; empty if the container is absent."""
        try:
            candidates = self.environment.list_candidates()
        except EnvironmentUnavailable as e:
            logger.info(f"No candidates available: {e}")
            return []

        logger.debug(f"Found {len(candidates)} category chips")
        return candidates

    def has_candidate(self, text: str) -> bool:
        return any(c.text == text for c in self.list_candidates())

    def is_selected(self, text: str) -> bool:
        """
        Whether a chip is selected.

        The default chip can keep a stale selected flag while another chip
        is active, so it only counts as selected when no other chip is.
        """
        candidates = self.list_candidates()
        if text == self.default_candidate:
            other_selected = any(
                self.environment.is_selected(c.text)
                for c in candidates
                if c.text != self.default_candidate
            )
            if other_selected:
                logger.debug(f"{text!r} is not selected because another chip is")
                return False

        return any(c.text == text for c in candidates) and self.environment.is_selected(text)

    def current_selection(self) -> Optional[str]:
        """Text of the selected chip, or None."""
        for candidate in self.list_candidates():
            if self.is_selected(candidate.text):
                return candidate.text
        return None

    def select(self, text: str) -> bool:
        """Issue the click; True iff the chip was found and clicked."""
        return self.environment.select_candidate(text)

    def hide(self) -> None:
        self.environment.hide_candidates()
