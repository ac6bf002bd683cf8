"""
FeedSteer Page Environment

The environment is the page whose category chips the engine steers. The
engine only talks to it through the Environment protocol:

    list_candidates()        → ordered chips (raises EnvironmentUnavailable
                               when the chip container is absent)
    is_selected(text)        → raw selected flag of one chip
    select_candidate(text)   → True iff the chip exists and was clicked
    hide_candidates()        → hide the chip bar affordance
    feed                     → ChangeFeed delivering mutation notifications

InMemoryPage is the in-process mirror of a real page. A page driver pushes
navigation and chip renders into it (see main.py), and the engine's
selection actions are read back from it.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Set

from core.exceptions import EnvironmentUnavailable
from core.schemas.inputs import Candidate


logger = logging.getLogger(__name__)


# =============================================================================
# Change Feed
# =============================================================================

class ChangeChannel(str, Enum):
    """The two classes of environment mutation the engine reacts to."""
    NAVIGATION = "navigation"
    CONTENT = "content"


@dataclass(frozen=True)
class ChangeNotification:
    """A discrete mutation delivered on one channel."""
    channel: ChangeChannel
    has_candidate: bool = False
    title: Optional[str] = None


ChangeCallback = Callable[[ChangeNotification], None]


class Subscription:
    """Handle returned by ChangeFeed.subscribe()."""

    def __init__(self, feed: ChangeFeed, channel: ChangeChannel, callback: ChangeCallback) -> None:
        self._feed = feed
        self.channel = channel
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self._feed._remove(self)
            self.active = False


class ChangeFeed:
    """Synchronous publish/subscribe over the named change channels."""

    def __init__(self) -> None:
        self._subscribers: Dict[ChangeChannel, List[Subscription]] = defaultdict(list)

    def subscribe(self, channel: ChangeChannel, callback: ChangeCallback) -> Subscription:
        subscription = Subscription(self, channel, callback)
        self._subscribers[channel].append(subscription)
        return subscription

    def publish(self, notification: ChangeNotification) -> None:
        for subscription in list(self._subscribers[notification.channel]):
            subscription.callback(notification)

    def subscriber_count(self, channel: ChangeChannel) -> int:
        return len(self._subscribers[channel])

    def _remove(self, subscription: Subscription) -> None:
        subscribers = self._subscribers[subscription.channel]
        if subscription in subscribers:
            subscribers.remove(subscription)


# =============================================================================
# Environment Protocol
# =============================================================================

class Environment(Protocol):
    feed: ChangeFeed

    def list_candidates(self) -> List[Candidate]: ...

    def is_selected(self, text: str) -> bool: ...

    def select_candidate(self, text: str) -> bool: ...

    def hide_candidates(self) -> None: ...


# =============================================================================
# In-Memory Page
# =============================================================================

class InMemoryPage:
    """
    In-process page mirror implementing the Environment protocol.

    The chip container is absent until the first render (and again after
    every navigation), matching how the real page tears down its chip bar
    between views.
    """

    def __init__(self, title: str = "") -> None:
        self.feed = ChangeFeed()
        self.title = title
        self.visible = True
        self.selection_actions = 0
        self.selection_history: List[str] = []
        self._candidates: Optional[List[str]] = None
        self._marked: Set[str] = set()

    # -------------------------------------------------------------------------
    # Environment protocol
    # -------------------------------------------------------------------------

    def list_candidates(self) -> List[Candidate]:
        if self._candidates is None:
            raise EnvironmentUnavailable("Chip container not found")
        return [Candidate(text=text, position=i) for i, text in enumerate(self._candidates)]

    def is_selected(self, text: str) -> bool:
        return text in self._marked

    def select_candidate(self, text: str) -> bool:
        if self._candidates is None or text not in self._candidates:
            return False

        self._marked = {text}
        self.selection_actions += 1
        self.selection_history.append(text)
        logger.debug(f"Chip clicked: {text!r}")

        # Clicking re-renders the chip bar
        self.feed.publish(ChangeNotification(ChangeChannel.CONTENT, has_candidate=True))
        return True

    def hide_candidates(self) -> None:
        self.visible = False

    # -------------------------------------------------------------------------
    # Mutations pushed by the page driver
    # -------------------------------------------------------------------------

    def navigate(self, title: str) -> None:
        """Title change: the view switched and the old chip bar is gone."""
        self.title = title
        self._candidates = None
        self._marked = set()
        self.feed.publish(ChangeNotification(ChangeChannel.NAVIGATION, title=title))

    def insert_candidates(self, texts: Iterable[str], selected: Optional[Iterable[str]] = None) -> None:
        """The chip bar was rendered with these labels (in order)."""
        self._candidates = list(texts)
        self._marked = {text for text in (selected or []) if text in self._candidates}
        self.visible = True
        self.feed.publish(
            ChangeNotification(ChangeChannel.CONTENT, has_candidate=bool(self._candidates))
        )

    def insert_content(self) -> None:
        """Unrelated content was inserted (feed items, comments, ...)."""
        self.feed.publish(
            ChangeNotification(ChangeChannel.CONTENT, has_candidate=bool(self._candidates))
        )

    def remove_candidates(self) -> None:
        self._candidates = None
        self._marked = set()

    @property
    def selected(self) -> Optional[str]:
        if self._candidates is None:
            return None
        for text in self._candidates:
            if text in self._marked:
                return text
        return None
