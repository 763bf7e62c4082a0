"""Match detection over live session and vote snapshots."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from biteswipe.domain.models import Restaurant, Session, VotesSnapshot
from biteswipe.services.catalog import find_restaurant
from biteswipe.services.sessions import SessionCoordinator
from biteswipe.services.subscriptions import SubscriptionGroup
from biteswipe.services.votes import VoteAggregator, evaluate_consensus

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchFound:
    """Every current participant voted yes on one restaurant."""

    session_id: str
    restaurant_id: str
    restaurant: Restaurant | None
    participant_count: int


MatchListener = Callable[[MatchFound], None]


@dataclass
class ConsensusMonitor:
    """Feeds one derived unanimity check from two independent subscriptions.

    The roster is read from the latest session snapshot on every evaluation,
    so a vote that arrives before the session (or a roster change after the
    votes) is still evaluated against the current headcount. Each restaurant
    is announced at most once per monitor.
    """

    session_id: str
    coordinator: SessionCoordinator
    aggregator: VoteAggregator
    restaurants: list[Restaurant] = field(default_factory=list)
    session: Session | None = None
    votes: VotesSnapshot = field(default_factory=dict)
    matched: set[str] = field(default_factory=set)
    _listeners: list[MatchListener] = field(default_factory=list)
    _subscriptions: SubscriptionGroup = field(default_factory=SubscriptionGroup)

    @property
    def running(self) -> bool:
        return self._subscriptions.active_count > 0

    def add_listener(self, listener: MatchListener) -> Callable[[], None]:
        """Register a match listener and return a function that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def start(self) -> None:
        """Subscribe to the session node and its votes subtree."""
        if self.running:
            return
        self._subscriptions.add(
            self.coordinator.observe_session(self.session_id, self.on_session)
        )
        self._subscriptions.add(
            self.aggregator.observe_votes(self.session_id, self.on_votes)
        )

    def close(self) -> None:
        """Release both subscriptions."""
        self._subscriptions.close()

    def on_session(self, session: Session | None) -> None:
        self.session = session
        self.evaluate()

    def on_votes(self, votes: VotesSnapshot) -> None:
        self.votes = votes
        self.evaluate()

    def evaluate(self) -> list[MatchFound]:
        """Announce restaurants that newly reached unanimity."""
        if self.session is None:
            return []
        found = []
        for restaurant_id in evaluate_consensus(self.votes, self.session.participants):
            if restaurant_id in self.matched:
                continue
            self.matched.add(restaurant_id)
            event = MatchFound(
                session_id=self.session_id,
                restaurant_id=restaurant_id,
                restaurant=find_restaurant(self.restaurants, restaurant_id),
                participant_count=self.session.participant_count,
            )
            _logger.info(
                "Match found: session=%s restaurant=%s participants=%s",
                self.session_id,
                restaurant_id,
                event.participant_count,
            )
            found.append(event)
            self._emit(event)
        return found

    def _emit(self, event: MatchFound) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                _logger.exception(
                    "Match listener failed: session=%s restaurant=%s",
                    event.session_id,
                    event.restaurant_id,
                )
