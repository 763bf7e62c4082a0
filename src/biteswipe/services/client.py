"""Per-participant engine: one instance per device or browser session.

This is the boundary where failures become notices. Domain errors raised by
the coordinator and aggregator are published to the notice sink and the call
returns None or False; nothing escapes to the caller.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass, field
from typing import Protocol, TypeVar

from biteswipe.domain.errors import (
    DomainError,
    ErrorCode,
    NotAuthenticatedError,
    SessionNotFoundError,
)
from biteswipe.domain.models import Restaurant, Session, VoteChoice
from biteswipe.domain.screens import Screen, screen_for
from biteswipe.services.catalog import RestaurantCatalog
from biteswipe.services.consensus import ConsensusMonitor, MatchFound
from biteswipe.services.identity import IdentityProvider
from biteswipe.services.notices import Notice, NoticeLevel, NoticeSink
from biteswipe.services.sessions import SessionCoordinator
from biteswipe.services.subscriptions import Subscription, SubscriptionGroup
from biteswipe.services.votes import VoteAggregator

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class ShareTarget(Protocol):
    """Native share sheet or equivalent."""

    async def share(self, title: str, text: str) -> None:
        """Offer text to other apps."""


class Clipboard(Protocol):
    """Clipboard used when sharing is unavailable."""

    def copy(self, text: str) -> None:
        """Place text on the clipboard."""


@dataclass
class BiteSwipeClient:
    """Drives one participant through create/join, voting and the match."""

    identity: IdentityProvider
    coordinator: SessionCoordinator
    aggregator: VoteAggregator
    catalog: RestaurantCatalog
    notices: NoticeSink
    share_target: ShareTarget | None = None
    clipboard: Clipboard | None = None
    session: Session | None = None
    screen: Screen = Screen.HOME
    connected: bool = False
    match: MatchFound | None = None
    restaurants: list[Restaurant] = field(default_factory=list)
    current_index: int = 0
    own_votes: dict[str, VoteChoice] = field(default_factory=dict)
    _matched: dict[str, set[str]] = field(default_factory=dict)
    _matches: dict[str, MatchFound] = field(default_factory=dict)
    _visit: SubscriptionGroup = field(default_factory=SubscriptionGroup)
    _monitor: ConsensusMonitor | None = None
    _connection: Subscription | None = None
    _pending: set[asyncio.Task] = field(default_factory=set)
    _leaving: bool = False

    @property
    def participant_id(self) -> str | None:
        return self.identity.current_identity()

    @property
    def is_host(self) -> bool:
        return (
            self.session is not None
            and self.participant_id is not None
            and self.session.is_host(self.participant_id)
        )

    @property
    def current_restaurant(self) -> Restaurant | None:
        """The candidate on top of the deck, or None once every card is swiped."""
        if 0 <= self.current_index < len(self.restaurants):
            return self.restaurants[self.current_index]
        return None

    async def start(self) -> None:
        """Establish an anonymous identity and watch connectivity."""
        await self._ensure_identity()
        if self._connection is None:
            release = self.coordinator.store.observe_connection(self._on_connection)
            self._connection = Subscription(path=".info/connected", _release=release)

    async def stop(self) -> None:
        """Leave the current screen and stop watching connectivity."""
        self.exit_session()
        if self._connection is not None:
            self._connection.release()
            self._connection = None
        await self.settle()

    async def create_session(self, name: str = "Host") -> Session | None:
        session = await self._run(
            lambda participant_id: self.coordinator.create_session(participant_id, name)
        )
        if session is not None:
            self._notify(NoticeLevel.SUCCESS, "Session created!")
            await self.enter_session(session.id)
        return session

    async def join_session(self, code: str, name: str = "Participant") -> Session | None:
        if not code.strip():
            self._notify(NoticeLevel.ERROR, "Please enter a session code")
            return None
        session = await self._run(
            lambda participant_id: self.coordinator.join_session(
                code, participant_id, name
            )
        )
        if session is not None:
            self._notify(NoticeLevel.SUCCESS, "Joined session!")
            await self.enter_session(session.id)
        return session

    async def leave_session(self) -> bool:
        if self.session is None:
            return False
        session_id = self.session.id
        self._leaving = True
        try:
            result = await self._run(
                lambda participant_id: self._leave(session_id, participant_id)
            )
        finally:
            self._leaving = False
        if result is not True:
            return False
        self.exit_session()
        return True

    async def start_voting(self) -> bool:
        """Host action; the screen change follows the observed state write."""
        if self.session is None:
            return False
        session_id = self.session.id
        result = await self._run(
            lambda participant_id: self._start(session_id, participant_id)
        )
        return result is True

    async def vote(self, restaurant_id: str, choice: VoteChoice | str) -> bool:
        if self.session is None:
            self._publish_error(SessionNotFoundError(""))
            return False
        session_id = self.session.id
        recorded = await self._run(
            lambda participant_id: self.aggregator.submit_vote(
                session_id, restaurant_id, participant_id, choice
            )
        )
        await self.settle()
        if recorded is None:
            return False
        self.own_votes[restaurant_id] = recorded.vote
        return True

    async def swipe(self, choice: VoteChoice | str) -> bool:
        """Vote on the current candidate and move to the next one."""
        restaurant = self.current_restaurant
        if restaurant is None:
            return False
        if not await self.vote(restaurant.yelp_id, choice):
            return False
        self.current_index += 1
        if self.current_restaurant is None:
            self._notify(NoticeLevel.SUCCESS, "Voting complete! Waiting for others...")
        return True

    async def enter_session(self, session_id: str) -> None:
        """Subscribe to a session and its votes until exit_session."""
        self.exit_session()
        self.restaurants = await self._load_restaurants()
        self.current_index = 0
        self.own_votes = {}
        self.match = self._matches.get(session_id)
        monitor = ConsensusMonitor(
            session_id=session_id,
            coordinator=self.coordinator,
            aggregator=self.aggregator,
            restaurants=self.restaurants,
            matched=self._matched.setdefault(session_id, set()),
        )
        monitor.add_listener(self._on_match)
        self._monitor = monitor
        self._visit.add(self.coordinator.observe_session(session_id, self._on_session))
        monitor.start()

    def exit_session(self) -> None:
        """Release every subscription held for the current session."""
        self._visit.close()
        if self._monitor is not None:
            self._monitor.close()
            self._monitor = None
        self.session = None
        self.match = None
        self.screen = Screen.HOME

    async def share_code(self) -> str | None:
        """Share the session code, falling back to the clipboard."""
        if self.session is None:
            return None
        code = self.session.short_code
        text = f"Join my BiteSwipe session with code {code}"
        if self.share_target is not None:
            try:
                await self.share_target.share("BiteSwipe", text)
            except Exception:
                _logger.info("Share unavailable, copying code instead")
            else:
                return code
        if self.clipboard is not None:
            self.clipboard.copy(code)
            self._notify(NoticeLevel.SUCCESS, "Session code copied!")
        return code

    async def settle(self) -> None:
        """Wait for follow-up writes scheduled by observed events."""
        while self._pending:
            tasks = list(self._pending)
            await asyncio.gather(*tasks)
            self._pending.difference_update(tasks)

    async def _leave(self, session_id: str, participant_id: str | None) -> bool:
        await self.coordinator.leave_session(session_id, participant_id)
        return True

    async def _start(self, session_id: str, participant_id: str | None) -> bool:
        await self.coordinator.start_voting(session_id, participant_id)
        return True

    async def _load_restaurants(self) -> list[Restaurant]:
        try:
            return await self.catalog.list_restaurants()
        except Exception:
            _logger.exception("Failed to load restaurants")
            self._notify(NoticeLevel.ERROR, "Failed to load restaurants")
            return []

    async def _ensure_identity(self) -> str | None:
        participant_id = self.identity.current_identity()
        if participant_id:
            return participant_id
        try:
            return await self.identity.sign_in_anonymously()
        except Exception:
            _logger.exception("Anonymous sign-in failed")
            self._publish_error(NotAuthenticatedError())
            return None

    async def _run(
        self, operation: Callable[[str | None], Awaitable[T]]
    ) -> T | None:
        try:
            try:
                return await operation(self.identity.current_identity())
            except NotAuthenticatedError:
                participant_id = await self._ensure_identity()
                if participant_id is None:
                    return None
                return await operation(participant_id)
        except DomainError as exc:
            self._publish_error(exc)
            return None

    def _on_session(self, session: Session | None) -> None:
        ended = session is None and self.session is not None
        if ended and self.match is None and not self._leaving:
            self._notify(NoticeLevel.INFO, "The session has ended")
        self.session = session
        self.screen = screen_for(session, matched=self.match is not None)

    def _on_match(self, event: MatchFound) -> None:
        if self.match is not None:
            return
        self.match = event
        self._matches[event.session_id] = event
        self.screen = Screen.MATCH
        self._notify(NoticeLevel.SUCCESS, "It's a match!")
        self._schedule(self._complete(event.session_id))

    async def _complete(self, session_id: str) -> None:
        try:
            await self.coordinator.complete_session(session_id)
        except DomainError as exc:
            self._publish_error(exc)

    def _on_connection(self, connected: bool) -> None:
        was_connected = self.connected
        self.connected = connected
        if was_connected and not connected:
            self.notices.publish(
                Notice(
                    level=NoticeLevel.WARNING,
                    message="Connection lost, reconnecting",
                    code=ErrorCode.SUBSCRIPTION_LOST,
                )
            )
        elif connected and not was_connected and self.session is not None:
            self._notify(NoticeLevel.INFO, "Reconnected")

    def _schedule(self, coroutine: Coroutine[object, object, None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            _logger.warning("No running loop; dropping follow-up write")
            coroutine.close()
            return
        task = loop.create_task(coroutine)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _notify(self, level: NoticeLevel, message: str) -> None:
        self.notices.publish(Notice(level=level, message=message))

    def _publish_error(self, error: DomainError) -> None:
        self.notices.publish(Notice.from_error(error))
