"""Session lifecycle: create, join, leave and state transitions.

Every client runs this logic against the same shared store. Join and leave
are read-modify-write sequences over a whole session node, so two clients
racing on the same session can overwrite each other's roster change (last
write wins). Setting ``atomic_roster_updates`` routes roster changes through
the store's transaction primitive when the store offers one.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from biteswipe.domain.codes import SessionCodeGenerator, code_from_key
from biteswipe.domain.errors import (
    InvalidStateTransitionError,
    NotAuthenticatedError,
    NotHostError,
    SessionNotFoundError,
    TransientStoreError,
)
from biteswipe.domain.models import Participant, Session, SessionState, now_ms
from biteswipe.services.store import (
    SESSIONS_ROOT,
    SharedStore,
    TransactionalStore,
    session_path,
    store_call,
)
from biteswipe.services.subscriptions import Subscription

_logger = logging.getLogger(__name__)

SessionCallback = Callable[[Session | None], None]


def require_identity(participant_id: str | None) -> str:
    """Return the participant id or raise NotAuthenticatedError."""
    if not participant_id:
        raise NotAuthenticatedError()
    return participant_id


@dataclass
class SessionCoordinator:
    """Owns session creation, membership and state transitions."""

    store: SharedStore
    code_generator: SessionCodeGenerator = field(default_factory=SessionCodeGenerator)
    atomic_roster_updates: bool = False
    code_generation_attempts: int = 5
    clock: Callable[[], int] = now_ms

    def __post_init__(self) -> None:
        if self.atomic_roster_updates and not isinstance(
            self.store, TransactionalStore
        ):
            _logger.warning(
                "Store %s has no transactions; roster updates stay last-write-wins",
                type(self.store).__name__,
            )
            self.atomic_roster_updates = False

    async def create_session(
        self, participant_id: str | None, name: str = "Host"
    ) -> Session:
        """Create a session with the caller as sole participant and host."""
        host_id = require_identity(participant_id)
        session_id = self.store.push_key(SESSIONS_ROOT)
        # Checked against live sessions only; nothing reserves the code.
        short_code = await self._unused_code()
        now = self.clock()
        session = Session(
            id=session_id,
            short_code=short_code,
            host_id=host_id,
            participants=(Participant(id=host_id, name=name, joined_at=now),),
            state=SessionState.WAITING,
            created_at=now,
            updated_at=now,
        )
        await store_call(
            "create session",
            self.store.set(session_path(session_id), session.to_record()),
        )
        _logger.info("Session created: id=%s code=%s", session_id, short_code)
        return session

    async def join_session(
        self, short_code: str, participant_id: str | None, name: str = "Participant"
    ) -> Session:
        """Add the caller to the session with this code.

        Joining a session the caller already belongs to returns it unchanged.
        """
        member_id = require_identity(participant_id)
        session = await self.find_session_by_code(short_code)
        if session is None:
            raise SessionNotFoundError(short_code)
        if session.has_participant(member_id):
            return session

        now = self.clock()
        participant = Participant(id=member_id, name=name, joined_at=now)
        if self.atomic_roster_updates:
            joined = await self._transact_roster(
                session.id, lambda current: current.with_participant(participant, now)
            )
            if joined is None:
                raise SessionNotFoundError(short_code)
        else:
            joined = session.with_participant(participant, now)
            await store_call(
                "join session",
                self.store.update(session_path(session.id), joined.to_record()),
            )
        _logger.info(
            "Participant joined: session=%s participants=%s",
            session.id,
            joined.participant_count,
        )
        return joined

    async def leave_session(
        self, session_id: str, participant_id: str | None
    ) -> Session | None:
        """Remove the caller; delete the session when nobody is left.

        Returns the remaining session, or None when it no longer exists.
        The host role is never reassigned.
        """
        member_id = require_identity(participant_id)
        now = self.clock()
        if self.atomic_roster_updates:
            return await self._transact_roster(
                session_id, lambda current: current.without_participant(member_id, now)
            )

        session = await self.get_session(session_id)
        if session is None:
            return None
        if not session.has_participant(member_id):
            return session
        remaining = session.without_participant(member_id, now)
        path = session_path(session_id)
        if not remaining.participants:
            await store_call("delete session", self.store.remove(path))
            _logger.info("Session deleted after last participant left: id=%s", session_id)
            return None
        await store_call("leave session", self.store.update(path, remaining.to_record()))
        return remaining

    async def update_session_state(
        self, session_id: str, new_state: SessionState | str
    ) -> None:
        """Write {state, updatedAt} without checking the transition."""
        state = SessionState(new_state)
        await store_call(
            "update session state",
            self.store.update(
                session_path(session_id),
                {"state": state.value, "updatedAt": self.clock()},
            ),
        )
        _logger.info("Session state written: id=%s state=%s", session_id, state.value)

    async def start_voting(self, session_id: str, participant_id: str | None) -> None:
        """Host action: move a waiting session to voting."""
        member_id = require_identity(participant_id)
        session = await self.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if not session.is_host(member_id):
            raise NotHostError(session_id)
        if not session.state.can_advance_to(SessionState.VOTING):
            raise InvalidStateTransitionError(
                session.state.value, SessionState.VOTING.value
            )
        await self.update_session_state(session_id, SessionState.VOTING)

    async def complete_session(self, session_id: str) -> bool:
        """Mark a voting session completed; return False when it is not voting."""
        session = await self.get_session(session_id)
        if session is None or session.state is not SessionState.VOTING:
            return False
        await self.update_session_state(session_id, SessionState.COMPLETED)
        return True

    async def get_session(self, session_id: str) -> Session | None:
        """Read the live session node."""
        raw = await store_call("load session", self.store.get(session_path(session_id)))
        return parse_session(session_id, raw)

    async def find_session_by_code(self, short_code: str) -> Session | None:
        """Scan all live sessions for a code, case-insensitively."""
        code = self.code_generator.normalize(short_code)
        if not self.code_generator.is_lookup_code(code):
            return None
        for session in await self.list_sessions():
            if session.short_code == code:
                return session
        return None

    async def list_sessions(self) -> list[Session]:
        """Return every live session. Cost grows with the number of sessions."""
        raw = await store_call("load sessions", self.store.get(SESSIONS_ROOT))
        if not isinstance(raw, dict):
            return []
        sessions = []
        for session_id, row in raw.items():
            session = parse_session(str(session_id), row)
            if session is not None:
                sessions.append(session)
        return sessions

    def observe_session(
        self, session_id: str, callback: SessionCallback
    ) -> Subscription:
        """Deliver the session (or None once deleted) on every remote change."""
        path = session_path(session_id)

        def on_value(raw: object | None) -> None:
            callback(parse_session(session_id, raw))

        return Subscription(path=path, _release=self.store.subscribe(path, on_value))

    async def _unused_code(self) -> str:
        live_codes = {session.short_code for session in await self.list_sessions()}
        for _ in range(max(self.code_generation_attempts, 1)):
            code = self.code_generator.generate()
            if code not in live_codes:
                return code
            _logger.info("Session code collision, regenerating: code=%s", code)
        raise TransientStoreError("generate a unique session code")

    async def _transact_roster(
        self, session_id: str, change: Callable[[Session], Session]
    ) -> Session | None:
        outcome: dict[str, Session | None] = {"session": None}

        def transform(current: object | None) -> object | None:
            session = parse_session(session_id, current)
            if session is None or not isinstance(current, dict):
                outcome["session"] = None
                return current
            changed = change(session)
            if not changed.participants:
                outcome["session"] = None
                return None
            outcome["session"] = changed
            return {**current, **changed.to_record()}

        await store_call(
            "update session roster",
            self.store.transaction(session_path(session_id), transform),
        )
        return outcome["session"]


def parse_session(session_id: str, raw: object | None) -> Session | None:
    """Parse a session node, returning None when absent or unreadable."""
    if not isinstance(raw, dict):
        return None
    row = dict(raw)
    if not row.get("shortCode"):
        row["shortCode"] = code_from_key(session_id)
    try:
        return Session.from_record(session_id, row)
    except (KeyError, TypeError, ValueError):
        _logger.warning("Skipping unreadable session node: id=%s", session_id)
        return None
