"""Client screens derived from observed session state."""

from enum import Enum

from biteswipe.domain.models import Session, SessionState


class Screen(Enum):
    """Screens a participant moves through."""

    HOME = "home"
    WAITING_ROOM = "waiting_room"
    VOTING = "voting"
    MATCH = "match"


def screen_for(session: Session | None, matched: bool = False) -> Screen:
    """Return the screen a client should show for the latest snapshot."""
    if matched:
        return Screen.MATCH
    if session is None:
        return Screen.HOME
    if session.state is SessionState.COMPLETED:
        return Screen.MATCH
    if session.state is SessionState.VOTING:
        return Screen.VOTING
    return Screen.WAITING_ROOM
