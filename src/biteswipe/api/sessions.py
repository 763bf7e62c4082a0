"""Session endpoints acting on behalf of the caller's participant id."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Header, Request, status

from biteswipe.api.models import (
    CreateSessionRequest,
    JoinSessionRequest,
    SubmitVoteRequest,
    UpdateStateRequest,
)
from biteswipe.domain.errors import SessionNotFoundError
from biteswipe.services.votes import evaluate_consensus, tally

if TYPE_CHECKING:
    from biteswipe.containers import AppContainer

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _container(request: Request) -> AppContainer:
    return request.app.state.container


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: CreateSessionRequest,
    request: Request,
    x_participant_id: str | None = Header(default=None),
) -> dict[str, object]:
    """Create a session hosted by the caller."""
    coordinator = _container(request).coordinator
    session = await coordinator.create_session(x_participant_id, payload.name)
    return {"session": session.to_record()}


@router.post("/join")
async def join_session(
    payload: JoinSessionRequest,
    request: Request,
    x_participant_id: str | None = Header(default=None),
) -> dict[str, object]:
    """Join a session by its short code."""
    coordinator = _container(request).coordinator
    session = await coordinator.join_session(
        payload.code, x_participant_id, payload.name
    )
    return {"session": session.to_record()}


@router.get("/{session_id}")
async def get_session(session_id: str, request: Request) -> dict[str, object]:
    """Return the live session."""
    session = await _container(request).coordinator.get_session(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    return {"session": session.to_record()}


@router.post("/{session_id}/leave")
async def leave_session(
    session_id: str,
    request: Request,
    x_participant_id: str | None = Header(default=None),
) -> dict[str, object]:
    """Leave a session; the session is deleted when it empties."""
    coordinator = _container(request).coordinator
    remaining = await coordinator.leave_session(session_id, x_participant_id)
    return {"session": remaining.to_record() if remaining else None}


@router.post("/{session_id}/start")
async def start_voting(
    session_id: str,
    request: Request,
    x_participant_id: str | None = Header(default=None),
) -> dict[str, object]:
    """Host action: move the session to voting."""
    coordinator = _container(request).coordinator
    await coordinator.start_voting(session_id, x_participant_id)
    session = await coordinator.get_session(session_id)
    return {"session": session.to_record() if session else None}


@router.put("/{session_id}/state")
async def update_state(
    session_id: str, payload: UpdateStateRequest, request: Request
) -> dict[str, str]:
    """Write the session state without transition checks."""
    await _container(request).coordinator.update_session_state(
        session_id, payload.state
    )
    return {"status": "ok"}


@router.post("/{session_id}/votes", status_code=status.HTTP_201_CREATED)
async def submit_vote(
    session_id: str,
    payload: SubmitVoteRequest,
    request: Request,
    x_participant_id: str | None = Header(default=None),
) -> dict[str, object]:
    """Record the caller's vote on one restaurant."""
    vote = await _container(request).aggregator.submit_vote(
        session_id, payload.restaurant_id, x_participant_id, payload.vote
    )
    return {"vote": vote.to_record()}


@router.get("/{session_id}/votes")
async def list_votes(session_id: str, request: Request) -> dict[str, object]:
    """Return every vote plus per-restaurant tallies for the current roster."""
    container = _container(request)
    session = await container.coordinator.get_session(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    votes = await container.aggregator.get_votes(session_id)
    return {
        "votes": {
            restaurant_id: {pid: vote.to_record() for pid, vote in by_pid.items()}
            for restaurant_id, by_pid in votes.items()
        },
        "tallies": {
            restaurant_id: {
                "yes": entry.yes,
                "no": entry.no,
                "pending": entry.pending,
            }
            for restaurant_id, entry in tally(votes, session.participants).items()
        },
    }


@router.get("/{session_id}/matches")
async def list_matches(session_id: str, request: Request) -> dict[str, object]:
    """Evaluate unanimity on the live session and votes."""
    container = _container(request)
    session = await container.coordinator.get_session(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    votes = await container.aggregator.get_votes(session_id)
    matches = []
    for restaurant_id in evaluate_consensus(votes, session.participants):
        restaurant = await container.catalog.find(restaurant_id)
        matches.append(
            {
                "restaurant_id": restaurant_id,
                "restaurant": restaurant.to_record() if restaurant else None,
            }
        )
    return {"matches": matches, "participant_count": session.participant_count}
