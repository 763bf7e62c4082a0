"""Domain models for swipe-voting sessions."""

from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum


def now_ms() -> int:
    """Return the current time in epoch milliseconds."""
    return int(datetime.now(tz=UTC).timestamp() * 1000)


class SessionState(Enum):
    """Lifecycle of a session. Transitions only move forward."""

    WAITING = "waiting"
    VOTING = "voting"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return _STATE_ORDER.index(self)

    def can_advance_to(self, target: "SessionState") -> bool:
        """Return True when moving to target is a forward transition."""
        return target.rank > self.rank


_STATE_ORDER = (SessionState.WAITING, SessionState.VOTING, SessionState.COMPLETED)


class VoteChoice(Enum):
    """A participant's decision on one restaurant."""

    YES = "yes"
    NO = "no"


@dataclass(frozen=True)
class Participant:
    """A member of a session, keyed by their anonymous identity."""

    id: str
    name: str
    joined_at: int
    is_ready: bool = False

    def to_record(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "joinedAt": self.joined_at,
            "isReady": self.is_ready,
        }

    @classmethod
    def from_record(cls, row: dict[str, object]) -> "Participant":
        return cls(
            id=str(row["id"]),
            name=str(row.get("name", "")),
            joined_at=int(row.get("joinedAt", 0)),
            is_ready=bool(row.get("isReady", False)),
        )


@dataclass(frozen=True)
class Session:
    """A shared voting session as mirrored from the store.

    Local copies are projections of the store and are never authoritative.
    """

    id: str
    short_code: str
    host_id: str
    participants: tuple[Participant, ...]
    state: SessionState
    created_at: int
    updated_at: int

    @property
    def participant_ids(self) -> list[str]:
        return [participant.id for participant in self.participants]

    @property
    def participant_count(self) -> int:
        return len(self.participants)

    def has_participant(self, participant_id: str) -> bool:
        return any(p.id == participant_id for p in self.participants)

    def is_host(self, participant_id: str) -> bool:
        return self.host_id == participant_id

    def with_participant(self, participant: Participant, updated_at: int) -> "Session":
        """Return a copy with participant appended, unless already present."""
        if self.has_participant(participant.id):
            return self
        return replace(
            self,
            participants=(*self.participants, participant),
            updated_at=updated_at,
        )

    def without_participant(self, participant_id: str, updated_at: int) -> "Session":
        """Return a copy with participant removed."""
        return replace(
            self,
            participants=tuple(
                p for p in self.participants if p.id != participant_id
            ),
            updated_at=updated_at,
        )

    def to_record(self) -> dict[str, object]:
        return {
            "id": self.id,
            "shortCode": self.short_code,
            "hostId": self.host_id,
            "participants": [p.to_record() for p in self.participants],
            "state": self.state.value,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_record(cls, session_id: str, row: dict[str, object]) -> "Session":
        """Build a session from a store node, ignoring its votes child."""
        participants = _participant_rows(row.get("participants"))
        return cls(
            id=str(row.get("id") or session_id),
            short_code=str(row.get("shortCode", "")).upper(),
            host_id=str(row.get("hostId", "")),
            participants=tuple(Participant.from_record(p) for p in participants),
            state=SessionState(row.get("state", SessionState.WAITING.value)),
            created_at=int(row.get("createdAt", 0)),
            updated_at=int(row.get("updatedAt", 0)),
        )


def _participant_rows(raw: object) -> list[dict[str, object]]:
    # Stores may hand lists back as index-keyed mappings.
    if isinstance(raw, dict):
        ordered = sorted(raw.items(), key=lambda item: _index_key(item[0]))
        return [row for _, row in ordered if isinstance(row, dict)]
    if isinstance(raw, list):
        return [row for row in raw if isinstance(row, dict)]
    return []


def _index_key(key: object) -> tuple[int, str]:
    text = str(key)
    return (int(text), "") if text.isdigit() else (0, text)


@dataclass(frozen=True)
class Vote:
    """One participant's vote on one restaurant."""

    participant_id: str
    restaurant_id: str
    vote: VoteChoice
    timestamp: int

    @property
    def is_yes(self) -> bool:
        return self.vote is VoteChoice.YES

    def to_record(self) -> dict[str, object]:
        return {
            "participantId": self.participant_id,
            "restaurantId": self.restaurant_id,
            "vote": self.vote.value,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_record(
        cls, restaurant_id: str, participant_id: str, row: dict[str, object]
    ) -> "Vote":
        return cls(
            participant_id=str(row.get("participantId") or participant_id),
            restaurant_id=str(row.get("restaurantId") or restaurant_id),
            vote=VoteChoice(row.get("vote", VoteChoice.NO.value)),
            timestamp=int(row.get("timestamp", 0)),
        )


VotesSnapshot = dict[str, dict[str, Vote]]


def votes_from_record(raw: object) -> VotesSnapshot:
    """Parse the votes subtree of a session into a nested mapping."""
    snapshot: VotesSnapshot = {}
    if not isinstance(raw, dict):
        return snapshot
    for restaurant_id, by_participant in raw.items():
        if not isinstance(by_participant, dict):
            continue
        votes = {
            str(participant_id): Vote.from_record(
                str(restaurant_id), str(participant_id), row
            )
            for participant_id, row in by_participant.items()
            if isinstance(row, dict)
        }
        if votes:
            snapshot[str(restaurant_id)] = votes
    return snapshot


@dataclass(frozen=True)
class Restaurant:
    """A read-only candidate supplied by the catalog."""

    id: str
    name: str
    cuisine: str
    rating: float
    price: str
    distance: str
    address: str
    yelp_id: str
    image_url: str | None = None

    def matches_key(self, key: str) -> bool:
        return key in {self.yelp_id, self.id}

    def to_record(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "cuisine": self.cuisine,
            "rating": self.rating,
            "price": self.price,
            "distance": self.distance,
            "imageURL": self.image_url,
            "address": self.address,
            "yelpId": self.yelp_id,
        }
