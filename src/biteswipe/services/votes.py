"""Vote recording and unanimity evaluation."""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from biteswipe.domain.models import (
    Participant,
    Vote,
    VoteChoice,
    VotesSnapshot,
    now_ms,
    votes_from_record,
)
from biteswipe.services.sessions import require_identity
from biteswipe.services.store import SharedStore, store_call, vote_path, votes_path
from biteswipe.services.subscriptions import Subscription

_logger = logging.getLogger(__name__)

VotesCallback = Callable[[VotesSnapshot], None]


@dataclass(frozen=True)
class VoteTally:
    """Per-restaurant counts against the current roster."""

    restaurant_id: str
    yes: int
    no: int
    pending: int

    @property
    def unanimous(self) -> bool:
        return self.yes > 0 and self.no == 0 and self.pending == 0


@dataclass
class VoteAggregator:
    """Records votes and exposes the live votes subtree of a session."""

    store: SharedStore
    clock: Callable[[], int] = now_ms

    async def submit_vote(
        self,
        session_id: str,
        restaurant_id: str,
        participant_id: str | None,
        vote: VoteChoice | str,
    ) -> Vote:
        """Write the caller's vote, replacing any earlier vote on this restaurant."""
        voter_id = require_identity(participant_id)
        record = Vote(
            participant_id=voter_id,
            restaurant_id=restaurant_id,
            vote=VoteChoice(vote),
            timestamp=self.clock(),
        )
        await store_call(
            "submit vote",
            self.store.set(
                vote_path(session_id, restaurant_id, voter_id), record.to_record()
            ),
        )
        return record

    async def get_votes(self, session_id: str) -> VotesSnapshot:
        """Read the full votes mapping once."""
        raw = await store_call("load votes", self.store.get(votes_path(session_id)))
        return votes_from_record(raw)

    def observe_votes(self, session_id: str, callback: VotesCallback) -> Subscription:
        """Deliver restaurantId -> (participantId -> Vote) on every change."""
        path = votes_path(session_id)

        def on_value(raw: object | None) -> None:
            callback(votes_from_record(raw))

        return Subscription(path=path, _release=self.store.subscribe(path, on_value))


def evaluate_consensus(
    votes: VotesSnapshot, participants: Iterable[Participant]
) -> list[str]:
    """Return restaurants every current participant voted yes on.

    A participant who has not voted counts against consensus exactly like a
    ``no``. Votes left behind by people who have since left are ignored.
    """
    roster = {participant.id for participant in participants}
    if not roster:
        return []
    matched = []
    for restaurant_id, by_participant in votes.items():
        yes_voters = {
            participant_id
            for participant_id, vote in by_participant.items()
            if vote.is_yes and participant_id in roster
        }
        if len(yes_voters) == len(roster):
            matched.append(restaurant_id)
    return matched


def tally(
    votes: VotesSnapshot, participants: Iterable[Participant]
) -> dict[str, VoteTally]:
    """Count yes/no/pending per restaurant for the current roster."""
    roster = {participant.id for participant in participants}
    tallies = {}
    for restaurant_id, by_participant in votes.items():
        current = {pid: vote for pid, vote in by_participant.items() if pid in roster}
        yes = sum(1 for vote in current.values() if vote.is_yes)
        no = len(current) - yes
        tallies[restaurant_id] = VoteTally(
            restaurant_id=restaurant_id,
            yes=yes,
            no=no,
            pending=len(roster) - len(current),
        )
    return tallies
