"""Tests for live match detection."""

import asyncio

from biteswipe.adapters.memory_store import InMemoryStore
from biteswipe.domain.models import Vote, VoteChoice
from biteswipe.services.catalog import sample_restaurants
from biteswipe.services.consensus import ConsensusMonitor, MatchFound
from biteswipe.services.sessions import SessionCoordinator
from biteswipe.services.subscriptions import Subscription, SubscriptionGroup
from biteswipe.services.votes import VoteAggregator


def _monitor(
    session_id: str, coordinator: SessionCoordinator, aggregator: VoteAggregator
) -> tuple[ConsensusMonitor, list[MatchFound]]:
    monitor = ConsensusMonitor(
        session_id=session_id,
        coordinator=coordinator,
        aggregator=aggregator,
        restaurants=sample_restaurants(),
    )
    found: list[MatchFound] = []
    monitor.add_listener(found.append)
    return monitor, found


def _session_of_three(coordinator: SessionCoordinator) -> str:
    async def run() -> str:
        created = await coordinator.create_session("a")
        await coordinator.join_session(created.short_code, "b")
        await coordinator.join_session(created.short_code, "c")
        await coordinator.start_voting(created.id, "a")
        return created.id

    return asyncio.run(run())


def test_match_fires_only_when_everyone_votes_yes(
    coordinator: SessionCoordinator, aggregator: VoteAggregator
) -> None:
    session_id = _session_of_three(coordinator)
    monitor, found = _monitor(session_id, coordinator, aggregator)
    monitor.start()

    asyncio.run(aggregator.submit_vote(session_id, "pizza-palace-1", "a", "yes"))
    asyncio.run(aggregator.submit_vote(session_id, "pizza-palace-1", "b", "yes"))
    assert found == []

    asyncio.run(aggregator.submit_vote(session_id, "pizza-palace-1", "c", "yes"))

    assert len(found) == 1
    assert found[0].restaurant_id == "pizza-palace-1"
    assert found[0].restaurant is not None
    assert found[0].restaurant.name == "Pizza Palace"
    assert found[0].participant_count == 3


def test_no_vote_blocks_then_changed_vote_matches(
    coordinator: SessionCoordinator, aggregator: VoteAggregator
) -> None:
    session_id = _session_of_three(coordinator)
    monitor, found = _monitor(session_id, coordinator, aggregator)
    monitor.start()

    for pid, choice in (("a", "yes"), ("b", "no"), ("c", "yes")):
        asyncio.run(aggregator.submit_vote(session_id, "2", pid, choice))
    assert found == []

    asyncio.run(aggregator.submit_vote(session_id, "2", "b", "yes"))

    assert [event.restaurant_id for event in found] == ["2"]
    assert found[0].restaurant is not None
    assert found[0].restaurant.yelp_id == "sushi-express-2"


def test_match_is_announced_once(
    coordinator: SessionCoordinator, aggregator: VoteAggregator
) -> None:
    session_id = _session_of_three(coordinator)
    monitor, found = _monitor(session_id, coordinator, aggregator)
    monitor.start()

    for pid in ("a", "b", "c"):
        asyncio.run(aggregator.submit_vote(session_id, "taco-town-4", pid, "yes"))
    asyncio.run(aggregator.submit_vote(session_id, "taco-town-4", "a", "yes"))
    asyncio.run(coordinator.update_session_state(session_id, "completed"))

    assert len(found) == 1
    assert monitor.evaluate() == []


def test_departure_can_complete_consensus(
    coordinator: SessionCoordinator, aggregator: VoteAggregator
) -> None:
    session_id = _session_of_three(coordinator)
    monitor, found = _monitor(session_id, coordinator, aggregator)
    monitor.start()

    asyncio.run(aggregator.submit_vote(session_id, "burger-joint-3", "a", "yes"))
    asyncio.run(aggregator.submit_vote(session_id, "burger-joint-3", "b", "yes"))
    assert found == []

    asyncio.run(coordinator.leave_session(session_id, "c"))

    assert [event.restaurant_id for event in found] == ["burger-joint-3"]
    assert found[0].participant_count == 2


def test_new_joiner_blocks_pending_consensus(
    coordinator: SessionCoordinator, aggregator: VoteAggregator
) -> None:
    async def run() -> tuple[str, str]:
        created = await coordinator.create_session("a")
        await coordinator.join_session(created.short_code, "b")
        return created.id, created.short_code

    session_id, code = asyncio.run(run())
    monitor, found = _monitor(session_id, coordinator, aggregator)
    monitor.start()

    asyncio.run(aggregator.submit_vote(session_id, "5", "a", "yes"))
    asyncio.run(coordinator.join_session(code, "c"))
    asyncio.run(aggregator.submit_vote(session_id, "5", "b", "yes"))

    assert found == []


def test_votes_seen_before_session_are_evaluated_later(
    coordinator: SessionCoordinator, aggregator: VoteAggregator
) -> None:
    monitor, found = _monitor("s1", coordinator, aggregator)

    monitor.on_votes(
        {
            "thai-delight-5": {
                pid: Vote(
                    participant_id=pid,
                    restaurant_id="thai-delight-5",
                    vote=VoteChoice.YES,
                    timestamp=1,
                )
                for pid in ("a", "b")
            }
        }
    )
    assert found == []

    session = asyncio.run(coordinator.create_session("a"))
    asyncio.run(coordinator.join_session(session.short_code, "b"))
    joined = asyncio.run(coordinator.get_session(session.id))
    monitor.on_session(joined)

    assert [event.restaurant_id for event in found] == ["thai-delight-5"]


def test_failing_listener_does_not_stop_others(
    coordinator: SessionCoordinator, aggregator: VoteAggregator
) -> None:
    session_id = _session_of_three(coordinator)
    monitor, found = _monitor(session_id, coordinator, aggregator)

    def broken(_event: MatchFound) -> None:
        raise RuntimeError("boom")

    monitor.add_listener(broken)
    late: list[MatchFound] = []
    monitor.add_listener(late.append)
    monitor.start()

    for pid in ("a", "b", "c"):
        asyncio.run(aggregator.submit_vote(session_id, "1", pid, "yes"))

    assert len(found) == 1
    assert len(late) == 1


def test_close_releases_both_subscriptions(
    coordinator: SessionCoordinator, aggregator: VoteAggregator, store: InMemoryStore
) -> None:
    session_id = _session_of_three(coordinator)
    monitor, found = _monitor(session_id, coordinator, aggregator)

    monitor.start()
    monitor.start()
    assert store.listener_count() == 2
    assert monitor.running

    monitor.close()
    for pid in ("a", "b", "c"):
        asyncio.run(aggregator.submit_vote(session_id, "1", pid, "yes"))

    assert store.listener_count() == 0
    assert not monitor.running
    assert found == []


def test_releasing_twice_is_harmless() -> None:
    released: list[str] = []
    subscription = Subscription(path="sessions/s1", _release=lambda: released.append("x"))
    group = SubscriptionGroup()
    group.add(subscription)

    subscription()
    subscription.release()
    group.close()

    assert released == ["x"]
    assert group.active_count == 0


def test_joiner_after_match_does_not_refire(
    coordinator: SessionCoordinator, aggregator: VoteAggregator
) -> None:
    async def run() -> tuple[str, str]:
        created = await coordinator.create_session("a")
        await coordinator.join_session(created.short_code, "b")
        return created.id, created.short_code

    session_id, code = asyncio.run(run())
    monitor, found = _monitor(session_id, coordinator, aggregator)
    monitor.start()

    asyncio.run(aggregator.submit_vote(session_id, "3", "a", "yes"))
    asyncio.run(aggregator.submit_vote(session_id, "3", "b", "yes"))
    assert len(found) == 1

    asyncio.run(coordinator.join_session(code, "c"))
    monitor.on_votes(asyncio.run(aggregator.get_votes(session_id)))
    asyncio.run(aggregator.submit_vote(session_id, "3", "c", "yes"))

    assert len(found) == 1
    assert monitor.session is not None
    assert monitor.session.participant_count == 3
    assert monitor.matched == {"3"}


def test_shared_matched_set_survives_a_new_monitor(
    coordinator: SessionCoordinator, aggregator: VoteAggregator
) -> None:
    session_id = _session_of_three(coordinator)
    for pid in ("a", "b", "c"):
        asyncio.run(aggregator.submit_vote(session_id, "4", pid, "yes"))
    matched: set[str] = {"4"}

    monitor = ConsensusMonitor(
        session_id=session_id,
        coordinator=coordinator,
        aggregator=aggregator,
        matched=matched,
    )
    found: list[MatchFound] = []
    monitor.add_listener(found.append)
    monitor.start()

    assert found == []
    monitor.close()
