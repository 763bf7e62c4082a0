"""Shared test fixtures."""

import asyncio
import random
from dataclasses import dataclass, field

import pytest

from biteswipe.adapters.memory_store import InMemoryStore
from biteswipe.config import Settings
from biteswipe.containers import AppContainer
from biteswipe.domain.codes import SessionCodeGenerator
from biteswipe.services.catalog import StaticRestaurantCatalog
from biteswipe.services.client import BiteSwipeClient
from biteswipe.services.identity import AnonymousIdentityProvider
from biteswipe.services.notices import Notice
from biteswipe.services.sessions import SessionCoordinator
from biteswipe.services.votes import VoteAggregator


@dataclass
class FixedClock:
    """Deterministic millisecond clock that advances on every read."""

    now: int = 1_700_000_000_000
    step: int = 1

    def __call__(self) -> int:
        self.now += self.step
        return self.now


@dataclass
class FlakyStore(InMemoryStore):
    """In-memory store whose reads and writes can be made to fail."""

    failing: bool = False

    def _check(self) -> None:
        if self.failing:
            raise ConnectionError("store unreachable")

    async def get(self, path: str) -> object | None:
        self._check()
        return await super().get(path)

    async def set(self, path: str, value: object | None) -> None:
        self._check()
        await super().set(path, value)

    async def update(self, path: str, values: dict[str, object]) -> None:
        self._check()
        await super().update(path, values)


@dataclass
class YieldingStore(InMemoryStore):
    """In-memory store that suspends after every read, like a network round trip."""

    async def get(self, path: str) -> object | None:
        value = await super().get(path)
        await asyncio.sleep(0)
        return value


@dataclass
class RecordingNoticeSink:
    """Notice sink that keeps everything it is shown."""

    notices: list[Notice] = field(default_factory=list)

    def publish(self, notice: Notice) -> None:
        self.notices.append(notice)

    @property
    def messages(self) -> list[str]:
        return [notice.message for notice in self.notices]


@dataclass
class FakeShareTarget:
    """Share target that records shares or fails on demand."""

    fail: bool = False
    shared: list[tuple[str, str]] = field(default_factory=list)

    async def share(self, title: str, text: str) -> None:
        if self.fail:
            raise RuntimeError("share not supported")
        self.shared.append((title, text))


@dataclass
class FakeClipboard:
    """Clipboard that remembers the last copy."""

    copied: list[str] = field(default_factory=list)

    def copy(self, text: str) -> None:
        self.copied.append(text)


def make_coordinator(store: InMemoryStore, **kwargs) -> SessionCoordinator:  # type: ignore[no-untyped-def]
    return SessionCoordinator(
        store=store,
        code_generator=SessionCodeGenerator(rng=random.Random(7)),
        clock=FixedClock(),
        **kwargs,
    )


def make_client(
    store: InMemoryStore,
    participant_id: str | None = None,
    notices: RecordingNoticeSink | None = None,
) -> BiteSwipeClient:
    return BiteSwipeClient(
        identity=AnonymousIdentityProvider(participant_id),
        coordinator=make_coordinator(store),
        aggregator=VoteAggregator(store=store, clock=FixedClock()),
        catalog=StaticRestaurantCatalog(),
        notices=notices or RecordingNoticeSink(),
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(store_backend="memory")


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore(rng=random.Random(1))


@pytest.fixture
def coordinator(store: InMemoryStore) -> SessionCoordinator:
    return make_coordinator(store)


@pytest.fixture
def aggregator(store: InMemoryStore) -> VoteAggregator:
    return VoteAggregator(store=store, clock=FixedClock())


@pytest.fixture
def container(
    settings: Settings,
    store: InMemoryStore,
    coordinator: SessionCoordinator,
    aggregator: VoteAggregator,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        store=store,
        coordinator=coordinator,
        aggregator=aggregator,
        catalog=StaticRestaurantCatalog(),
        close_resources=close_resources,
    )
