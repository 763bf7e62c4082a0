"""Shared state store interface and path helpers."""

import logging
import random
from collections.abc import Awaitable, Callable
from typing import Protocol, TypeVar, runtime_checkable

from biteswipe.domain.errors import DomainError, TransientStoreError

T = TypeVar("T")

_logger = logging.getLogger(__name__)

Listener = Callable[[object | None], None]
ConnectionListener = Callable[[bool], None]
Release = Callable[[], None]

SESSIONS_ROOT = "sessions"
CONNECTED_PATH = ".info/connected"


class SharedStore(Protocol):
    """Tree-structured, path-addressable store with live subscriptions.

    Writes are last-writer-wins per path. There are no cross-path
    transactions and no ordering guarantee across clients.
    """

    async def get(self, path: str) -> object | None:
        """Return the value at path, or None when absent."""

    async def set(self, path: str, value: object | None) -> None:
        """Replace the value at path. A None value deletes the node."""

    async def update(self, path: str, values: dict[str, object]) -> None:
        """Write each child of values under path, leaving other children."""

    async def remove(self, path: str) -> None:
        """Delete the node at path."""

    def push_key(self, path: str) -> str:
        """Generate a new unique child key under path."""

    def subscribe(self, path: str, listener: Listener) -> Release:
        """Deliver the current value and every later change at path."""

    def observe_connection(self, listener: ConnectionListener) -> Release:
        """Deliver the connected flag now and on every change."""


@runtime_checkable
class TransactionalStore(Protocol):
    """Store that can apply an atomic read-transform-write at one path."""

    async def transaction(
        self, path: str, transform: Callable[[object | None], object | None]
    ) -> object | None:
        """Atomically replace the value at path with transform(current)."""


async def store_call(action: str, operation: Awaitable[T]) -> T:
    """Await a store operation, converting failures to TransientStoreError."""
    try:
        return await operation
    except DomainError:
        raise
    except Exception as exc:
        _logger.exception("Store operation failed: action=%s", action)
        raise TransientStoreError(action) from exc


_PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"


def generate_push_key(timestamp_ms: int, rng: random.Random) -> str:
    """Return a 20-char key whose prefix sorts by creation time."""
    time_chars = []
    remaining = timestamp_ms
    for _ in range(8):
        time_chars.append(_PUSH_CHARS[remaining % 64])
        remaining //= 64
    suffix = "".join(rng.choice(_PUSH_CHARS) for _ in range(12))
    return "".join(reversed(time_chars)) + suffix


def join_path(*parts: str) -> str:
    """Join path segments, ignoring empty ones and stray slashes."""
    return "/".join(part.strip("/") for part in parts if part and part.strip("/"))


def split_path(path: str) -> list[str]:
    """Split a path into non-empty segments."""
    return [segment for segment in path.split("/") if segment]


def session_path(session_id: str) -> str:
    return join_path(SESSIONS_ROOT, session_id)


def votes_path(session_id: str, restaurant_id: str | None = None) -> str:
    if restaurant_id is None:
        return join_path(SESSIONS_ROOT, session_id, "votes")
    return join_path(SESSIONS_ROOT, session_id, "votes", restaurant_id)


def vote_path(session_id: str, restaurant_id: str, participant_id: str) -> str:
    return join_path(votes_path(session_id, restaurant_id), participant_id)
