"""In-process shared store for tests and local runs."""

import copy
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field

from biteswipe.domain.models import now_ms
from biteswipe.services.store import (
    CONNECTED_PATH,
    ConnectionListener,
    Listener,
    Release,
    SharedStore,
    TransactionalStore,
    generate_push_key,
    join_path,
    split_path,
)

_logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass(eq=False)
class _Watch:
    path: str
    listener: Listener
    last_value: object = _UNSET


@dataclass
class InMemoryStore(SharedStore, TransactionalStore):
    """Nested-dict store that fans out changes synchronously after each write."""

    connected: bool = True
    rng: random.Random = field(default_factory=random.Random)
    _root: dict[str, object] = field(default_factory=dict)
    _watches: list[_Watch] = field(default_factory=list)
    _connection_listeners: list[ConnectionListener] = field(default_factory=list)

    async def get(self, path: str) -> object | None:
        if path == CONNECTED_PATH:
            return self.connected
        return copy.deepcopy(self._read(split_path(path)))

    async def set(self, path: str, value: object | None) -> None:
        self._write(split_path(path), value)
        self._notify(path)

    async def update(self, path: str, values: dict[str, object]) -> None:
        segments = split_path(path)
        for key, value in values.items():
            self._write([*segments, *split_path(key)], value)
        self._notify(path)

    async def remove(self, path: str) -> None:
        await self.set(path, None)

    async def transaction(
        self, path: str, transform: Callable[[object | None], object | None]
    ) -> object | None:
        # No await between read and write, so no other writer can interleave.
        current = copy.deepcopy(self._read(split_path(path)))
        result = transform(current)
        self._write(split_path(path), result)
        self._notify(path)
        return copy.deepcopy(result)

    def push_key(self, path: str) -> str:
        return generate_push_key(now_ms(), self.rng)

    def subscribe(self, path: str, listener: Listener) -> Release:
        watch = _Watch(path=join_path(path), listener=listener)
        self._watches.append(watch)
        self._deliver(watch)

        def release() -> None:
            if watch in self._watches:
                self._watches.remove(watch)

        return release

    def observe_connection(self, listener: ConnectionListener) -> Release:
        self._connection_listeners.append(listener)
        listener(self.connected)

        def release() -> None:
            if listener in self._connection_listeners:
                self._connection_listeners.remove(listener)

        return release

    def set_connected(self, connected: bool) -> None:
        """Flip the connectivity signal and notify observers."""
        if connected == self.connected:
            return
        self.connected = connected
        for listener in list(self._connection_listeners):
            listener(connected)

    def listener_count(self, path: str | None = None) -> int:
        """Return how many live listeners watch path (or any path)."""
        if path is None:
            return len(self._watches)
        target = join_path(path)
        return sum(1 for watch in self._watches if watch.path == target)

    def _read(self, segments: list[str]) -> object | None:
        node: object = self._root
        for segment in segments:
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return node

    def _write(self, segments: list[str], value: object | None) -> None:
        if not segments:
            self._root = copy.deepcopy(value) if isinstance(value, dict) else {}
            return
        node = self._root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                if value is None:
                    return
                child = {}
                node[segment] = child
            node = child
        if value is None:
            node.pop(segments[-1], None)
        else:
            node[segments[-1]] = copy.deepcopy(value)
        self._prune(segments)

    def _prune(self, segments: list[str]) -> None:
        # Empty containers disappear, the way a tree store drops empty nodes.
        for depth in range(len(segments), 0, -1):
            parent = self._read(segments[: depth - 1])
            child = self._read(segments[:depth])
            if isinstance(parent, dict) and child == {}:
                parent.pop(segments[depth - 1], None)

    def _notify(self, changed_path: str) -> None:
        changed = split_path(changed_path)
        for watch in list(self._watches):
            if watch not in self._watches:
                continue
            watched = split_path(watch.path)
            shared = min(len(watched), len(changed))
            if watched[:shared] == changed[:shared]:
                self._deliver(watch)

    def _deliver(self, watch: _Watch) -> None:
        value = self._read(split_path(watch.path))
        if value == watch.last_value:
            return
        watch.last_value = copy.deepcopy(value)
        try:
            watch.listener(copy.deepcopy(value))
        except Exception:
            _logger.exception("Store listener failed: path=%s", watch.path)
