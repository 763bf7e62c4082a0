"""Supabase-backed shared store.

The tree is flattened into one row per leaf in a ``store_nodes`` table
(``path`` primary key, ``value`` jsonb). Lists and scalars are leaves; reading
a path rebuilds its subtree from the rows at and below it. Remote changes are
picked up by polling the subscribed paths, and the connectivity signal follows
whether the last round trip succeeded.
"""

import asyncio
import contextlib
import logging
import random
from dataclasses import dataclass, field
from datetime import UTC, datetime

from supabase import Client

from biteswipe.domain.models import now_ms
from biteswipe.services.store import (
    CONNECTED_PATH,
    ConnectionListener,
    Listener,
    Release,
    SharedStore,
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
class SupabaseStore(SharedStore):
    """Path-addressable store on top of a Supabase table."""

    client: Client
    table: str = "store_nodes"
    poll_interval_seconds: float = 1.0
    rng: random.Random = field(default_factory=random.SystemRandom)
    connected: bool = False
    _watches: list[_Watch] = field(default_factory=list)
    _connection_listeners: list[ConnectionListener] = field(default_factory=list)
    _poller: asyncio.Task | None = None

    async def get(self, path: str) -> object | None:
        if path == CONNECTED_PATH:
            return self.connected
        return self._read(join_path(path))

    async def set(self, path: str, value: object | None) -> None:
        target = join_path(path)
        self._write(target, value)
        self._refresh(target)

    async def update(self, path: str, values: dict[str, object]) -> None:
        target = join_path(path)
        for key, value in values.items():
            self._write(join_path(target, key), value)
        self._refresh(target)

    async def remove(self, path: str) -> None:
        await self.set(path, None)

    def push_key(self, path: str) -> str:
        return generate_push_key(now_ms(), self.rng)

    def subscribe(self, path: str, listener: Listener) -> Release:
        watch = _Watch(path=join_path(path), listener=listener)
        self._watches.append(watch)
        self._poll_watch(watch)
        self._ensure_poller()

        def release() -> None:
            if watch in self._watches:
                self._watches.remove(watch)

        return release

    def observe_connection(self, listener: ConnectionListener) -> Release:
        self._connection_listeners.append(listener)
        listener(self.connected)
        self._ensure_poller()

        def release() -> None:
            if listener in self._connection_listeners:
                self._connection_listeners.remove(listener)

        return release

    async def close(self) -> None:
        """Stop polling."""
        if self._poller is None:
            return
        self._poller.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._poller
        self._poller = None

    def _read(self, path: str) -> object | None:
        try:
            rows = self._select_subtree(path)
        except Exception:
            self._set_connected(False)
            raise
        self._set_connected(True)
        return _build_tree(path, rows)

    def _write(self, path: str, value: object | None) -> None:
        try:
            self._delete_subtree(path)
            self._delete_ancestor_leaves(path)
            rows = _flatten(path, value)
            if rows:
                stamp = datetime.now(tz=UTC).isoformat()
                self.client.table(self.table).upsert(
                    [
                        {"path": row_path, "value": leaf, "updated_at": stamp}
                        for row_path, leaf in rows
                    ]
                ).execute()
        except Exception:
            self._set_connected(False)
            raise
        self._set_connected(True)

    def _select_subtree(self, path: str) -> list[tuple[str, object]]:
        exact = (
            self.client.table(self.table)
            .select("path, value")
            .eq("path", path)
            .execute()
        )
        below = (
            self.client.table(self.table)
            .select("path, value")
            .like("path", f"{path}/%")
            .execute()
        )
        rows = []
        # LIKE treats "_" as a wildcard, so confirm the prefix here.
        for row in (exact.data or []) + (below.data or []):
            row_path = str(row["path"])
            if row_path == path or row_path.startswith(f"{path}/"):
                rows.append((row_path, row.get("value")))
        return rows

    def _delete_subtree(self, path: str) -> None:
        self.client.table(self.table).delete().eq("path", path).execute()
        self.client.table(self.table).delete().like("path", f"{path}/%").execute()

    def _delete_ancestor_leaves(self, path: str) -> None:
        segments = split_path(path)
        ancestors = ["/".join(segments[:depth]) for depth in range(1, len(segments))]
        if ancestors:
            self.client.table(self.table).delete().in_("path", ancestors).execute()

    def _refresh(self, changed_path: str) -> None:
        changed = split_path(changed_path)
        for watch in list(self._watches):
            watched = split_path(watch.path)
            shared = min(len(watched), len(changed))
            if watched[:shared] == changed[:shared]:
                self._poll_watch(watch)

    def _poll_watch(self, watch: _Watch) -> None:
        if watch not in self._watches:
            return
        try:
            value = self._read(watch.path)
        except Exception:
            _logger.warning("Store poll failed: path=%s", watch.path, exc_info=True)
            return
        if value == watch.last_value:
            return
        watch.last_value = value
        try:
            watch.listener(value)
        except Exception:
            _logger.exception("Store listener failed: path=%s", watch.path)

    def _ensure_poller(self) -> None:
        if self._poller is not None and not self._poller.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            _logger.warning("No running loop; remote changes will not be polled")
            return
        self._poller = loop.create_task(self._poll_forever())

    async def _poll_forever(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval_seconds)
            if not self._watches:
                self._probe_connection()
                continue
            for watch in list(self._watches):
                self._poll_watch(watch)

    def _probe_connection(self) -> None:
        try:
            self.client.table(self.table).select("path").limit(1).execute()
        except Exception:
            self._set_connected(False)
            return
        self._set_connected(True)

    def _set_connected(self, connected: bool) -> None:
        if connected == self.connected:
            return
        self.connected = connected
        _logger.info("Store connectivity changed: connected=%s", connected)
        for listener in list(self._connection_listeners):
            listener(connected)


def _flatten(path: str, value: object | None) -> list[tuple[str, object]]:
    if value is None:
        return []
    if isinstance(value, dict):
        rows = []
        for key, child in value.items():
            rows.extend(_flatten(join_path(path, str(key)), child))
        return rows
    return [(path, value)]


def _build_tree(path: str, rows: list[tuple[str, object]]) -> object | None:
    if not rows:
        return None
    for row_path, value in rows:
        if row_path == path:
            return value
    base = len(split_path(path))
    tree: dict[str, object] = {}
    for row_path, value in rows:
        segments = split_path(row_path)[base:]
        node = tree
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
        node[segments[-1]] = value
    return tree
