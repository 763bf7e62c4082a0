"""Disposers for live store subscriptions."""

import logging
from dataclasses import dataclass, field

from biteswipe.services.store import Release

_logger = logging.getLogger(__name__)


@dataclass
class Subscription:
    """Releases one store listener exactly once.

    Calling the subscription (or ``release``) a second time is logged and
    ignored so teardown paths cannot detach somebody else's listener.
    """

    path: str
    _release: Release
    released: bool = False

    def __call__(self) -> None:
        self.release()

    def release(self) -> None:
        """Detach the underlying listener."""
        if self.released:
            _logger.warning("Subscription already released: path=%s", self.path)
            return
        self.released = True
        self._release()


@dataclass
class SubscriptionGroup:
    """Owns the subscriptions of one screen or one session visit."""

    subscriptions: list[Subscription] = field(default_factory=list)

    def add(self, subscription: Subscription) -> Subscription:
        self.subscriptions.append(subscription)
        return subscription

    @property
    def active_count(self) -> int:
        return sum(1 for sub in self.subscriptions if not sub.released)

    def close(self) -> None:
        """Release every subscription still held, then forget them."""
        for subscription in self.subscriptions:
            if not subscription.released:
                subscription.release()
        self.subscriptions.clear()
