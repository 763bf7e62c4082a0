"""Anonymous participant identity."""

from dataclasses import dataclass
from typing import Protocol
from uuid import uuid4


class IdentityProvider(Protocol):
    """Issues a stable opaque participant id per client instance."""

    def current_identity(self) -> str | None:
        """Return the established id, if any."""

    async def sign_in_anonymously(self) -> str:
        """Establish an anonymous identity and return it."""


@dataclass
class AnonymousIdentityProvider(IdentityProvider):
    """In-process anonymous identity, stable for the instance lifetime."""

    participant_id: str | None = None

    def current_identity(self) -> str | None:
        return self.participant_id

    async def sign_in_anonymously(self) -> str:
        if self.participant_id is None:
            self.participant_id = uuid4().hex
        return self.participant_id
