"""Domain error codes for session coordination."""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    TRANSIENT_STORE_FAILURE = "TRANSIENT_STORE_FAILURE"
    SUBSCRIPTION_LOST = "SUBSCRIPTION_LOST"
    NOT_HOST = "NOT_HOST"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"


@dataclass(eq=False)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class NotAuthenticatedError(DomainError):
    """Raised when no participant identity has been established yet."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.NOT_AUTHENTICATED,
            message="Not authenticated",
        )


class SessionNotFoundError(DomainError):
    """Raised when a short code or session id matches no live session."""

    def __init__(self, reference: str) -> None:
        super().__init__(
            code=ErrorCode.SESSION_NOT_FOUND,
            message="Session not found",
        )
        self.reference = reference


class TransientStoreError(DomainError):
    """Raised when a store read or write fails."""

    def __init__(self, action: str) -> None:
        super().__init__(
            code=ErrorCode.TRANSIENT_STORE_FAILURE,
            message=f"Failed to {action}",
        )
        self.action = action


class NotHostError(DomainError):
    """Raised when a host-only action is attempted by another participant."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            code=ErrorCode.NOT_HOST,
            message="Only the host can do that",
        )
        self.session_id = session_id


class InvalidStateTransitionError(DomainError):
    """Raised when a checked transition would move a session backward."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_STATE_TRANSITION,
            message=f"Cannot move session from {current} to {target}",
        )
        self.current = current
        self.target = target
