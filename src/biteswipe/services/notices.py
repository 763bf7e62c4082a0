"""User-visible notices (toasts) raised by the client engine."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from biteswipe.domain.errors import DomainError, ErrorCode

_logger = logging.getLogger(__name__)


class NoticeLevel(Enum):
    """Severity shown to the user."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    """A short message for the participant."""

    level: NoticeLevel
    message: str
    code: ErrorCode | None = None

    @classmethod
    def from_error(cls, error: DomainError) -> "Notice":
        return cls(level=NoticeLevel.ERROR, message=error.message, code=error.code)


class NoticeSink(Protocol):
    """Destination for notices, such as a toast area."""

    def publish(self, notice: Notice) -> None:
        """Show a notice to the participant."""


_LOG_LEVELS = {
    NoticeLevel.INFO: logging.INFO,
    NoticeLevel.SUCCESS: logging.INFO,
    NoticeLevel.WARNING: logging.WARNING,
    NoticeLevel.ERROR: logging.WARNING,
}


class LoggingNoticeSink(NoticeSink):
    """Sink that writes notices to the application log."""

    def publish(self, notice: Notice) -> None:
        code = notice.code.value if notice.code else "-"
        _logger.log(_LOG_LEVELS[notice.level], "Notice [%s]: %s", code, notice.message)
