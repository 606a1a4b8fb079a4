"""
Status reporting: human-readable progress/result/error strings tagged with a
severity, the way the point-editing UI shows them in its status line.

A sink is any callable ``sink(message, severity)``.
"""

from __future__ import annotations
import logging
from typing import Callable, List, Optional, Tuple

SUCCESS = "success"
ERROR = "error"
NEUTRAL = ""

StatusSink = Callable[[str, str], None]

logger = logging.getLogger(__name__)


class LoggingStatus:
    """Default sink: forwards messages to the ``docrectify.status`` logger."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def __call__(self, message: str, severity: str = NEUTRAL) -> None:
        if severity == ERROR:
            self.log.error("status=%s message=%s", severity, message)
        elif severity == SUCCESS:
            self.log.info("status=%s message=%s", severity, message)
        else:
            self.log.debug("status=neutral message=%s", message)


class RecordingStatus:
    """Keeps every (message, severity) pair; handy for tests and CLIs."""

    def __init__(self):
        self.messages: List[Tuple[str, str]] = []

    def __call__(self, message: str, severity: str = NEUTRAL) -> None:
        self.messages.append((message, severity))

    @property
    def last(self) -> Optional[Tuple[str, str]]:
        return self.messages[-1] if self.messages else None

    def with_severity(self, severity: str) -> List[str]:
        return [m for m, s in self.messages if s == severity]


def resolve_sink(status: Optional[StatusSink]) -> StatusSink:
    return status if status is not None else LoggingStatus()
