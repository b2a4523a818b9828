"""Bounded feed of recent operational events."""

import logging
import threading
from collections import deque
from collections.abc import Callable
from datetime import datetime

from sentinel.models import ActivityLogEntry, Severity, utcnow

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 8

_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.WARN: logging.WARNING,
    Severity.ALERT: logging.WARNING,
}


class ActivityLog:
    """Most-recent-first ring buffer; the oldest entry is evicted on overflow."""

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], datetime] = utcnow,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._entries: deque[ActivityLogEntry] = deque(maxlen=capacity)
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._entries.maxlen

    def record(self, message: str, severity: Severity = Severity.INFO) -> ActivityLogEntry:
        entry = ActivityLogEntry(message=message, timestamp=self._clock(), severity=severity)
        with self._lock:
            self._entries.appendleft(entry)
        logger.log(_LOG_LEVELS[severity], "[%s] %s", severity.value, message)
        return entry

    def snapshot(self) -> list[ActivityLogEntry]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
