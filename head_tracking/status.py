from __future__ import annotations
from collections import deque
from typing import Callable, List, Optional

from .logger import EventLogger
from .types import Status


StatusCallback = Callable[[str], None]


class StatusSink:
    """Fans status events out to registered observers and remembers the last one.

    Observers are called in registration order on the emitting thread. A
    failing observer is logged and skipped so it cannot break a tick.
    """

    def __init__(self, logger: Optional[EventLogger] = None, history_len: int = 100):
        self.log = logger or EventLogger()
        self._observers: List[StatusCallback] = []
        self.status = ""
        self.history = deque(maxlen=history_len)

    def subscribe(self, callback: StatusCallback) -> Callable[[], None]:
        """Register an observer; returns a function that removes it again."""
        self._observers.append(callback)

        def _unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)
        return _unsubscribe

    def emit(self, status: str) -> None:
        if status not in Status.ALL:
            raise ValueError(f"unknown status event: {status}")
        self.status = status
        self.history.append(status)
        self.log.debug(f"status: {status}")
        for cb in list(self._observers):
            try:
                cb(status)
            except Exception as e:
                self.log.error(f"status observer failed on {status}: {e}")
