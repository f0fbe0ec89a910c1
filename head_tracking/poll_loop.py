from __future__ import annotations
import sched
import threading
import time
from typing import Callable, Optional

from .errors import SchedulingError
from .logger import EventLogger


class PollLoop:
    """Cooperative one-shot timer loop on top of `sched.scheduler`.

    At most one action is pending at a time; an action that wants to run
    again has to re-arm itself with `call_later`. The loop is driven either
    by the caller (`run_pending`, `run_forever`) or by a single daemon worker
    thread (`spawn`), so actions never overlap.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep,
                 logger: Optional[EventLogger] = None):
        self.clock = clock
        self.log = logger or EventLogger()
        self._scheduler = sched.scheduler(clock, sleep)
        self._pending: Optional[sched.Event] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def call_later(self, delay_ms: float, action: Callable[[], None]) -> None:
        if self._pending is not None:
            raise SchedulingError("a poll is already pending")
        self._pending = self._scheduler.enter(max(0.0, float(delay_ms)) / 1000.0, 0, self._fire, (action,))

    def _fire(self, action: Callable[[], None]) -> None:
        self._pending = None
        action()

    def cancel(self) -> bool:
        """Drop the pending action; False when nothing was pending or it already fired."""
        event, self._pending = self._pending, None
        if event is None:
            return False
        try:
            self._scheduler.cancel(event)
        except ValueError:
            # Popped by the runner already; the action will see the new phase
            return False
        return True

    def run_pending(self) -> Optional[float]:
        """Run every action that is due; returns seconds until the next one, if any."""
        return self._scheduler.run(blocking=False)

    def run_forever(self) -> None:
        """Block until nothing is pending any more."""
        self._scheduler.run()

    def spawn(self, name: str = "head-tracking-poll") -> threading.Thread:
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._thread = threading.Thread(target=self._worker, name=name, daemon=True)
        self._thread.start()
        return self._thread

    def _worker(self) -> None:
        try:
            self.run_forever()
        except Exception as e:
            self.log.error(f"poll loop crashed: {e}")
            raise

    def in_worker(self) -> bool:
        return self._thread is not None and threading.current_thread() is self._thread

    def wait_idle(self, timeout: Optional[float] = 5.0) -> bool:
        """Wait for a finished worker thread to exit; True when no worker is left."""
        thread = self._thread
        if thread is None or self.in_worker():
            return True
        thread.join(timeout)
        if thread.is_alive():
            self.log.warning("poll worker still running after wait")
            return False
        self._thread = None
        return True


class ReadinessGate:
    """Probes the frame source until it delivers a non-degenerate signal.

    The gate only answers `check()`; the caller owns the retry timer so that
    a stop can cancel it. `max_attempts=None` means retry until cancelled.
    """

    def __init__(self, probe: Callable[[], float], max_attempts: Optional[int] = None,
                 logger: Optional[EventLogger] = None):
        self.probe = probe
        self.max_attempts = max_attempts
        self.log = logger or EventLogger()
        self.attempts = 0
        self.last_signal = 0.0

    def reset(self) -> None:
        self.attempts = 0
        self.last_signal = 0.0

    @property
    def exhausted(self) -> bool:
        return self.max_attempts is not None and self.attempts >= self.max_attempts

    def check(self) -> bool:
        self.attempts += 1
        try:
            self.last_signal = float(self.probe())
        except Exception as e:
            # Frame source still warming up
            self.log.debug(f"readiness probe failed (attempt {self.attempts}): {e}")
            self.last_signal = 0.0
        return self.last_signal > 0.0
