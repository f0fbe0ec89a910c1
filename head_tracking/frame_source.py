from __future__ import annotations
from typing import Iterable, Optional

import numpy as np


def mean_brightness(frame: Optional[np.ndarray]) -> float:
    """Average pixel value; 0 for a missing or all-black frame."""
    if frame is None or frame.size == 0:
        return 0.0
    return float(np.mean(frame))


class VideoFrameSource:
    """Frame source over the threaded `VideoCapture`.

    `grab()` returns the newest frame (or the previous one on a short
    dropout), `probe_signal()` is its mean brightness.
    """

    def __init__(self, capture, timeout: float = 0.05):
        self.capture = capture
        self.timeout = float(timeout)
        self.width = int(capture.width)
        self.height = int(capture.height)
        self.latest_frame: Optional[np.ndarray] = None

    def grab(self) -> Optional[np.ndarray]:
        ok, frame = self.capture.get_frame(timeout=self.timeout)
        if ok and frame is not None:
            self.latest_frame = frame
            self.height, self.width = frame.shape[:2]
        return self.latest_frame

    def probe_signal(self) -> float:
        return mean_brightness(self.grab())


class ArrayFrameSource:
    """Frame source replaying in-memory BGR frames (offline clips, tests).

    The last frame repeats once the sequence is exhausted when `hold_last`
    is set; otherwise `grab()` returns None.
    """

    def __init__(self, frames: Iterable[np.ndarray], hold_last: bool = True):
        self._frames = iter(frames)
        self.hold_last = hold_last
        self.latest_frame: Optional[np.ndarray] = None
        first = next(self._frames, None)
        if first is None:
            raise ValueError("ArrayFrameSource needs at least one frame")
        self._next: Optional[np.ndarray] = first
        self.height, self.width = first.shape[:2]

    def grab(self) -> Optional[np.ndarray]:
        if self._next is not None:
            self.latest_frame = self._next
            self._next = next(self._frames, None)
            return self.latest_frame
        return self.latest_frame if self.hold_last else None

    def probe_signal(self) -> float:
        # Peek without consuming so the first tick still sees the first frame
        return mean_brightness(self._next if self._next is not None else self.latest_frame)
