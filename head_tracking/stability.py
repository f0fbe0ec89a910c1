from __future__ import annotations
from collections import deque
from typing import Tuple


class StabilityWindow:
    """Sliding window of recent head diagonals.

    Pose estimation is sensitive to detector jitter right after the
    coarse-to-fine handoff, so bootstrapping waits until the last `capacity`
    measurements sit within `tolerance` of each other.
    """

    def __init__(self, capacity: int = 6, tolerance: float = 5.0):
        if capacity < 1:
            raise ValueError(f"capacity must be positive: {capacity}")
        self.capacity = int(capacity)
        self.tolerance = float(tolerance)
        self._samples = deque(maxlen=self.capacity)

    def push(self, value: float) -> None:
        self._samples.append(float(value))

    def span(self) -> float:
        if not self._samples:
            return 0.0
        return max(self._samples) - min(self._samples)

    def is_stable(self) -> bool:
        return len(self._samples) == self.capacity and self.span() < self.tolerance

    def reset(self) -> None:
        self._samples.clear()

    @property
    def samples(self) -> Tuple[float, ...]:
        return tuple(self._samples)

    def __len__(self) -> int:
        return len(self._samples)
