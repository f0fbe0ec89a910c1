from __future__ import annotations
from dataclasses import replace
from typing import Optional, Tuple
import time

import numpy as np

from .types import DetectionResult


class DoubleExponentialSmoother:
    """Double exponential (Brown) smoothing of a tracked face region.

    Smooths (x, y, width, height) of fine-tracked results. `window_ms` is the
    expected spacing between samples and scales the trend when predicting
    ahead. Must be primed with `init()` before `smooth()`.
    """

    def __init__(self, alpha: float = 0.35, window_ms: float = 35.0, clock=time.monotonic):
        if not (0.0 < float(alpha) < 1.0):
            raise ValueError(f"alpha must be in (0, 1): {alpha}")
        if float(window_ms) <= 0.0:
            raise ValueError(f"window_ms must be positive: {window_ms}")
        self.alpha = float(alpha)
        self.window_ms = float(window_ms)
        self.clock = clock
        self.initialized = False
        self._sp: Optional[np.ndarray] = None
        self._sp2: Optional[np.ndarray] = None
        self._last_update = 0.0

    @staticmethod
    def _vector(sample: DetectionResult) -> np.ndarray:
        return np.array([sample.x, sample.y, sample.width, sample.height], dtype=float)

    def init(self, sample: DetectionResult) -> None:
        self._sp = self._vector(sample)
        self._sp2 = self._sp.copy()
        self._last_update = self.clock()
        self.initialized = True

    def smooth(self, sample: DetectionResult) -> DetectionResult:
        if not self.initialized:
            raise RuntimeError("smoother used before init()")
        pos = self._vector(sample)
        a = self.alpha
        self._sp = a * pos + (1.0 - a) * self._sp
        self._sp2 = a * self._sp + (1.0 - a) * self._sp2
        self._last_update = self.clock()
        x, y, w, h = self.predict(0.0)
        return replace(sample, x=x, y=y, width=w, height=h)

    def predict(self, ms_ahead: float) -> Tuple[float, float, float, float]:
        """Forecast the region `ms_ahead` milliseconds after the last update."""
        steps = int(float(ms_ahead) / self.window_ms)
        ratio = (self.alpha * steps) / (1.0 - self.alpha)
        out = (2.0 + ratio) * self._sp - (1.0 + ratio) * self._sp2
        return float(out[0]), float(out[1]), float(out[2]), float(out[3])

    def reset(self) -> None:
        self.initialized = False
        self._sp = None
        self._sp2 = None
