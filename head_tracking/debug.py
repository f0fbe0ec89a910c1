from __future__ import annotations
import math
import threading
from typing import Optional, Tuple

import cv2
import numpy as np


Color = Tuple[int, int, int]


class FrameDebugCanvas:
    """Debug render target drawing tracker boxes onto a copy of the latest frame.

    Boxes accumulate until `take()` hands the canvas out and clears it. The
    poll worker draws while the UI thread takes, so both go through `_lock`.
    """

    def __init__(self, frame_source, thickness: int = 2):
        self.frame_source = frame_source
        self.thickness = int(thickness)
        self._canvas: Optional[np.ndarray] = None
        self._lock = threading.Lock()

    def _surface(self) -> Optional[np.ndarray]:
        # Caller holds _lock
        if self._canvas is None:
            frame = getattr(self.frame_source, 'latest_frame', None)
            if frame is None:
                return None
            self._canvas = frame.copy()
        return self._canvas

    def stroke_rect(self, x: float, y: float, w: float, h: float, color: Color) -> None:
        with self._lock:
            canvas = self._surface()
            if canvas is None:
                return
            p0 = (int(x), int(y))
            p1 = (int(x + w), int(y + h))
            cv2.rectangle(canvas, p0, p1, color, self.thickness)

    def stroke_rotated_rect(self, cx: float, cy: float, w: float, h: float, angle: float, color: Color) -> None:
        """Rectangle of size w x h centred on (cx, cy), rotated by `angle` radians."""
        with self._lock:
            canvas = self._surface()
            if canvas is None:
                return
            box = cv2.boxPoints(((float(cx), float(cy)), (float(w), float(h)), math.degrees(angle)))
            cv2.polylines(canvas, [box.astype(np.int32)], True, color, self.thickness)

    def take(self) -> Optional[np.ndarray]:
        with self._lock:
            canvas, self._canvas = self._canvas, None
        return canvas
