from __future__ import annotations
import time
from typing import Optional

import cv2
import numpy as np

from .types import Status


MESSAGES = {
    Status.GET_USER_MEDIA: "Waiting for camera access...",
    Status.WHITEBALANCE: "Waiting for camera whitebalancing",
    Status.DETECTING: "Please wait while camera is detecting your face...",
    Status.HINTS: "We seem to have some problems detecting your face. "
                  "Please make sure that your face is well and evenly lighted, "
                  "and that your camera is working.",
    Status.FOUND: "Face found! Move your head!",
    Status.REDETECTING: "Lost track of face, trying to detect again...",
    Status.LOST: "Lost track of face :(",
    Status.STOPPED: "Face tracking stopped",
}


class StatusOverlay:
    """User-facing status line, drawn onto frames with OpenCV.

    Subscribe `on_status` to the tracker's status sink. The "found" message
    fades out after `found_timeout_s` so it does not cover the picture.
    """

    def __init__(self, found_timeout_s: float = 3.0, clock=time.monotonic):
        self.found_timeout_s = float(found_timeout_s)
        self.clock = clock
        self.message: Optional[str] = None
        self._since = 0.0
        self._status = ""

    def on_status(self, status: str) -> None:
        self._status = status
        self.message = MESSAGES.get(status)
        self._since = self.clock()

    def current_message(self) -> Optional[str]:
        if self._status == Status.FOUND and (self.clock() - self._since) > self.found_timeout_s:
            return None
        return self.message

    def draw(self, frame: np.ndarray) -> np.ndarray:
        msg = self.current_message()
        if not msg or frame is None:
            return frame
        h, w = frame.shape[:2]
        # Wrap long hints so they fit the frame width
        lines, line = [], ""
        max_chars = max(20, int(w / 11))
        for word in msg.split():
            if len(line) + len(word) + 1 > max_chars:
                lines.append(line)
                line = word
            else:
                line = f"{line} {word}".strip()
        lines.append(line)
        y = h - 20 - 24 * (len(lines) - 1)
        for text in lines:
            cv2.putText(frame, text, (10, y), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 0, 0), 4, cv2.LINE_AA)
            cv2.putText(frame, text, (10, y), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 1, cv2.LINE_AA)
            y += 24
        return frame
