from __future__ import annotations
import math
from typing import Optional

from .types import DetectionResult, HeadPosition


# Average adult head dimensions (cm)
HEAD_WIDTH_CM = 16.0
HEAD_HEIGHT_CM = 19.0
# Assumed viewing distance when the camera FOV has to be estimated (laptop use)
DEFAULT_DISTANCE_TO_SCREEN_CM = 60.0
EDGE_MARGIN_PX = 11.0


class HeadPositionEstimator:
    """Turns fine-tracked face regions into a head position relative to the screen.

    Without an explicit `fov` (degrees) the horizontal field of view is
    estimated from the initial face size, assuming the user sits
    `distance_to_screen` cm from the camera. `camera_offset` is the vertical
    distance from the camera to the screen centre.
    """

    def __init__(self, sample: DetectionResult, frame_width: int, frame_height: int,
                 fov: Optional[float] = None, camera_offset: float = 11.5,
                 distance_to_screen: float = DEFAULT_DISTANCE_TO_SCREEN_CM,
                 edge_correction: bool = True, compute_angles: bool = False):
        if frame_width <= 0 or frame_height <= 0:
            raise ValueError(f"invalid frame size: {frame_width}x{frame_height}")
        self.frame_width = float(frame_width)
        self.frame_height = float(frame_height)
        self.camera_offset = float(camera_offset)
        self.edge_correction = bool(edge_correction)
        self.compute_angles = bool(compute_angles)

        # Angle between the side of the face and its diagonal
        self._head_small_angle = math.atan(HEAD_WIDTH_CM / HEAD_HEIGHT_CM)
        self._head_diag_cm = math.hypot(HEAD_WIDTH_CM, HEAD_HEIGHT_CM)
        self._head_diag_px = sample.diagonal

        if fov is None:
            # The diagonal is less sensitive to width/height errors than either side
            head_width_px = math.sin(self._head_small_angle) * self._head_diag_px
            if head_width_px <= 0:
                raise ValueError("cannot estimate FOV from an empty face region")
            frame_width_cm = (self.frame_width / head_width_px) * HEAD_WIDTH_CM
            self._fov_rad = 2.0 * math.atan((frame_width_cm / 2.0) / float(distance_to_screen))
        else:
            self._fov_rad = math.radians(float(fov))
        self._tan_fov_width = 2.0 * math.tan(self._fov_rad / 2.0)
        self.position: Optional[HeadPosition] = None

    def get_fov(self) -> float:
        """Horizontal field of view in degrees."""
        return math.degrees(self._fov_rad)

    def _near_edge(self, fx: float, fy: float, w: float, h: float) -> bool:
        left = fx - w / 2.0
        right = self.frame_width - (fx + w / 2.0)
        top = fy - h / 2.0
        bottom = self.frame_height - (fy + h / 2.0)
        return min(left, right, top, bottom) < EDGE_MARGIN_PX

    def track(self, sample: DetectionResult) -> HeadPosition:
        w, h = float(sample.width), float(sample.height)
        fx, fy = float(sample.x), float(sample.y)

        # A face cut off by the frame edge shrinks; keep the last diagonal instead
        if not (self.edge_correction and self._near_edge(fx, fy, w, h)):
            self._head_diag_px = math.hypot(w, h)

        z = (self._head_diag_cm * self.frame_width) / (self._tan_fov_width * self._head_diag_px)
        x = -((fx / self.frame_width) - 0.5) * z * self._tan_fov_width
        y = -((fy / self.frame_height) - 0.5) * z * self._tan_fov_width * (self.frame_height / self.frame_width)
        y += self.camera_offset

        angle = math.degrees(sample.angle) if self.compute_angles else None
        self.position = HeadPosition(x=x, y=y, z=z, angle=angle)
        return self.position
