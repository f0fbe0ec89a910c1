"""
Face tracker
Haar cascade (Viola-Jones) detection followed by CamShift tracking, using OpenCV
"""

from __future__ import annotations
import math
from typing import Optional, Tuple

import cv2
import numpy as np

from .types import DetectionMode, DetectionResult, FaceTrackerOptions


DEFAULT_CASCADE = "haarcascade_frontalface_default.xml"


def gray_world_gains(mean_bgr: np.ndarray) -> np.ndarray:
    """Per-channel gains that pull the average colour to neutral grey."""
    mean_bgr = np.asarray(mean_bgr, dtype=np.float32)
    if np.any(mean_bgr <= 0):
        return np.ones(3, dtype=np.float32)
    return (float(np.mean(mean_bgr)) / mean_bgr).astype(np.float32)


class CascadeCamShiftTracker:
    """Three-stage face tracker: whitebalancing -> coarse detection -> fine tracking.

    - WHITEBALANCING: averages the first frames to estimate gray-world gains
      (results carry confidence 0).
    - COARSE_DETECTED: Haar cascade search on the full frame; (x, y) is the
      top-left corner of the strongest candidate and the confidence is its
      cascade weight. Only a candidate of at least `handoff_min_weight` is
      handed to CamShift; weaker ones keep the search going.
    - FINE_TRACKED: CamShift on a hue histogram of the detected face; (x, y)
      is the centre of the rotated box. A collapsed window is reported as
      width = height = 0.
    """

    def __init__(self, frame_source, options: FaceTrackerOptions = FaceTrackerOptions(),
                 config: Optional[dict] = None, cascade=None):
        cfg = config or {}
        self.frame_source = frame_source
        self.options = options
        self.whitebalance_frames = int(cfg.get('whitebalance_frames', 10))
        self.scale_factor = float(cfg.get('cascade_scale_factor', 1.1))
        self.min_neighbors = int(cfg.get('cascade_min_neighbors', 5))
        self.min_face_px = int(cfg.get('min_face_px', 40))
        self.min_saturation = int(cfg.get('min_saturation', 60))
        self.min_value = int(cfg.get('min_value', 32))
        self.max_value = int(cfg.get('max_value', 255))
        self.lost_min_px = int(cfg.get('lost_min_px', 8))
        self.handoff_min_weight = float(cfg.get('handoff_min_weight', 3.0))
        self.cascade = cascade if cascade is not None else cv2.CascadeClassifier(cv2.data.haarcascades + DEFAULT_CASCADE)
        self.criteria = (cv2.TERM_CRITERIA_EPS | cv2.TERM_CRITERIA_COUNT, 10, 1)

        self._gains = np.ones(3, dtype=np.float32)
        self._wb_sum = np.zeros(3, dtype=np.float64)
        self._wb_count = 0
        self._hist: Optional[np.ndarray] = None
        self._window: Optional[Tuple[int, int, int, int]] = None

        wb = options.whitebalancing and self.whitebalance_frames > 0
        self.mode = DetectionMode.WHITEBALANCING if wb else DetectionMode.COARSE_DETECTED
        self._result = DetectionResult(mode=self.mode, confidence=0.0)

    def get_result(self) -> DetectionResult:
        return self._result

    def track(self) -> None:
        """Advance by one frame from the frame source."""
        frame = self.frame_source.grab()
        if frame is None:
            self._result = DetectionResult(mode=self.mode, confidence=0.0)
            return

        if self.mode is DetectionMode.WHITEBALANCING:
            self._whitebalance(frame)
            return

        frame = self._balance(frame)
        if self.mode is DetectionMode.COARSE_DETECTED:
            self._detect(frame)
        else:
            self._camshift(frame)

    # --- Stages ---
    def _whitebalance(self, frame: np.ndarray) -> None:
        self._wb_sum += frame.reshape(-1, 3).mean(axis=0)
        self._wb_count += 1
        if self._wb_count >= self.whitebalance_frames:
            self._gains = gray_world_gains(self._wb_sum / self._wb_count)
            self.mode = DetectionMode.COARSE_DETECTED
        self._result = DetectionResult(mode=DetectionMode.WHITEBALANCING, confidence=0.0)

    def _balance(self, frame: np.ndarray) -> np.ndarray:
        if np.allclose(self._gains, 1.0):
            return frame
        return np.clip(frame.astype(np.float32) * self._gains, 0, 255).astype(np.uint8)

    def _detect(self, frame: np.ndarray) -> None:
        gray = cv2.equalizeHist(cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY))
        faces, _levels, weights = self.cascade.detectMultiScale3(
            gray,
            scaleFactor=self.scale_factor,
            minNeighbors=self.min_neighbors,
            minSize=(self.min_face_px, self.min_face_px),
            outputRejectLevels=True,
        )
        if len(faces) == 0:
            self._result = DetectionResult(mode=DetectionMode.COARSE_DETECTED, confidence=0.0)
            return

        weights = np.asarray(weights, dtype=np.float64).reshape(-1)
        best = int(np.argmax(weights))
        x, y, w, h = (int(v) for v in faces[best])
        weight = float(weights[best])
        # Weak candidates are reported but keep the search going
        if weight >= self.handoff_min_weight:
            self.start_fine_tracking(frame, (x, y, w, h))
        self._result = DetectionResult(
            mode=DetectionMode.COARSE_DETECTED,
            confidence=max(weight, 1e-3),
            x=float(x), y=float(y), width=float(w), height=float(h),
        )

    def _hsv_mask(self, hsv: np.ndarray) -> np.ndarray:
        return cv2.inRange(
            hsv,
            np.array((0, self.min_saturation, self.min_value), dtype=np.uint8),
            np.array((180, 255, self.max_value), dtype=np.uint8),
        )

    def start_fine_tracking(self, frame: np.ndarray, window: Tuple[int, int, int, int]) -> None:
        """Seed CamShift with the hue histogram of `window` (x, y, w, h)."""
        x, y, w, h = window
        hsv = cv2.cvtColor(frame, cv2.COLOR_BGR2HSV)
        mask = self._hsv_mask(hsv)
        roi = hsv[y:y + h, x:x + w]
        roi_mask = mask[y:y + h, x:x + w]
        hist = cv2.calcHist([roi], [0], roi_mask, [16], [0, 180])
        cv2.normalize(hist, hist, 0, 255, cv2.NORM_MINMAX)
        self._hist = hist
        self._window = (int(x), int(y), int(w), int(h))
        self.mode = DetectionMode.FINE_TRACKED

    def _lost(self) -> None:
        self._result = DetectionResult(mode=DetectionMode.FINE_TRACKED, confidence=1.0, width=0.0, height=0.0)

    def _camshift(self, frame: np.ndarray) -> None:
        if self._window is None or self._window[2] <= 0 or self._window[3] <= 0:
            self._lost()
            return
        hsv = cv2.cvtColor(frame, cv2.COLOR_BGR2HSV)
        back = cv2.calcBackProject([hsv], [0], self._hist, [0, 180], 1)
        back &= self._hsv_mask(hsv)
        rot, window = cv2.CamShift(back, self._window, self.criteria)
        (cx, cy), (rw, rh), angle_deg = rot
        if window[2] < self.lost_min_px or window[3] < self.lost_min_px or rw <= 0 or rh <= 0:
            self._window = (0, 0, 0, 0)
            self._lost()
            return
        self._window = tuple(int(v) for v in window)

        x, y, w, h = self._window
        confidence = float(np.mean(back[y:y + h, x:x + w])) / 255.0
        # Upright face is pi/2; CamShift reports the box rotation from vertical
        angle = math.radians(angle_deg) + math.pi / 2.0 if self.options.compute_angles else math.pi / 2.0
        self._result = DetectionResult(
            mode=DetectionMode.FINE_TRACKED,
            confidence=max(confidence, 1e-3),
            x=float(cx), y=float(cy), width=float(rw), height=float(rh),
            angle=angle,
        )
