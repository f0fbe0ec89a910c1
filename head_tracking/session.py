from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from .types import SessionPhase


@dataclass
class SessionState:
    """Everything one tracking session knows; mutated only under the controller lock."""
    phase: SessionPhase = SessionPhase.UNINITIALIZED
    face_found: bool = False
    detection_started_at: Optional[float] = None
    detecting_reported: bool = False
    calibrated_fov: Optional[float] = None
    pose_tracker_active: bool = False
    smoothing_primed: bool = False
    face_tracker: Any = None
    pose_estimator: Any = None
    last_midpoint: Optional[Tuple[float, float]] = None
    spawn_count: int = 0

    @property
    def running(self) -> bool:
        return self.phase is SessionPhase.RUNNING

    def reset_lock(self) -> None:
        """Forget the current lock; called whenever a fresh face tracker is spawned."""
        self.face_found = False
        self.detection_started_at = None
        self.detecting_reported = False
        self.pose_tracker_active = False
        self.pose_estimator = None
        self.smoothing_primed = False
        self.last_midpoint = None

    def release(self) -> None:
        """Drop the sub-trackers at stop; calibration survives."""
        self.face_tracker = None
        self.pose_estimator = None
        self.pose_tracker_active = False
        self.face_found = False
        self.detection_started_at = None
