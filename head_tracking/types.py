from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Tuple
import math


class DetectionMode(Enum):
    """Which stage of the face tracker produced a result."""
    WHITEBALANCING = "whitebalancing"
    COARSE_DETECTED = "coarse_detected"
    FINE_TRACKED = "fine_tracked"


class SessionPhase(Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    RUNNING = "running"
    STOPPED = "stopped"


class Status:
    """Status event names emitted to observers."""
    GET_USER_MEDIA = "getUserMedia"
    WHITEBALANCE = "whitebalance"
    DETECTING = "detecting"
    HINTS = "hints"
    FOUND = "found"
    REDETECTING = "redetecting"
    LOST = "lost"
    STOPPED = "stopped"

    ALL = (GET_USER_MEDIA, WHITEBALANCE, DETECTING, HINTS, FOUND, REDETECTING, LOST, STOPPED)


@dataclass(frozen=True)
class DetectionResult:
    """One frame's output of the face tracker, in source-frame pixels.

    COARSE_DETECTED results carry the top-left corner in (x, y);
    FINE_TRACKED results carry the centre of the rotated region.
    """
    mode: DetectionMode
    confidence: float = 0.0
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    angle: float = 0.0  # radians, FINE_TRACKED only

    @property
    def is_lost(self) -> bool:
        return self.width == 0 or self.height == 0

    @property
    def diagonal(self) -> float:
        return math.sqrt(self.width * self.width + self.height * self.height)

    @property
    def midpoint(self) -> Tuple[float, float]:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)


@dataclass(frozen=True)
class FaceTrackerOptions:
    """Options handed to the face tracker factory on every spawn."""
    debug: bool = False
    compute_angles: bool = False
    whitebalancing: bool = True


@dataclass
class HeadPosition:
    """Head position in centimetres relative to the screen centre."""
    x: float
    y: float
    z: float
    angle: Optional[float] = None  # degrees, only with calc_angles


@dataclass
class PerformanceStats:
    """Timing metrics for each stage of one tick."""
    t_track_ms: float = 0.0
    t_smooth_ms: float = 0.0
    t_pose_ms: float = 0.0
    t_total_ms: float = 0.0


@dataclass
class TickOutput:
    """Aggregated output from one controller tick."""
    result: Optional[DetectionResult]
    statuses: Tuple[str, ...] = ()
    head_position: Optional[HeadPosition] = None
    perf: PerformanceStats = field(default_factory=PerformanceStats)
    debug: Dict[str, float] = field(default_factory=dict)
