"""
head_tracking package
Session controller turning a video feed into a stabilized head position.
"""

from .types import (
    DetectionMode,
    DetectionResult,
    FaceTrackerOptions,
    HeadPosition,
    PerformanceStats,
    SessionPhase,
    Status,
    TickOutput,
)
from .errors import HeadTrackingError, NotReadyError, InvalidDebugTargetError, ConfigError, SchedulingError
from .logger import EventLogger
from .options import TrackerOptions
from .stability import StabilityWindow
from .status import StatusSink
from .smoothing import DoubleExponentialSmoother
from .headposition import HeadPositionEstimator
from .facetracker import CascadeCamShiftTracker
from .frame_source import VideoFrameSource, ArrayFrameSource
from .debug import FrameDebugCanvas
from .overlay import StatusOverlay
from .monitor import PerformanceMonitor
from .poll_loop import PollLoop, ReadinessGate
from .session import SessionState
from .tracker import HeadTracker

__all__ = [
    "DetectionMode",
    "DetectionResult",
    "FaceTrackerOptions",
    "HeadPosition",
    "PerformanceStats",
    "SessionPhase",
    "Status",
    "TickOutput",
    "HeadTrackingError",
    "NotReadyError",
    "InvalidDebugTargetError",
    "ConfigError",
    "SchedulingError",
    "EventLogger",
    "TrackerOptions",
    "StabilityWindow",
    "StatusSink",
    "DoubleExponentialSmoother",
    "HeadPositionEstimator",
    "CascadeCamShiftTracker",
    "VideoFrameSource",
    "ArrayFrameSource",
    "FrameDebugCanvas",
    "StatusOverlay",
    "PerformanceMonitor",
    "PollLoop",
    "ReadinessGate",
    "SessionState",
    "HeadTracker",
]
