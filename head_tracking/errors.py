class HeadTrackingError(Exception):
    """Base class for head tracking errors."""


class NotReadyError(HeadTrackingError):
    """Raised when the frame source cannot be used (no drawable surface)."""


class InvalidDebugTargetError(HeadTrackingError):
    """Raised when a debug target does not accept draw requests."""


class ConfigError(HeadTrackingError):
    """Raised when tracker configuration values are malformed."""


class SchedulingError(HeadTrackingError):
    """Raised on an internal scheduling invariant violation (e.g. re-arm after stop)."""
