from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional

from .errors import ConfigError


@dataclass(frozen=True)
class TrackerOptions:
    """Typed view of the `tracker` config section."""
    ui: bool = True
    smoothing: bool = True
    debug: Any = None
    detection_interval_ms: float = 20.0
    retry_detection: bool = True
    fov: Optional[float] = None
    camera_offset: float = 11.5
    calc_angles: bool = False
    head_position: bool = True
    hints_after_ms: float = 5000.0
    stability_window: int = 6
    stability_tolerance: float = 5.0
    smoothing_alpha: float = 0.35
    smoothing_window_extra_ms: float = 15.0
    readiness_backoff_ms: float = 100.0
    readiness_max_attempts: Optional[int] = None
    tick_budget_warn_ms: Optional[float] = None
    run_in_thread: bool = True

    @property
    def smoothing_window_ms(self) -> float:
        return max(1.0, self.detection_interval_ms + self.smoothing_window_extra_ms)

    @classmethod
    def from_config(cls, config) -> "TrackerOptions":
        """Build options from a `Config`; missing keys keep their defaults."""
        sec = dict(config.get('tracker') or {}) if config is not None else {}
        defaults = cls()

        def pick(key):
            val = sec.get(key)
            return getattr(defaults, key) if val is None else val

        def as_float(key, minimum=None):
            val = pick(key)
            try:
                val = float(val)
            except (TypeError, ValueError):
                raise ConfigError(f"tracker.{key} must be a number, got {val!r}")
            if minimum is not None and val < minimum:
                raise ConfigError(f"tracker.{key} must be >= {minimum}, got {val}")
            return val

        def as_optional_float(key, minimum=None):
            return None if sec.get(key) is None else as_float(key, minimum)

        window = pick('stability_window')
        if not isinstance(window, int) or isinstance(window, bool) or window < 1:
            raise ConfigError(f"tracker.stability_window must be a positive int, got {window!r}")
        attempts = sec.get('readiness_max_attempts')
        if attempts is not None and (not isinstance(attempts, int) or attempts < 1):
            raise ConfigError(f"tracker.readiness_max_attempts must be a positive int, got {attempts!r}")
        alpha = as_float('smoothing_alpha')
        if not (0.0 < alpha < 1.0):
            raise ConfigError(f"tracker.smoothing_alpha must be in (0, 1), got {alpha}")
        fov = as_optional_float('fov')
        if fov is not None and not (0.0 < fov < 180.0):
            raise ConfigError(f"tracker.fov must be in (0, 180) degrees, got {fov}")

        return cls(
            ui=bool(pick('ui')),
            smoothing=bool(pick('smoothing')),
            debug=sec.get('debug'),
            detection_interval_ms=as_float('detection_interval_ms', 0.0),
            retry_detection=bool(pick('retry_detection')),
            fov=fov,
            camera_offset=as_float('camera_offset'),
            calc_angles=bool(pick('calc_angles')),
            head_position=bool(pick('head_position')),
            hints_after_ms=as_float('hints_after_ms', 0.0),
            stability_window=window,
            stability_tolerance=as_float('stability_tolerance', 0.0),
            smoothing_alpha=alpha,
            smoothing_window_extra_ms=as_float('smoothing_window_extra_ms', 0.0),
            readiness_backoff_ms=as_float('readiness_backoff_ms', 0.0),
            readiness_max_attempts=attempts,
            tick_budget_warn_ms=as_optional_float('tick_budget_warn_ms', 0.0),
            run_in_thread=bool(pick('run_in_thread')),
        )
