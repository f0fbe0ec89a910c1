from __future__ import annotations
import math
import threading
import time
from typing import Callable, List, Optional

from .errors import NotReadyError, InvalidDebugTargetError, SchedulingError
from .facetracker import CascadeCamShiftTracker
from .headposition import HeadPositionEstimator
from .logger import EventLogger
from .monitor import PerformanceMonitor
from .options import TrackerOptions
from .overlay import StatusOverlay
from .poll_loop import PollLoop, ReadinessGate
from .session import SessionState
from .smoothing import DoubleExponentialSmoother
from .stability import StabilityWindow
from .status import StatusSink
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


COARSE_COLOR = (204, 0, 0)  # BGR blue
FINE_COLOR = (0, 204, 0)


class HeadTracker:
    """Session controller sequencing detection, tracking, smoothing and head position.

    Usage:
        tracker = HeadTracker()
        tracker.init(frame_source, config)
        tracker.start()
        ...
        tracker.stop()

    Each poll consumes one result from the face tracker and re-arms the next
    poll while the session is running. All state lives in `self.state` and is
    only touched while holding `self._lock`, so `stop()` may be called from
    another thread (e.g. a UI) while a tick is in flight.
    """

    def __init__(self,
                 face_tracker_factory: Optional[Callable] = None,
                 smoother_factory: Optional[Callable] = None,
                 pose_estimator_factory: Optional[Callable] = None,
                 overlay_factory: Optional[Callable] = None,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep,
                 logger: Optional[EventLogger] = None,
                 perf_monitor: Optional[PerformanceMonitor] = None):
        self.log = logger or EventLogger()
        self.clock = clock
        self._face_tracker_factory = face_tracker_factory or self._default_face_tracker
        self._smoother_factory = smoother_factory or self._default_smoother
        self._pose_estimator_factory = pose_estimator_factory or HeadPositionEstimator
        self._overlay_factory = overlay_factory or StatusOverlay
        self.perf = perf_monitor or PerformanceMonitor()

        self._lock = threading.RLock()
        self.poll_loop = PollLoop(clock=clock, sleep=sleep, logger=self.log)
        self.status_sink = StatusSink(logger=self.log)
        self.state = SessionState()
        self.options = TrackerOptions()
        self.config = None
        self.frame_source = None
        self.debug_target = None
        self.smoother = None
        self.overlay = None
        self._overlay_unsubscribe = None
        self.stability = StabilityWindow()
        self.gate: Optional[ReadinessGate] = None
        self.last_output: Optional[TickOutput] = None

        self._face_observers: List[Callable[[DetectionResult], None]] = []
        self._head_observers: List[Callable[[HeadPosition], None]] = []

    # --- Default collaborators ---
    def _default_face_tracker(self, frame_source, options: FaceTrackerOptions):
        section = self.config.get('facetracker') if self.config is not None else None
        return CascadeCamShiftTracker(frame_source, options, section)

    def _default_smoother(self, alpha: float, window_ms: float):
        return DoubleExponentialSmoother(alpha, window_ms, clock=self.clock)

    # --- Observers ---
    def on_status(self, callback: Callable[[str], None]) -> Callable[[], None]:
        return self.status_sink.subscribe(callback)

    def on_face(self, callback: Callable[[DetectionResult], None]) -> None:
        self._face_observers.append(callback)

    def on_head_position(self, callback: Callable[[HeadPosition], None]) -> None:
        self._head_observers.append(callback)

    def _publish(self, observers, value, what: str) -> None:
        for cb in list(observers):
            try:
                cb(value)
            except Exception as e:
                self.log.error(f"{what} observer failed: {e}")

    # --- Public surface ---
    @property
    def phase(self) -> SessionPhase:
        return self.state.phase

    def current_status(self) -> str:
        return self.status_sink.status

    def current_fov(self) -> Optional[float]:
        """Calibrated horizontal FOV in degrees, or None before the first bootstrap."""
        return self.state.calibrated_fov

    def init(self, frame_source, config=None) -> None:
        """Bind a frame source and configuration; UNINITIALIZED/STOPPED -> READY."""
        with self._lock:
            if self.state.running:
                raise SchedulingError("init() called on a running session; stop() it first")
            options = TrackerOptions.from_config(config)
            self._validate_frame_source(frame_source)
            self._validate_debug_target(options.debug)

            self.config = config
            self.options = options
            self.frame_source = frame_source
            self.debug_target = options.debug
            self.state = SessionState()
            self.stability = StabilityWindow(options.stability_window, options.stability_tolerance)
            self.smoother = self._smoother_factory(options.smoothing_alpha, options.smoothing_window_ms)
            self.gate = ReadinessGate(frame_source.probe_signal, options.readiness_max_attempts, logger=self.log)

            if self._overlay_unsubscribe is not None:
                self._overlay_unsubscribe()
                self._overlay_unsubscribe = None
                self.overlay = None
            if options.ui:
                self.overlay = self._overlay_factory()
                self._overlay_unsubscribe = self.status_sink.subscribe(self.overlay.on_status)

            self.state.phase = SessionPhase.READY
            self.log.info(
                f"initialized: {frame_source.width}x{frame_source.height}, "
                f"interval={options.detection_interval_ms:.0f}ms smoothing={options.smoothing} "
                f"retry={options.retry_detection} fov={options.fov}"
            )
            self.status_sink.emit(Status.GET_USER_MEDIA)

    def start(self) -> bool:
        """READY -> RUNNING; False when not initialized or already started."""
        if self.options.run_in_thread:
            self.poll_loop.wait_idle()
        with self._lock:
            if self.state.phase is not SessionPhase.READY:
                self.log.debug(f"start() ignored in phase {self.state.phase.value}")
                return False
            self.state.phase = SessionPhase.RUNNING
            self.gate.reset()
            self._arm(0.0, self._readiness_step)
        if self.options.run_in_thread:
            self.poll_loop.spawn()
        return True

    def stop(self) -> bool:
        """RUNNING -> STOPPED; idempotent."""
        with self._lock:
            if self.state.running:
                self._halt(self.status_sink.emit)
            return True

    def _halt(self, emit: Callable[[str], None]) -> None:
        self.poll_loop.cancel()
        self.state.release()
        self.state.phase = SessionPhase.STOPPED
        self.log.info(f"stopped; perf={self.perf.summary()}")
        emit(Status.STOPPED)

    # --- Scheduling ---
    def _arm(self, delay_ms: float, action: Callable[[], None]) -> None:
        if not self.state.running:
            raise SchedulingError(f"re-arm attempted in phase {self.state.phase.value}")
        self.poll_loop.call_later(delay_ms, action)

    def _readiness_step(self) -> None:
        with self._lock:
            if not self.state.running:
                return
            if self.gate.check():
                self.log.info(f"frame source ready after {self.gate.attempts} probe(s)")
                self._run_tick()
                return
            if self.gate.exhausted:
                self.log.error(f"frame source not ready after {self.gate.attempts} probes; giving up")
                self._halt(self.status_sink.emit)
                return
            self._arm(self.options.readiness_backoff_ms, self._readiness_step)

    def _tick(self) -> None:
        with self._lock:
            if not self.state.running:
                return
            self._run_tick()

    def _run_tick(self) -> None:
        self.last_output = self.step()
        if self.state.running:
            self._arm(self.options.detection_interval_ms, self._tick)

    # --- One tracking step ---
    def _spawn_face_tracker(self, whitebalancing: bool) -> None:
        opts = FaceTrackerOptions(
            debug=self.debug_target is not None,
            compute_angles=self.options.calc_angles,
            whitebalancing=whitebalancing,
        )
        self.state.face_tracker = self._face_tracker_factory(self.frame_source, opts)
        self.state.spawn_count += 1
        self.state.reset_lock()
        self.perf.count_spawn()
        self.log.debug(f"face tracker spawned (#{self.state.spawn_count}, whitebalancing={whitebalancing})")

    def step(self) -> TickOutput:
        """Consume one result from the face tracker. Caller holds the lock."""
        t_total0 = time.time()
        stats = PerformanceStats()
        emitted: List[str] = []

        def emit(status: str):
            emitted.append(status)
            self.status_sink.emit(status)

        if self.state.face_tracker is None:
            self._spawn_face_tracker(whitebalancing=True)

        t0 = time.time()
        try:
            self.state.face_tracker.track()
            result = self.state.face_tracker.get_result()
        except Exception as e:
            # Treated like an evidence-free frame; the next tick tries again
            self.log.error(f"face tracker failed: {e}")
            result = None
        finally:
            stats.t_track_ms = (time.time() - t0) * 1000.0

        head = None
        if result is not None:
            head = self._consume(result, emit, stats)

        stats.t_total_ms = (time.time() - t_total0) * 1000.0
        self.perf.record(stats)
        budget = self.options.tick_budget_warn_ms
        if budget is not None and stats.t_total_ms > budget:
            self.log.warning(f"tick took {stats.t_total_ms:.1f}ms (budget {budget:.1f}ms)")

        return TickOutput(
            result=result,
            statuses=tuple(emitted),
            head_position=head,
            perf=stats,
            debug={"spawn_count": float(self.state.spawn_count), "window_span": self.stability.span()},
        )

    def _consume(self, r: DetectionResult, emit, stats: PerformanceStats) -> Optional[HeadPosition]:
        st = self.state
        if r.mode is DetectionMode.WHITEBALANCING:
            emit(Status.WHITEBALANCE)
            return None

        if r.mode is DetectionMode.COARSE_DETECTED and not st.detecting_reported:
            st.detecting_reported = True
            emit(Status.DETECTING)

        # Evidence-free frame: never touches timers or flags
        if r.confidence == 0:
            return None

        if r.mode is DetectionMode.COARSE_DETECTED:
            now = self.clock()
            if st.detection_started_at is None:
                st.detection_started_at = now
            if (now - st.detection_started_at) * 1000.0 > self.options.hints_after_ms:
                emit(Status.HINTS)
            st.last_midpoint = r.midpoint
            if self.debug_target is not None:
                self.debug_target.stroke_rect(r.x, r.y, r.width, r.height, COARSE_COLOR)
            return None

        # FINE_TRACKED
        st.detection_started_at = None
        if r.is_lost:
            self.perf.count_loss()
            if self.options.retry_detection:
                emit(Status.REDETECTING)
                st.face_tracker = None
                self._spawn_face_tracker(whitebalancing=False)
            else:
                emit(Status.LOST)
                self._halt(emit)
            return None

        if self.debug_target is not None:
            self.debug_target.stroke_rotated_rect(r.x, r.y, r.width, r.height, r.angle - math.pi / 2.0, FINE_COLOR)

        if not st.face_found:
            st.face_found = True
            emit(Status.FOUND)

        sample = r
        if self.options.smoothing:
            t0 = time.time()
            if not st.smoothing_primed:
                self.smoother.init(sample)
                st.smoothing_primed = True
            sample = self.smoother.smooth(sample)
            stats.t_smooth_ms = (time.time() - t0) * 1000.0
        self._publish(self._face_observers, sample, "face")

        if not self.options.head_position:
            return None

        t0 = time.time()
        head = None
        self.stability.push(sample.diagonal)
        if not st.pose_tracker_active and self.stability.is_stable():
            self._bootstrap_pose(sample)
        if st.pose_tracker_active:
            head = st.pose_estimator.track(sample)
            self._publish(self._head_observers, head, "head position")
        stats.t_pose_ms = (time.time() - t0) * 1000.0
        return head

    def _bootstrap_pose(self, sample: DetectionResult) -> None:
        st = self.state
        fov = self.options.fov if st.calibrated_fov is None else st.calibrated_fov
        st.pose_estimator = self._pose_estimator_factory(
            sample,
            self.frame_source.width,
            self.frame_source.height,
            fov=fov,
            camera_offset=self.options.camera_offset,
            compute_angles=self.options.calc_angles,
        )
        if st.calibrated_fov is None:
            st.calibrated_fov = float(st.pose_estimator.get_fov())
            self.log.info(f"camera FOV calibrated: {st.calibrated_fov:.1f} deg")
        st.pose_tracker_active = True
        self.log.debug(f"head position tracker bootstrapped (window span {self.stability.span():.2f})")

    # --- Validation ---
    @staticmethod
    def _validate_frame_source(frame_source) -> None:
        if frame_source is None:
            raise NotReadyError("no frame source given")
        try:
            width = int(frame_source.width)
            height = int(frame_source.height)
        except (AttributeError, TypeError, ValueError) as e:
            raise NotReadyError(f"frame source has no drawable surface: {e}")
        if width <= 0 or height <= 0:
            raise NotReadyError(f"frame source has an empty surface: {width}x{height}")
        if not callable(getattr(frame_source, 'probe_signal', None)):
            raise NotReadyError("frame source cannot be probed")
        if not callable(getattr(frame_source, 'grab', None)):
            raise NotReadyError("frame source has no grab() method")

    @staticmethod
    def _validate_debug_target(target) -> None:
        if target is None:
            return
        for name in ('stroke_rect', 'stroke_rotated_rect'):
            if not callable(getattr(target, name, None)):
                raise InvalidDebugTargetError(f"debug target lacks {name}()")
