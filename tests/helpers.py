from config import Config
from head_tracking import HeadTracker, DetectionMode, DetectionResult, HeadPosition


class FakeClock:
    def __init__(self, start=0.0):
        self.now = float(start)

    def time(self):
        return self.now

    def sleep(self, seconds):
        self.now += max(0.0, float(seconds))


class DummySource:
    def __init__(self, width=640, height=480, signals=(100.0,)):
        self.width = width
        self.height = height
        self.signals = list(signals)
        self.probes = 0

    def probe_signal(self):
        idx = min(self.probes, len(self.signals) - 1)
        self.probes += 1
        value = self.signals[idx]
        if isinstance(value, Exception):
            raise value
        return value

    def grab(self):
        return None


class ScriptedFaceTracker:
    """Replays a list of results, repeating the last one."""
    def __init__(self, results, options):
        self.results = list(results)
        self.options = options
        self.calls = 0

    def track(self):
        self.calls += 1

    def get_result(self):
        return self.results[min(self.calls, len(self.results)) - 1]


class ScriptedFactory:
    """Hands out one script per spawn; the last script is reused."""
    def __init__(self, *scripts):
        self.scripts = [list(s) for s in scripts]
        self.spawned = []

    def __call__(self, frame_source, options):
        script = self.scripts[min(len(self.spawned), len(self.scripts) - 1)]
        tracker = ScriptedFaceTracker(script, options)
        self.spawned.append(tracker)
        return tracker


class DummyPose:
    def __init__(self, sample, frame_width, frame_height, fov=None, camera_offset=11.5, compute_angles=False):
        self.fov_arg = fov
        # Estimated FOV depends on the bootstrap sample so a recompute would show
        self.fov = float(fov) if fov is not None else 40.0 + sample.width / 10.0
        self.frame_size = (frame_width, frame_height)
        self.camera_offset = camera_offset
        self.tracked = []

    def get_fov(self):
        return self.fov

    def track(self, sample):
        self.tracked.append(sample)
        return HeadPosition(x=sample.x, y=sample.y, z=60.0)


class DummySmoother:
    def __init__(self, alpha, window_ms):
        self.alpha = alpha
        self.window_ms = window_ms
        self.inits = []
        self.smoothed = []

    def init(self, sample):
        self.inits.append(sample)

    def smooth(self, sample):
        self.smoothed.append(sample)
        return sample


def coarse(conf=1.0, x=100.0, y=80.0, w=120.0, h=140.0):
    return DetectionResult(mode=DetectionMode.COARSE_DETECTED, confidence=conf, x=x, y=y, width=w, height=h)


def fine(diag=100.0, conf=1.0, x=320.0, y=240.0):
    # 3-4-5 triangle keeps the diagonal exact
    return DetectionResult(mode=DetectionMode.FINE_TRACKED, confidence=conf, x=x, y=y,
                           width=0.6 * diag, height=0.8 * diag, angle=1.5707963)


def lost():
    return DetectionResult(mode=DetectionMode.FINE_TRACKED, confidence=1.0, width=0.0, height=0.0)


def whitebalancing():
    return DetectionResult(mode=DetectionMode.WHITEBALANCING, confidence=0.0)


class Harness:
    """HeadTracker wired to scripted collaborators and a fake clock, driven in-thread."""

    def __init__(self, factory, overrides=None, source=None, smoother=False):
        self.clock = FakeClock()
        self.factory = factory
        self.poses = []
        self.smoothers = []
        self.statuses = []
        self.heads = []
        self.cfg = Config()
        self.cfg.set('tracker', 'run_in_thread', False)
        self.cfg.set('tracker', 'ui', False)
        self.cfg.set('tracker', 'smoothing', smoother)
        for key, val in (overrides or {}).items():
            self.cfg.set('tracker', key, val)
        self.source = source or DummySource()
        self.tracker = HeadTracker(
            face_tracker_factory=factory,
            smoother_factory=self._make_smoother,
            pose_estimator_factory=self._make_pose,
            clock=self.clock.time,
            sleep=self.clock.sleep,
        )
        self.tracker.on_status(self.statuses.append)
        self.tracker.on_head_position(self.heads.append)

    def _make_pose(self, *args, **kwargs):
        pose = DummyPose(*args, **kwargs)
        self.poses.append(pose)
        return pose

    def _make_smoother(self, alpha, window_ms):
        sm = DummySmoother(alpha, window_ms)
        self.smoothers.append(sm)
        return sm

    def init(self):
        self.tracker.init(self.source, self.cfg)
        return self

    def start(self):
        assert self.tracker.start() is True
        return self

    @property
    def ticks(self):
        return self.tracker.perf.ticks

    def run_ticks(self, n):
        """Advance the fake clock until `n` more ticks have run (or nothing is pending)."""
        target = self.ticks + n
        while self.ticks < target:
            delay = self.tracker.poll_loop.run_pending()
            if self.ticks >= target or delay is None:
                break
            self.clock.sleep(delay)
        return self
