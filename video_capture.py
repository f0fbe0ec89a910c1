from typing import Optional, Tuple, Dict, Any, List
import cv2
import numpy as np
import queue
import threading
import time
import os


BACKENDS = {
    'ANY': cv2.CAP_ANY,
    'DSHOW': cv2.CAP_DSHOW,
    'MSMF': cv2.CAP_MSMF,
    'V4L2': cv2.CAP_V4L2,
}

# Tried in this order when several alternative videos are configured
ALT_VIDEO_FORMATS = ('mp4', 'webm', 'ogv', 'avi', 'mov')


class VideoCapture:
    """Threaded OpenCV capture with backend/fourcc tuning, watchdog, and alt-video fallback.

    Expects cfg keys: capture_index, width, height, fps, backend, fourcc, buffersize,
    and optionally alt_video ({format: path_or_url}) used when the camera can't be opened.
    Public API: get_frame(), get_status(), release().
    """

    def __init__(self, cfg: Dict[str, Any], logger=None):
        self.index = int(cfg.get('capture_index', 0))
        self.width = int(cfg.get('width', 640))
        self.height = int(cfg.get('height', 480))
        self.target_fps = float(cfg.get('fps', 30))
        self.backend = (cfg.get('backend') or 'ANY').upper()
        self.fourcc = (cfg.get('fourcc') or 'MJPG').upper()
        # Small queue keeps latency low; older frames are dropped
        self.buffersize = int(cfg.get('buffersize', 2))
        self.alt_video: Dict[str, str] = dict(cfg.get('alt_video') or {})
        self.loop_alt_video = bool(cfg.get('loop_alt_video', True))
        # Hold last frame for short dropouts
        self.dropout_hold_ms = int(cfg.get('dropout_hold_ms', 200))
        # Watchdog: reopen after N consecutive read failures
        self.reinit_fail_threshold = int(cfg.get('reinit_fail_threshold', 30))
        self.log = logger

        try:
            cv2.setUseOptimized(True)
            cv2.setNumThreads(max(2, os.cpu_count() or 2))
        except cv2.error:
            pass

        # Runtime state
        self.cap: Optional[cv2.VideoCapture] = None
        self.source: str = "none"
        self._queue: queue.Queue = queue.Queue(maxsize=max(1, self.buffersize))
        self._running = True
        self._capture_thread: Optional[threading.Thread] = None
        self._watchdog_thread: Optional[threading.Thread] = None
        self._last_frame: Optional[np.ndarray] = None
        self._last_frame_ts = 0.0
        self._fps_count = 0
        self._fps_start = time.time()
        self._fail_count = 0
        self._reinit_attempts = 0

        if not self._open_camera(self.index, self.backend):
            self._open_alt_video()

        self._capture_thread = threading.Thread(target=self._capture_loop, daemon=True)
        self._capture_thread.start()
        self._watchdog_thread = threading.Thread(target=self._watchdog_loop, daemon=True)
        self._watchdog_thread.start()

    def _info(self, msg: str) -> None:
        if self.log is not None:
            self.log.info(msg)

    def _open_camera(self, index: int, backend: str) -> bool:
        """Open camera with backend and apply tuned properties; return success."""
        cap = cv2.VideoCapture(index, BACKENDS.get(backend.upper(), cv2.CAP_ANY))
        if not cap or not cap.isOpened():
            self._info(f"camera {index} ({backend}) not available")
            return False
        # Some backends ignore certain properties; the read size wins anyway
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(self.width))
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(self.height))
        cap.set(cv2.CAP_PROP_FPS, float(self.target_fps))
        cap.set(cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*self.fourcc))
        cap.set(cv2.CAP_PROP_BUFFERSIZE, int(self.buffersize))
        self._swap(cap, f"camera:{index}")
        return True

    def alt_video_candidates(self) -> List[str]:
        known = [self.alt_video[f] for f in ALT_VIDEO_FORMATS if f in self.alt_video]
        others = [v for f, v in self.alt_video.items() if f not in ALT_VIDEO_FORMATS]
        return known + others

    def _open_alt_video(self) -> bool:
        for path in self.alt_video_candidates():
            cap = cv2.VideoCapture(path)
            if cap and cap.isOpened():
                self._swap(cap, f"file:{path}")
                self._info(f"using alternative video {path}")
                return True
        if self.alt_video:
            self._info("no alternative video could be opened")
        return False

    def _swap(self, cap: cv2.VideoCapture, source: str) -> None:
        self._close_capture()
        self.cap = cap
        self.source = source
        w = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
        h = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
        if w > 0 and h > 0:
            self.width, self.height = w, h
        self._fail_count = 0

    def _close_capture(self) -> None:
        try:
            if self.cap:
                self.cap.release()
        finally:
            self.cap = None

    @property
    def is_file(self) -> bool:
        return self.source.startswith("file:")

    def _capture_loop(self):
        frame_period = 1.0 / max(1.0, self.target_fps)
        while self._running:
            ok, frame = (self.cap.read() if self.cap else (False, None))
            if not ok and self.is_file and self.loop_alt_video and self.cap:
                # Rewind the clip and keep playing
                self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
                ok, frame = self.cap.read()

            now = time.time()
            if ok and frame is not None:
                self._fps_count += 1
                self._fail_count = 0
                self._last_frame = frame
                self._last_frame_ts = now
                self._put(frame)
            else:
                self._fail_count += 1
                hold_ok = (self._last_frame is not None) and ((now - self._last_frame_ts) * 1000.0 < self.dropout_hold_ms)
                if hold_ok:
                    self._put(self._last_frame)
                else:
                    time.sleep(0.01)

            # Files read as fast as possible; pace them like a camera
            if self.is_file:
                time.sleep(frame_period)

    def _put(self, frame: np.ndarray) -> None:
        if self._queue.full():
            try:
                self._queue.get_nowait()
            except queue.Empty:
                pass
        try:
            self._queue.put_nowait(frame)
        except queue.Full:
            pass

    def _watchdog_loop(self):
        """Reopen the device after persistent read failures."""
        while self._running:
            time.sleep(0.5)
            if self._fail_count < self.reinit_fail_threshold:
                continue
            self._reinit_attempts += 1
            self._info(f"capture stalled ({self._fail_count} failed reads); reopening")
            if not self._open_camera(self.index, self.backend):
                self._open_alt_video()
            self._fail_count = 0

    def _current_fps(self) -> float:
        now = time.time()
        elapsed = max(1e-3, now - self._fps_start)
        fps = float(self._fps_count) / elapsed
        if elapsed >= 1.0:
            self._fps_start = now
            self._fps_count = 0
        return fps

    def get_frame(self, timeout: float = 0.05) -> Tuple[bool, Optional[np.ndarray]]:
        if not self._running:
            return False, None
        try:
            return True, self._queue.get(timeout=timeout)
        except queue.Empty:
            return False, None

    def get_status(self) -> Dict[str, Any]:
        return {
            'connected': bool(self.cap and self.cap.isOpened()),
            'source': self.source,
            'resolution': (self.width, self.height),
            'fps_target': self.target_fps,
            'fps_measured': self._current_fps(),
            'backend': self.backend,
            'fourcc': self.fourcc,
            'fail_count': self._fail_count,
            'reinit_attempts': self._reinit_attempts,
        }

    def release(self) -> None:
        self._running = False
        for t in (self._capture_thread, self._watchdog_thread):
            if t:
                t.join(timeout=0.5)
        self._close_capture()
        while not self._queue.empty():
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
