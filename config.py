from typing import Any, Dict


class Config:
    """Minimal config shim providing nested dict access via get/set.

    Defaults chosen to run out-of-the-box against a laptop webcam.
    """

    def __init__(self):
        self._cfg: Dict[str, Dict[str, Any]] = {
            'video': {
                'capture_index': 0,
                'width': 640,
                'height': 480,
                'fps': 30,
                'backend': 'ANY',    # ANY | DSHOW | MSMF | V4L2
                'fourcc': 'MJPG',
                'buffersize': 2,
                # Files tried in order when the camera cannot be opened, e.g.
                # {'mp4': 'clip.mp4', 'webm': 'clip.webm'}
                'alt_video': None,
                'loop_alt_video': True,
            },
            'tracker': {
                'ui': True,
                'smoothing': True,
                'debug': None,
                'detection_interval_ms': 20,
                'retry_detection': True,
                'fov': None,              # horizontal FOV in degrees; None = estimate
                'camera_offset': 11.5,    # cm from camera to screen centre
                'calc_angles': False,
                'head_position': True,
                'hints_after_ms': 5000,
                'stability_window': 6,
                'stability_tolerance': 5.0,
                'smoothing_alpha': 0.35,
                'smoothing_window_extra_ms': 15,
                'readiness_backoff_ms': 100,
                'readiness_max_attempts': None,  # None = wait until stop()
                'tick_budget_warn_ms': None,
                'run_in_thread': True,
            },
            'facetracker': {
                'whitebalance_frames': 10,
                'cascade_scale_factor': 1.1,
                'cascade_min_neighbors': 5,
                'min_face_px': 40,
                'min_saturation': 60,
                'min_value': 32,
                'max_value': 255,
                'lost_min_px': 8,
                # Cascade stage weight needed before CamShift takes over
                'handoff_min_weight': 3.0,
            },
        }

    def get(self, section: str, key: str = None):
        sec = self._cfg.get(section, {})
        if key is None:
            return sec
        return sec.get(key)

    def set(self, section: str, key: str, value: Any) -> None:
        self._cfg.setdefault(section, {})[key] = value
