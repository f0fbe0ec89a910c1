"""
Head Tracking - command line preview
Runs the head tracker on a webcam (or alternative video) and shows the result
"""

import argparse
import logging
import sys

import cv2

from config import Config
from video_capture import VideoCapture
from head_tracking import EventLogger, FrameDebugCanvas, HeadTracker, NotReadyError, VideoFrameSource


def build_config(args) -> Config:
    cfg = Config()
    cfg.set('video', 'capture_index', args.camera)
    if args.alt_video:
        cfg.set('video', 'alt_video', {path.rsplit('.', 1)[-1].lower(): path for path in args.alt_video})
    cfg.set('tracker', 'smoothing', not args.no_smoothing)
    cfg.set('tracker', 'retry_detection', not args.no_retry)
    cfg.set('tracker', 'calc_angles', args.angles)
    if args.fov is not None:
        cfg.set('tracker', 'fov', args.fov)
    if args.interval is not None:
        cfg.set('tracker', 'detection_interval_ms', args.interval)
    return cfg


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description="Head tracking preview")
    parser.add_argument("--camera", type=int, default=0, help="Capture device index")
    parser.add_argument("--alt-video", action="append", default=[], help="Video file used when no camera is found (repeatable)")
    parser.add_argument("--fov", type=float, default=None, help="Horizontal camera FOV in degrees (default: estimate)")
    parser.add_argument("--interval", type=float, default=None, help="Detection interval in ms")
    parser.add_argument("--no-smoothing", action="store_true", help="Disable smoothing")
    parser.add_argument("--no-retry", action="store_true", help="Stop instead of re-detecting when the face is lost")
    parser.add_argument("--angles", action="store_true", help="Compute in-plane head angle")
    parser.add_argument("--debug", action="store_true", help="Draw detector/tracker boxes")
    parser.add_argument("--log-file", type=str, default=None, help="Path to session log file")
    parser.add_argument("--verbose", action="store_true", help="Echo debug logs to console")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s - %(levelname)s - %(message)s')
    log = EventLogger(name="head_app", log_file_path=args.log_file)
    cfg = build_config(args)

    capture = VideoCapture(cfg.get('video'), logger=log)
    source = VideoFrameSource(capture)
    if args.debug:
        cfg.set('tracker', 'debug', FrameDebugCanvas(source))

    tracker = HeadTracker(logger=log)
    tracker.on_status(lambda s: print(f"status: {s}"))
    tracker.on_head_position(lambda p: print(f"head x={p.x:6.1f} y={p.y:6.1f} z={p.z:6.1f} cm"))
    try:
        tracker.init(source, cfg)
    except NotReadyError as e:
        log.error(f"camera not ready: {e}")
        capture.release()
        return 1
    tracker.start()

    try:
        while True:
            frame = tracker.debug_target.take() if tracker.debug_target is not None else None
            if frame is None and source.latest_frame is not None:
                frame = source.latest_frame.copy()
            if frame is not None:
                if tracker.overlay is not None:
                    tracker.overlay.draw(frame)
                cv2.imshow("head tracking", frame)
            key = cv2.waitKey(15) & 0xFF
            if key in (ord('q'), 27):
                break
    except KeyboardInterrupt:
        print("KeyboardInterrupt received; closing...")
    finally:
        tracker.stop()
        tracker.poll_loop.wait_idle()
        capture.release()
        cv2.destroyAllWindows()
        log.info(f"fov={tracker.current_fov()} perf={tracker.perf.summary()}")
        log.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
