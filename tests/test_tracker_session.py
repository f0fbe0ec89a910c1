import pytest

from head_tracking import SessionPhase, Status, NotReadyError, InvalidDebugTargetError, SchedulingError
from helpers import (
    Harness, ScriptedFactory, DummySource,
    coarse, fine, lost, whitebalancing,
)


def test_init_moves_to_ready_and_reports_camera_wait():
    h = Harness(ScriptedFactory([fine()])).init()
    assert h.tracker.phase is SessionPhase.READY
    assert h.statuses == [Status.GET_USER_MEDIA]
    assert h.tracker.current_status() == Status.GET_USER_MEDIA
    assert h.tracker.current_fov() is None
    # Smoother window follows the poll interval
    assert h.smoothers[0].alpha == pytest.approx(0.35)
    assert h.smoothers[0].window_ms == pytest.approx(35.0)


def test_init_rejects_source_without_surface():
    h = Harness(ScriptedFactory([fine()]), source=DummySource(width=0, height=480))
    with pytest.raises(NotReadyError):
        h.init()
    assert h.tracker.phase is SessionPhase.UNINITIALIZED
    assert h.tracker.start() is False


def test_init_rejects_source_that_cannot_grab():
    class ProbeOnlySource:
        width = 640
        height = 480

        def probe_signal(self):
            return 100.0

    h = Harness(ScriptedFactory([fine()]), source=ProbeOnlySource())
    with pytest.raises(NotReadyError):
        h.init()
    assert h.tracker.phase is SessionPhase.UNINITIALIZED


def test_init_rejects_invalid_debug_target():
    h = Harness(ScriptedFactory([fine()]), overrides={'debug': object()})
    with pytest.raises(InvalidDebugTargetError):
        h.init()
    assert h.tracker.phase is SessionPhase.UNINITIALIZED


def test_start_only_from_ready():
    h = Harness(ScriptedFactory([fine()]))
    assert h.tracker.start() is False  # not initialized
    h.init().start()
    assert h.tracker.phase is SessionPhase.RUNNING
    assert h.tracker.start() is False  # already running
    h.tracker.stop()
    assert h.tracker.start() is False  # stopped sessions need a new init


def test_confidence_zero_frames_change_nothing():
    h = Harness(ScriptedFactory([fine(conf=0.0)])).init().start()
    h.run_ticks(5)
    assert h.ticks == 5
    assert h.statuses == [Status.GET_USER_MEDIA]
    assert h.tracker.phase is SessionPhase.RUNNING
    assert h.tracker.state.detection_started_at is None
    assert h.tracker.state.face_found is False


def test_empty_coarse_frames_report_detecting_once():
    h = Harness(ScriptedFactory([coarse(conf=0.0)])).init().start()
    h.run_ticks(5)
    assert h.statuses == [Status.GET_USER_MEDIA, Status.DETECTING]
    assert h.tracker.phase is SessionPhase.RUNNING
    # Still evidence-free: no timer, no lock
    assert h.tracker.state.detection_started_at is None
    assert h.tracker.state.last_midpoint is None
    assert h.tracker.state.face_found is False


def test_whitebalancing_reports_status_only():
    h = Harness(ScriptedFactory([whitebalancing()])).init().start()
    h.run_ticks(3)
    assert h.statuses[1:] == [Status.WHITEBALANCE] * 3
    assert h.tracker.state.face_found is False


def test_detecting_reported_once_per_spawn():
    h = Harness(ScriptedFactory([coarse()])).init().start()
    h.run_ticks(4)
    assert h.statuses.count(Status.DETECTING) == 1
    assert h.tracker.state.last_midpoint == (160.0, 150.0)


def test_hints_only_after_threshold():
    # 250 ms ticks keep the fake clock exact: tick k runs at (k-1) * 0.25 s
    h = Harness(ScriptedFactory([coarse()]), overrides={'detection_interval_ms': 250}).init().start()
    h.run_ticks(21)  # t = 5.0 s, elapsed not yet above 5000 ms
    assert Status.HINTS not in h.statuses
    h.run_ticks(1)   # t = 5.25 s
    assert h.statuses[-1] == Status.HINTS
    h.run_ticks(2)
    assert h.statuses.count(Status.HINTS) == 3


def test_fine_tracking_clears_detection_timer():
    h = Harness(ScriptedFactory([coarse(), coarse(), fine()])).init().start()
    h.run_ticks(2)
    assert h.tracker.state.detection_started_at is not None
    h.run_ticks(1)
    assert h.tracker.state.detection_started_at is None


def test_found_is_edge_triggered():
    h = Harness(ScriptedFactory([fine()] * 10)).init().start()
    h.run_ticks(10)
    assert h.statuses.count(Status.FOUND) == 1
    assert h.tracker.state.face_found is True


def test_pose_bootstraps_when_diagonal_is_stable():
    diags = [100, 102, 101, 103, 100, 102]
    h = Harness(ScriptedFactory([fine(d) for d in diags])).init().start()
    h.run_ticks(5)
    assert h.poses == []
    h.run_ticks(1)
    assert len(h.poses) == 1
    assert h.tracker.state.pose_tracker_active is True
    assert h.poses[0].frame_size == (640, 480)
    assert h.poses[0].camera_offset == pytest.approx(11.5)
    # The bootstrap sample is also fed to the new estimator
    assert len(h.poses[0].tracked) == 1
    assert len(h.heads) == 1


def test_pose_not_bootstrapped_when_diagonal_jitters():
    diags = [100, 110, 101, 103, 100, 102]
    h = Harness(ScriptedFactory([fine(d) for d in diags])).init().start()
    h.run_ticks(6)
    assert h.poses == []
    assert h.tracker.state.pose_tracker_active is False


def test_active_pose_tracker_receives_every_lock():
    h = Harness(ScriptedFactory([fine(100)] * 9)).init().start()
    h.run_ticks(9)
    assert len(h.poses) == 1
    assert len(h.poses[0].tracked) == 4


def test_head_position_disabled_never_bootstraps():
    h = Harness(ScriptedFactory([fine(100)] * 8), overrides={'head_position': False}).init().start()
    h.run_ticks(8)
    assert h.poses == []
    assert h.heads == []


def test_fov_override_is_used_and_recorded():
    h = Harness(ScriptedFactory([fine(100)] * 6), overrides={'fov': 62.0}).init().start()
    h.run_ticks(6)
    assert h.poses[0].fov_arg == pytest.approx(62.0)
    assert h.tracker.current_fov() == pytest.approx(62.0)


def test_fov_calibration_survives_retry():
    first = [fine(100)] * 6 + [lost()]
    second = [fine(150)] * 6
    h = Harness(ScriptedFactory(first, second)).init().start()
    h.run_ticks(6)
    fov = h.tracker.current_fov()
    assert h.poses[0].fov_arg is None
    assert fov == pytest.approx(46.0)

    h.run_ticks(1)  # lost -> retry
    assert Status.REDETECTING in h.statuses
    h.run_ticks(6)
    assert len(h.poses) == 2
    assert h.poses[1].fov_arg == pytest.approx(fov)
    assert h.tracker.current_fov() == pytest.approx(fov)


def test_stable_history_rebootstraps_right_after_retry():
    h = Harness(ScriptedFactory([fine(100)] * 6 + [lost()], [fine(100)])).init().start()
    h.run_ticks(6)
    assert len(h.poses) == 1
    h.run_ticks(1)  # lost -> retry
    assert h.tracker.state.pose_tracker_active is False
    h.run_ticks(1)
    assert len(h.poses) == 2
    assert h.poses[1].fov_arg == pytest.approx(h.tracker.current_fov())
    assert len(h.poses[1].tracked) == 1


def test_monitor_counts_spawns_and_losses():
    h = Harness(ScriptedFactory([fine(100), lost()], [fine(100), lost()], [fine(100)])).init().start()
    h.run_ticks(5)
    assert h.tracker.perf.spawns == 3
    assert h.tracker.perf.losses == 2
    summary = h.tracker.perf.summary()
    assert summary["ticks"] == 5
    assert summary["losses_per_1k_ticks"] == pytest.approx(400.0)


def test_loss_with_retry_spawns_fresh_tracker_without_whitebalancing():
    h = Harness(ScriptedFactory([fine(100)] * 3 + [lost()], [fine(100)])).init().start()
    h.run_ticks(4)
    st = h.tracker.state
    assert h.tracker.phase is SessionPhase.RUNNING
    assert st.face_found is False
    assert st.pose_tracker_active is False
    assert st.smoothing_primed is False
    assert len(h.factory.spawned) == 2
    assert h.factory.spawned[0].options.whitebalancing is True
    assert h.factory.spawned[1].options.whitebalancing is False
    assert h.factory.spawned[1].calls == 0

    h.run_ticks(1)
    assert h.factory.spawned[1].calls == 1
    assert h.statuses.count(Status.FOUND) == 2


def test_loss_without_retry_stops_session():
    h = Harness(ScriptedFactory([fine(100), lost(), fine(100)]), overrides={'retry_detection': False}).init().start()
    h.run_ticks(5)
    assert h.ticks == 2
    assert h.tracker.phase is SessionPhase.STOPPED
    assert h.statuses[-2:] == [Status.LOST, Status.STOPPED]
    assert h.tracker.poll_loop.pending is False
    assert h.tracker.state.face_tracker is None
    assert h.tracker.last_output.statuses == (Status.LOST, Status.STOPPED)


def test_stop_is_idempotent():
    h = Harness(ScriptedFactory([fine(100)])).init().start()
    h.run_ticks(2)
    assert h.tracker.stop() is True
    snapshot = (h.tracker.phase, h.tracker.state.face_found, h.tracker.poll_loop.pending)
    assert h.tracker.stop() is True
    assert (h.tracker.phase, h.tracker.state.face_found, h.tracker.poll_loop.pending) == snapshot
    assert h.statuses.count(Status.STOPPED) == 1
    assert h.tracker.state.face_tracker is None


def test_stop_halts_polling():
    h = Harness(ScriptedFactory([fine(100)])).init().start()
    h.run_ticks(3)
    h.tracker.stop()
    assert h.tracker.poll_loop.run_pending() is None
    h.run_ticks(3)
    assert h.ticks == 3


def test_rearm_after_stop_is_an_invariant_violation():
    h = Harness(ScriptedFactory([fine(100)])).init().start()
    h.run_ticks(1)
    h.tracker.stop()
    with pytest.raises(SchedulingError):
        h.tracker._arm(20, h.tracker._tick)


def test_reinit_after_stop_starts_a_new_session():
    h = Harness(ScriptedFactory([fine(100)] * 6)).init().start()
    h.run_ticks(6)
    assert h.tracker.current_fov() is not None
    h.tracker.stop()
    h.init()
    assert h.tracker.phase is SessionPhase.READY
    assert h.tracker.current_fov() is None
    assert h.tracker.start() is True


def test_init_while_running_is_rejected():
    h = Harness(ScriptedFactory([fine(100)])).init().start()
    with pytest.raises(SchedulingError):
        h.init()


def test_smoothing_primes_on_each_acquisition():
    h = Harness(ScriptedFactory([fine(100)] * 3 + [lost()], [fine(100)] * 2), smoother=True).init().start()
    h.run_ticks(3)
    sm = h.smoothers[0]
    assert len(sm.inits) == 1
    assert len(sm.smoothed) == 3  # priming sample goes through the filter too
    h.run_ticks(3)
    assert len(sm.inits) == 2
    assert len(sm.smoothed) == 5


def test_face_observer_sees_fine_locks_only():
    faces = []
    h = Harness(ScriptedFactory([coarse(), fine(100), lost()], [fine(100)])).init()
    h.tracker.on_face(faces.append)
    h.start().run_ticks(4)
    assert len(faces) == 2


def test_failing_observer_does_not_break_tick():
    h = Harness(ScriptedFactory([fine(100)] * 3)).init()

    def boom(_status):
        raise RuntimeError("observer bug")

    h.tracker.on_status(boom)
    h.start().run_ticks(3)
    assert h.ticks == 3
    assert Status.FOUND in h.statuses


def test_face_tracker_error_is_treated_as_empty_frame():
    class BrokenTracker:
        def __init__(self, *a):
            pass

        def track(self):
            raise RuntimeError("camera unplugged")

        def get_result(self):
            return None

    h = Harness(BrokenTracker).init().start()
    h.run_ticks(3)
    assert h.ticks == 3
    assert h.tracker.phase is SessionPhase.RUNNING
    assert h.tracker.last_output.result is None


def test_debug_target_receives_boxes():
    class RecordingTarget:
        def __init__(self):
            self.rects = []
            self.rotated = []

        def stroke_rect(self, x, y, w, h, color):
            self.rects.append((x, y, w, h))

        def stroke_rotated_rect(self, cx, cy, w, h, angle, color):
            self.rotated.append((cx, cy, w, h, angle))

    target = RecordingTarget()
    h = Harness(ScriptedFactory([coarse(), fine(100)]), overrides={'debug': target}).init().start()
    h.run_ticks(2)
    assert target.rects == [(100.0, 80.0, 120.0, 140.0)]
    assert len(target.rotated) == 1
    assert h.factory.spawned[0].options.debug is True


def test_ui_overlay_follows_status():
    h = Harness(ScriptedFactory([fine(100)]), overrides={'ui': True}).init().start()
    h.run_ticks(1)
    assert h.tracker.overlay is not None
    assert h.tracker.overlay.message == "Face found! Move your head!"
