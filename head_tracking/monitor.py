from __future__ import annotations
from collections import deque
from .types import PerformanceStats


class PerformanceMonitor:
    """Recent per-tick stage timings plus session counters.

    `spawns` counts face trackers created (the first one and every retry),
    `losses` counts fine-tracking locks that collapsed. Together with the
    timings they tell whether the poll interval or the lighting is the problem.
    """

    def __init__(self, history_len: int = 200):
        self.track_ms = deque(maxlen=history_len)
        self.smooth_ms = deque(maxlen=history_len)
        self.pose_ms = deque(maxlen=history_len)
        self.total_ms = deque(maxlen=history_len)
        self.ticks = 0
        self.spawns = 0
        self.losses = 0

    def record(self, stats: PerformanceStats):
        self.ticks += 1
        self.track_ms.append(stats.t_track_ms)
        self.smooth_ms.append(stats.t_smooth_ms)
        self.pose_ms.append(stats.t_pose_ms)
        self.total_ms.append(stats.t_total_ms)

    def count_spawn(self):
        self.spawns += 1

    def count_loss(self):
        self.losses += 1

    def summary(self) -> dict:
        def avg(q):
            return float(sum(q) / len(q)) if q else 0.0
        return {
            "ticks": self.ticks,
            "spawns": self.spawns,
            "losses": self.losses,
            "losses_per_1k_ticks": 1000.0 * self.losses / self.ticks if self.ticks else 0.0,
            "avg_track_ms": avg(self.track_ms),
            "avg_smooth_ms": avg(self.smooth_ms),
            "avg_pose_ms": avg(self.pose_ms),
            "avg_total_ms": avg(self.total_ms),
            "max_total_ms": max(self.total_ms) if self.total_ms else 0.0,
        }
