"""
Trajectory Generator Tests

Tests the minimum-jerk pointer path:
- Endpoint exactness and settle points
- Minimum step count
- Hotspot pauses only near the end
- Reproducibility with a seeded numpy Generator
"""

import numpy as np
import pytest

from core.processors.trajectory import (
    MIN_STEPS,
    MinimumJerkTrajectoryGenerator,
    TrajectoryPoint,
)


@pytest.fixture
def generator():
    return MinimumJerkTrajectoryGenerator(np.random.default_rng(42))


class TestTrajectoryShape:
    """Endpoints, step counts and pauses."""

    def test_ends_exactly_on_target(self, generator):
        path = generator.generate((10.0, 10.0), (400.0, 300.0))

        assert (path[-1].x, path[-1].y) == (400.0, 300.0)
        assert 20 <= path[-1].pause_ms < 35

    def test_settle_point_near_target(self, generator):
        path = generator.generate((10.0, 10.0), (400.0, 300.0))
        settle = path[-2]

        assert abs(settle.x - 400.0) <= 0.25
        assert abs(settle.y - 300.0) <= 0.25
        assert 25 <= settle.pause_ms < 45

    def test_minimum_steps_for_short_moves(self, generator):
        """Even a 5 px move has at least MIN_STEPS curve points plus 2 settle points."""
        path = generator.generate((100.0, 100.0), (105.0, 100.0))

        assert len(path) >= MIN_STEPS + 2

    def test_sub_pixel_move_is_single_point(self, generator):
        path = generator.generate((100.0, 100.0), (100.4, 100.3))

        assert path == [TrajectoryPoint(100.4, 100.3, 0)]

    def test_hotspot_pauses_only_near_end(self, generator):
        path = generator.generate((0.0, 0.0), (800.0, 0.0))
        curve = path[:-2]
        steps = len(curve)

        for i, point in enumerate(curve, start=1):
            if i / steps <= 0.85:
                assert point.pause_ms == 0
            else:
                assert 12 <= point.pause_ms < 28

    def test_progress_is_monotonic_along_path(self, generator):
        """Orthogonal jitter never reverses progress along a horizontal path."""
        path = generator.generate((0.0, 0.0), (600.0, 0.0))
        xs = [p.x for p in path[:-2]]

        assert xs == sorted(xs)

    def test_unknown_start_uses_random_origin(self, generator):
        path = generator.generate(None, (500.0, 500.0))

        assert len(path) > MIN_STEPS
        assert (path[-1].x, path[-1].y) == (500.0, 500.0)


class TestTrajectoryDeterminism:
    """Seeded generators reproduce paths; speed changes the step count."""

    def test_same_seed_same_path(self):
        a = MinimumJerkTrajectoryGenerator(np.random.default_rng(1)).generate((0, 0), (300, 200))
        b = MinimumJerkTrajectoryGenerator(np.random.default_rng(1)).generate((0, 0), (300, 200))

        assert a == b

    def test_slower_speed_more_points(self):
        fast = MinimumJerkTrajectoryGenerator(np.random.default_rng(3)).generate((0, 0), (500, 0), 1.8)
        slow = MinimumJerkTrajectoryGenerator(np.random.default_rng(3)).generate((0, 0), (500, 0), 0.8)

        assert len(slow) > len(fast)
