"""
Minimum-Jerk Trajectory Generator

Synthesizes a human-like pointer path to a click target using the
quintic minimum-jerk time scaling:

    p(t) = p0 + (p1 - p0) * (10t^3 - 15t^4 + 6t^5)

Texture added on top of the curve:
- speed from a 900 px/s base, scaled by the pacing multiplier and jittered
- sub-pixel jitter orthogonal to the path
- short hotspot pauses after 85% progress
- two settle points, the last exactly on the target

Pure math: no I/O, pauses are returned, not slept.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np


# =============================================================================
# Generator Constants
# =============================================================================

BASE_SPEED_PX_PER_S = 900.0
SPEED_MULTIPLIER_RANGE = (0.8, 1.8)
SPEED_JITTER_RANGE = (0.85, 1.15)
SPEED_CLAMP_PX_PER_S = (500.0, 1600.0)

DURATION_CLAMP_S = (0.18, 1.6)
STEP_MS_RANGE = (10, 16)           # high exclusive
MIN_STEPS = 6

ORTHO_JITTER_PX = 0.8              # peak-to-peak
HOTSPOT_PROGRESS = 0.85
HOTSPOT_PAUSE_MS = (12, 28)        # high exclusive

SETTLE_JITTER_PX = 0.5
SETTLE_PAUSE_MS = ((25, 45), (20, 35))

UNKNOWN_START_RANGE = (80, 160)    # high exclusive


@dataclass(frozen=True)
class TrajectoryPoint:
    """One pointer move target and the pause suggested after reaching it."""
    x: float
    y: float
    pause_ms: int = 0


class MinimumJerkTrajectoryGenerator:
    """
    Minimum-jerk pointer path generator.

    Pass a seeded numpy Generator for reproducible paths.
    """

    def __init__(self, rng: Optional[np.random.Generator] = None) -> None:
        self.rng = rng or np.random.default_rng()

    def generate(
        self,
        start: Optional[Tuple[float, float]],
        end: Tuple[float, float],
        speed_multiplier: float = 1.0,
    ) -> List[TrajectoryPoint]:
        """
        Generate a path from start (None = unknown) to end.

        Returns:
            Points in order; a single point when start and end are closer
            than one pixel.
        """
        if start is None:
            start = (
                float(self.rng.integers(*UNKNOWN_START_RANGE)),
                float(self.rng.integers(*UNKNOWN_START_RANGE)),
            )

        p0 = np.asarray(start, dtype=float)
        p1 = np.asarray(end, dtype=float)
        delta = p1 - p0
        dist = float(np.hypot(delta[0], delta[1]))
        if dist < 1.0:
            return [TrajectoryPoint(float(p1[0]), float(p1[1]), 0)]

        speed = (
            BASE_SPEED_PX_PER_S
            * float(np.clip(speed_multiplier, *SPEED_MULTIPLIER_RANGE))
            * self.rng.uniform(*SPEED_JITTER_RANGE)
        )
        speed = float(np.clip(speed, *SPEED_CLAMP_PX_PER_S))
        duration = float(np.clip(dist / speed, *DURATION_CLAMP_S))

        step_ms = int(self.rng.integers(*STEP_MS_RANGE))
        steps = max(MIN_STEPS, int(np.ceil(duration * 1000 / step_ms)))

        # Vectorized quintic time scaling
        t = np.arange(1, steps + 1, dtype=float) / steps
        tau = 10 * t**3 - 15 * t**4 + 6 * t**5

        ortho = np.array([-delta[1], delta[0]]) / dist
        jitter = (self.rng.random(steps) - 0.5) * ORTHO_JITTER_PX
        xs = p0[0] + delta[0] * tau + ortho[0] * jitter
        ys = p0[1] + delta[1] * tau + ortho[1] * jitter

        pauses = np.where(
            t > HOTSPOT_PROGRESS,
            self.rng.integers(*HOTSPOT_PAUSE_MS, size=steps),
            0,
        )

        points = [
            TrajectoryPoint(float(x), float(y), int(p))
            for x, y, p in zip(xs, ys, pauses)
        ]

        # Settle: micro-jitter near the target, then exactly on it
        settle_x, settle_y = p1 + (self.rng.random(2) - 0.5) * SETTLE_JITTER_PX
        points.append(TrajectoryPoint(float(settle_x), float(settle_y), int(self.rng.integers(*SETTLE_PAUSE_MS[0]))))
        points.append(TrajectoryPoint(float(p1[0]), float(p1[1]), int(self.rng.integers(*SETTLE_PAUSE_MS[1]))))
        return points
