"""
Pacing Advisor

Delay multiplier that reacts to hostile HTTP responses and round-trip
times, then decays back to 1.0 with a configurable half-life:

    multiplier(t) = 1 + (base - 1) * 0.5 ** (elapsed / half_life)

429 raises the base to 2.5, 403 to 2.0 (both capped by max_multiplier).
Slow RTTs (> 2 s) nudge the base up by 0.2, fast ones (< 300 ms) down by
0.1. The click engine divides its trajectory speed by the current
multiplier.
"""

import threading
import time
from datetime import timedelta
from typing import Callable, Dict, Iterable

from core.schemas.outputs import PacingProfile


# =============================================================================
# Advisor Constants
# =============================================================================

HTTP_429_MULTIPLIER = 2.5
HTTP_403_MULTIPLIER = 2.0
MAX_MULTIPLIER = 3.0
HALF_LIFE_SECONDS = 60.0
MIN_HALF_LIFE_SECONDS = 10.0

SLOW_RTT_MS = 2000.0
FAST_RTT_MS = 300.0
SLOW_RTT_NUDGE = 0.2
FAST_RTT_NUDGE = -0.1

PROFILE_MULTIPLIERS: Dict[PacingProfile, float] = {
    PacingProfile.AGGRESSIVE: 0.85,
    PacingProfile.NORMAL: 1.0,
    PacingProfile.CONSERVATIVE: 1.6,
}


def profile_multiplier(profile: PacingProfile, max_multiplier: float = MAX_MULTIPLIER) -> float:
    """Base delay multiplier for a pacing profile; Paused maps to the maximum."""
    if profile == PacingProfile.PAUSED:
        return max_multiplier
    return min(PROFILE_MULTIPLIERS[profile], max_multiplier)


class PacingAdvisor:
    """
    Thread-safe delay multiplier with exponential decay.

    Attributes:
        max_multiplier: Upper bound of the multiplier, in [1, 5].
        half_life_seconds: Decay half-life, at least 10 s.
    """

    def __init__(
        self,
        http_429_multiplier: float = HTTP_429_MULTIPLIER,
        http_403_multiplier: float = HTTP_403_MULTIPLIER,
        max_multiplier: float = MAX_MULTIPLIER,
        half_life_seconds: float = HALF_LIFE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_multiplier = min(max(max_multiplier if max_multiplier > 0 else 2.5, 1.0), 5.0)
        self._base_429 = min(self.max_multiplier, http_429_multiplier if http_429_multiplier > 0 else HTTP_429_MULTIPLIER)
        self._base_403 = min(self.max_multiplier, http_403_multiplier if http_403_multiplier > 0 else HTTP_403_MULTIPLIER)
        self.half_life_seconds = max(MIN_HALF_LIFE_SECONDS, half_life_seconds if half_life_seconds > 0 else HALF_LIFE_SECONDS)

        self._clock = clock
        self._lock = threading.Lock()
        self._last_signal_at = clock()
        self._last_base = 1.0

    def notify_http_status(self, status_code: int) -> None:
        """Raise the multiplier on 429 / 403; other codes are ignored."""
        if status_code not in (429, 403):
            return
        with self._lock:
            self._last_signal_at = self._clock()
            self._last_base = self._base_429 if status_code == 429 else self._base_403

    def notify_status_codes(self, status_codes: Iterable[int]) -> None:
        for code in status_codes:
            self.notify_http_status(code)

    def observe_rtt(self, rtt: timedelta) -> None:
        if rtt <= timedelta(0):
            return
        rtt_ms = rtt.total_seconds() * 1000
        nudge = 0.0
        if rtt_ms > SLOW_RTT_MS:
            nudge = SLOW_RTT_NUDGE
        elif rtt_ms < FAST_RTT_MS:
            nudge = FAST_RTT_NUDGE
        with self._lock:
            self._last_base = min(max(self._last_base + nudge, 1.0), self.max_multiplier)

    @property
    def current_multiplier(self) -> float:
        with self._lock:
            if self._last_base <= 1.0:
                return 1.0
            elapsed = max(self._clock() - self._last_signal_at, 0.0)
            factor = 0.5 ** (elapsed / self.half_life_seconds)
            multiplier = 1.0 + (self._last_base - 1.0) * factor
            return min(max(multiplier, 1.0), self.max_multiplier)
