"""
Adaptive Pacing Orchestrator

Feedback loop of the anti-detection control plane. Every observation
Signal is folded into its context's sliding window; the window's 429 /
403 / captcha rates decide the next pacing Adjustment.

Decision Layers:
    Escalate → Recover → Promote → Hold, then the Pause override

Adjustments are debounced: an unchanged decision is persisted at most
once per minimum_adjustment_interval, but the live decision is always
returned to the caller. The state document (window + EWMA) is rewritten
on every call.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from core.config import OrchestratorSettings
from core.errors import ValidationError
from core.schemas.inputs import Signal, ordered_unique, utc_now
from core.schemas.outputs import Adjustment, PacingProfile
from core.state_manager import ContextGateRegistry
from persistence.audit_logger import AuditLogger
from persistence.context_repository import ContextRepository, ContextState
from persistence.document_store import DocumentStore


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Human-likeness smoothing
EWMA_ALPHA = 0.2

# Severe anomaly thresholds (pause override)
PAUSE_403_RATE = 0.12
PAUSE_CAPTCHA_RATE = 0.08

# Captcha weight in the confidence formula
CAPTCHA_CONFIDENCE_WEIGHT = 0.5

# Reason fragments
REASON_RECOVERED = "metrics recovered, back to normal pacing"
REASON_CLEAN_WINDOW = "sustained clean window, promoting to aggressive pacing"
REASON_SEVERE = "severe anomaly, pause for review"


# =============================================================================
# Orchestrator
# =============================================================================

class AdaptivePacingOrchestrator:
    """
    Owns every ContextState and produces one Adjustment per record() call.

    Callers never receive live state: get_state() and
    get_recent_adjustments() return freshly loaded copies.
    """

    def __init__(
        self,
        store: DocumentStore,
        settings: Optional[OrchestratorSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        audit_logger: Optional[AuditLogger] = None,
    ) -> None:
        self.settings = settings or OrchestratorSettings()
        self.repo = ContextRepository(store, self.settings)
        self.gates = ContextGateRegistry()
        self.audit_logger = audit_logger
        self._clock = clock or utc_now

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def record(self, signal: Signal) -> Adjustment:
        """
        Fold a signal into its context and return the resulting decision.

        Raises:
            ValidationError: blank context id (nothing is mutated).
            PersistenceError: the store failed; the decision may not be saved.
        """
        context_id = self._require_context_id(signal.context_id)

        async with self.gates.gate(context_id):
            state = await self.repo.load_state(context_id)
            if state is None:
                state = ContextState(context_id=context_id, workflow=signal.workflow)
                logger.info(f"Context state created: {context_id} ({signal.workflow})")

            self._upsert_signal(state, signal)
            adjustment = self._build_adjustment(state, signal)
            await self._persist(state, adjustment)

        return adjustment

    async def get_state(self, context_id: str) -> Optional[ContextState]:
        """Read-only snapshot of a context, None if never recorded."""
        return await self.repo.load_state(self._require_context_id(context_id))

    async def get_recent_adjustments(self, context_id: str, take: int = 5) -> List[Adjustment]:
        """Persisted adjustments, newest first, at most min(take, history_depth)."""
        state = await self.repo.load_state(self._require_context_id(context_id))
        if state is None:
            return []
        take = max(1, min(take, self.settings.history_depth))
        newest_first = sorted(state.history, key=lambda a: a.issued_at, reverse=True)
        return newest_first[:take]

    # -------------------------------------------------------------------------
    # Window
    # -------------------------------------------------------------------------

    @staticmethod
    def _require_context_id(context_id: str) -> str:
        if not context_id or not context_id.strip():
            raise ValidationError("context_id must not be empty")
        return context_id

    def _upsert_signal(self, state: ContextState, signal: Signal) -> None:
        if not state.workflow.strip():
            state.workflow = signal.workflow

        window = sorted([*state.signals, signal], key=lambda s: s.observed_at)
        state.signals = window[-self.settings.sliding_window:]

        smoothed = state.smoothed_human_like_score * (1 - EWMA_ALPHA) + EWMA_ALPHA * signal.human_like_score
        state.smoothed_human_like_score = min(max(smoothed, 0.0), 1.0)

    # -------------------------------------------------------------------------
    # Decision
    # -------------------------------------------------------------------------

    def _build_adjustment(self, state: ContextState, signal: Signal) -> Adjustment:
        cfg = self.settings
        window = state.signals

        total = max(sum(s.total_interactions for s in window), 1)
        http_429 = sum(s.http_429 for s in window)
        http_403 = sum(s.http_403 for s in window)
        captcha = sum(s.captcha_challenges for s in window)
        fallback_count = sum(1 for s in window if s.injection_fallback_used)

        rate_429 = http_429 / total
        rate_403 = http_403 / total
        rate_captcha = captcha / total

        current = state.last_adjustment.pacing_profile if state.last_adjustment else state.current_pacing
        target = current
        reasons: List[str] = []

        if rate_429 >= cfg.http_429_high or rate_403 >= cfg.http_403_high or rate_captcha >= cfg.captcha_high:
            target = PacingProfile.CONSERVATIVE
            reasons.append(
                f"high risk rates 429={rate_429:.1%} 403={rate_403:.1%} captcha={rate_captcha:.1%}"
            )
        elif (
            current == PacingProfile.CONSERVATIVE
            and rate_429 <= cfg.http_429_recover
            and rate_403 <= cfg.http_403_recover
            and rate_captcha <= cfg.captcha_high / 2
        ):
            target = PacingProfile.NORMAL
            reasons.append(REASON_RECOVERED)
        elif (
            current != PacingProfile.PAUSED
            and http_429 == 0 and http_403 == 0 and captcha == 0
            and len(window) >= cfg.aggressive_window_requirement
        ):
            target = PacingProfile.AGGRESSIVE
            reasons.append(REASON_CLEAN_WINDOW)

        should_pause = rate_403 >= PAUSE_403_RATE or rate_captcha >= PAUSE_CAPTCHA_RATE
        if should_pause:
            target = PacingProfile.PAUSED
            reasons.append(REASON_SEVERE)

        rotate_fingerprint = rate_403 > cfg.http_403_high or fallback_count >= 2
        confidence = 1.0 - (rate_429 + rate_403) - rate_captcha * CAPTCHA_CONFIDENCE_WEIGHT

        if window:
            latest = window[-1]
            reasons.append(
                f"latest window p95={latest.p95_latency_ms:.0f}ms "
                f"p99={latest.p99_latency_ms:.0f}ms hl={state.smoothed_human_like_score:.2f}"
            )

        return Adjustment(
            context_id=state.context_id,
            workflow=state.workflow,
            issued_at=self._clock(),
            pacing_profile=target,
            rotate_fingerprint=rotate_fingerprint,
            refresh_cookies=rate_captcha >= cfg.captcha_high or rotate_fingerprint,
            pause_interactions=should_pause,
            enable_navigator_patch=http_403 > 0 or fallback_count > 0,
            enable_ua_language_scrub=rate_429 > cfg.http_429_high / 2,
            confidence=round(min(max(confidence, 0.0), 1.0), 3),
            reason="; ".join(ordered_unique(reasons)),
            tags=signal.tags,
        )

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _should_persist(self, state: ContextState, adjustment: Adjustment) -> bool:
        previous = state.last_adjustment
        if previous is None or adjustment.is_material_change(previous):
            return True
        if state.last_adjustment_at is None:
            return True
        return adjustment.issued_at - state.last_adjustment_at >= self.settings.minimum_adjustment_interval

    async def _persist(self, state: ContextState, adjustment: Adjustment) -> None:
        persisted = self._should_persist(state, adjustment)
        if persisted:
            state.current_pacing = adjustment.pacing_profile
            state.last_adjustment = adjustment
            state.last_adjustment_at = adjustment.issued_at
            history = sorted([*state.history, adjustment], key=lambda a: a.issued_at)
            state.history = history[-self.settings.history_depth:]

            file_name = await self.repo.write_adjustment_artifacts(adjustment)
            if self.audit_logger is not None:
                await asyncio.to_thread(self.audit_logger.log_adjustment, adjustment, file_name)

        await self.repo.save_state(state)

        if persisted:
            logger.info(
                f"[AntiDetect] context={state.context_id} workflow={state.workflow} "
                f"pacing={adjustment.pacing_profile.value} confidence={adjustment.confidence} "
                f"reason={adjustment.reason}"
            )
        else:
            logger.debug(
                f"[AntiDetect] debounced context={state.context_id} "
                f"pacing={adjustment.pacing_profile.value} reason={adjustment.reason}"
            )
