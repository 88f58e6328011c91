"""
Anti-Detection Policies

Two independently owned sources decide whether the click engine may
fall back to injected events:

    InteractionPolicy       static, operator-set (local interaction rules)
    AntiDetectionPolicy     static anti-detection switches
    AntiDetectionPolicyView live view: static switches + latest Adjustment

Both must agree. The engine receives them separately and checks each.

The owner of the view closes the loop after every observation:

    view = AntiDetectionPolicyView(AntiDetectionPolicy.from_env())
    engine = HumanizedClickEngine(InteractionPolicy.from_env(), view, pipeline)
    ...
    view.refresh(await orchestrator.record(signal))

Environment:
    INTERACTION_ENABLE_INJECTION_FALLBACK  (default false)
    INTERACTION_PACING_MULTIPLIER          (default 1.0)
    ANTIDETECT_ENABLED                     (default true)
    ANTIDETECT_PATCH_NAVIGATOR_WEBDRIVER   (default false)
    ANTIDETECT_UA_LANGUAGE_SCRUB           (default false)
    ANTIDETECT_ENABLE_INJECTION_FALLBACK   (default false)
    ANTIDETECT_INJECTIONS_PER_SECOND       (default 1.0)
    ANTIDETECT_INJECTION_BURST             (default 1)
"""

from __future__ import annotations

import threading
from typing import Optional, Protocol

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from core.config import env_flag, env_float, env_int
from core.schemas.outputs import Adjustment, PacingProfile


class InjectionGate(Protocol):
    """
    Read-only capability check consulted before any injection fallback.

    Gates that also expose a `pacing_profile` slow the click engine down.
    """

    @property
    def allows_injection_fallback(self) -> bool: ...


# =============================================================================
# Interaction Policy
# =============================================================================

class InteractionPolicy(BaseModel):
    """Operator-set local interaction rules."""

    model_config = ConfigDict(frozen=True)

    enable_injection_fallback: bool = Field(False, description="Permit dispatchEvent-style fallbacks")
    pacing_multiplier: float = Field(1.0, gt=0.0, description="Base speed multiplier for pointer trajectories")

    @property
    def allows_injection_fallback(self) -> bool:
        return self.enable_injection_fallback

    @classmethod
    def from_env(cls) -> InteractionPolicy:
        load_dotenv()
        return cls(
            enable_injection_fallback=env_flag("INTERACTION_ENABLE_INJECTION_FALLBACK", False),
            pacing_multiplier=env_float("INTERACTION_PACING_MULTIPLIER", 1.0),
        )


# =============================================================================
# Anti-Detection Policy
# =============================================================================

class AntiDetectionPolicy(BaseModel):
    """Static anti-detection switches. Everything that injects is off by default."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(True, description="Master switch")
    allow_navigator_webdriver_patch: bool = Field(False, description="Permit hiding navigator.webdriver")
    allow_ua_language_scrub: bool = Field(False, description="Permit UA / language scrubbing")
    allow_ui_injection_fallback: bool = Field(False, description="Permit audited UI injection fallbacks")
    injections_per_second: float = Field(1.0, gt=0.0, description="Injection pipeline refill rate")
    injection_burst: int = Field(1, ge=1, description="Injection pipeline bucket size")

    @property
    def allows_injection_fallback(self) -> bool:
        return self.enabled and self.allow_ui_injection_fallback

    @classmethod
    def from_env(cls) -> AntiDetectionPolicy:
        load_dotenv()
        return cls(
            enabled=env_flag("ANTIDETECT_ENABLED", True),
            allow_navigator_webdriver_patch=env_flag("ANTIDETECT_PATCH_NAVIGATOR_WEBDRIVER", False),
            allow_ua_language_scrub=env_flag("ANTIDETECT_UA_LANGUAGE_SCRUB", False),
            allow_ui_injection_fallback=env_flag("ANTIDETECT_ENABLE_INJECTION_FALLBACK", False),
            injections_per_second=env_float("ANTIDETECT_INJECTIONS_PER_SECOND", 1.0),
            injection_burst=env_int("ANTIDETECT_INJECTION_BURST", 1),
        )


class AntiDetectionPolicyView:
    """
    Live, read-only view combining the static policy with the latest
    orchestrator Adjustment.

    The owner calls refresh() after each record(); consumers only read.
    Injection fallback closes while the adjustment pauses interactions.
    Navigator / UA patches open only when both sides enable them.
    """

    def __init__(self, policy: AntiDetectionPolicy, adjustment: Optional[Adjustment] = None) -> None:
        self._policy = policy
        self._adjustment = adjustment
        self._lock = threading.Lock()

    def refresh(self, adjustment: Adjustment) -> None:
        with self._lock:
            self._adjustment = adjustment

    @property
    def policy(self) -> AntiDetectionPolicy:
        return self._policy

    @property
    def adjustment(self) -> Optional[Adjustment]:
        with self._lock:
            return self._adjustment

    @property
    def pacing_profile(self) -> PacingProfile:
        adjustment = self.adjustment
        return adjustment.pacing_profile if adjustment else PacingProfile.NORMAL

    @property
    def allows_injection_fallback(self) -> bool:
        adjustment = self.adjustment
        if adjustment is not None and adjustment.pause_interactions:
            return False
        return self._policy.allows_injection_fallback

    @property
    def allows_navigator_patch(self) -> bool:
        adjustment = self.adjustment
        return (
            self._policy.enabled
            and self._policy.allow_navigator_webdriver_patch
            and adjustment is not None
            and adjustment.enable_navigator_patch
        )

    @property
    def allows_ua_language_scrub(self) -> bool:
        adjustment = self.adjustment
        return (
            self._policy.enabled
            and self._policy.allow_ua_language_scrub
            and adjustment is not None
            and adjustment.enable_ua_language_scrub
        )