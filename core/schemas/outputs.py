"""
Anti-Detection Output Schemas

This module defines Pydantic V2 models for the decisions produced by the
control plane: pacing adjustments, their audit manifest, baseline
validation results and click decision paths.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from core.schemas.inputs import utc_now


# =============================================================================
# Enums
# =============================================================================

class PacingProfile(str, Enum):
    """How fast or cautious automated interaction should be."""
    AGGRESSIVE = "Aggressive"
    NORMAL = "Normal"
    CONSERVATIVE = "Conservative"
    PAUSED = "Paused"


class ClickPath(str, Enum):
    """Which escalating click strategy succeeded."""
    REGULAR = "regular"
    COORDINATE = "coordinate"
    DISPATCH = "dispatch"


# =============================================================================
# Pacing Adjustment
# =============================================================================

class Adjustment(BaseModel):
    """
    Immutable pacing decision for one context.

    Drives pacing, fingerprint rotation, cookie refresh and the optional
    navigator / UA patches.
    """

    model_config = ConfigDict(frozen=True)

    context_id: str = Field(..., description="Context the decision targets")
    workflow: str = Field("", description="Workflow the context belongs to")
    issued_at: datetime = Field(default_factory=utc_now, description="Decision time (UTC)")

    pacing_profile: PacingProfile = Field(PacingProfile.NORMAL, description="Target pacing profile")
    rotate_fingerprint: bool = Field(False, description="Force a browser fingerprint rotation")
    refresh_cookies: bool = Field(False, description="Rotate cookies / clear the session")
    pause_interactions: bool = Field(False, description="Stop and wait for manual review")
    enable_navigator_patch: bool = Field(False, description="Enable the navigator.webdriver patch")
    enable_ua_language_scrub: bool = Field(False, description="Enable UA / language scrubbing")

    confidence: float = Field(1.0, ge=0.0, le=1.0, description="Decision confidence, 3 decimals")
    reason: str = Field("", description="'; '-joined triggering conditions")
    tags: Tuple[str, ...] = Field(default_factory=tuple, description="Labels copied from the signal")

    def is_material_change(self, previous: Adjustment) -> bool:
        """Compare the fields that decide whether a decision is new."""
        return (
            self.pacing_profile != previous.pacing_profile
            or self.rotate_fingerprint != previous.rotate_fingerprint
            or self.refresh_cookies != previous.refresh_cookies
            or self.pause_interactions != previous.pause_interactions
            or self.enable_navigator_patch != previous.enable_navigator_patch
            or self.enable_ua_language_scrub != previous.enable_ua_language_scrub
            or self.reason != previous.reason
        )


class AdjustmentSummary(BaseModel):
    """One manifest line pointing at a persisted adjustment document."""
    issued_at: datetime = Field(..., description="Decision time (UTC)")
    pacing_profile: PacingProfile = Field(..., description="Target pacing profile")
    reason: str = Field("", description="Decision reason")
    confidence: float = Field(1.0, ge=0.0, le=1.0, description="Decision confidence")
    file_name: str = Field(..., description="Adjustment document name within the context directory")


class AdjustmentManifest(BaseModel):
    """Per-context audit index: latest decision plus newest-first summaries."""
    context_id: str = Field(..., description="Context identifier")
    latest: Optional[Adjustment] = Field(None, description="Most recently persisted adjustment")
    items: List[AdjustmentSummary] = Field(default_factory=list, description="Newest first")


# =============================================================================
# Baseline Validation
# =============================================================================

class ValidationResult(BaseModel):
    """Outcome of checking an environment snapshot against a whitelist."""

    model_config = ConfigDict(frozen=True)

    violations: List[str] = Field(default_factory=list, description="Stable violation codes, in rule order")
    total_violations: int = Field(0, ge=0, description="len(violations)")
    degrade_recommended: bool = Field(False, description="Violations exist but stay within tolerance")

    @property
    def passed(self) -> bool:
        return self.total_violations == 0
