"""
Anti-Detection Input Schemas

This module defines Pydantic V2 models for:
- Observation signals fed into the pacing orchestrator (Signal)
- Read-only environment fingerprints (EnvironmentSnapshot)
- Operator-authored allow-lists (Whitelist)
- HTTP request payloads (BaselineCheckPayload)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ordered_unique(values: Iterable[str]) -> Tuple[str, ...]:
    """De-duplicate while keeping first-seen order."""
    seen: Dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return tuple(seen)


# =============================================================================
# Observation Signal
# =============================================================================

class Signal(BaseModel):
    """
    One observation window of traffic and behaviour counters for one context.

    Produced by workflow or network-feedback collaborators and handed to
    AdaptivePacingOrchestrator.record().
    """

    model_config = ConfigDict(frozen=True)

    context_id: str = Field(..., description="Account/session/browser-pool identifier")
    workflow: str = Field(..., description="Workflow name (e.g. Comment, Discovery)")
    observed_at: datetime = Field(default_factory=utc_now, description="Observation time (UTC)")

    total_interactions: int = Field(0, ge=0, description="Actions + API calls in the window")
    http_429: int = Field(0, ge=0, description="HTTP 429 responses")
    http_403: int = Field(0, ge=0, description="HTTP 403 responses")
    captcha_challenges: int = Field(0, ge=0, description="Captcha or slider challenges")
    injection_fallback_used: bool = Field(False, description="Injected-event fallback fired")

    human_like_score: float = Field(1.0, ge=0.0, le=1.0, description="1.0 = indistinguishable from a person")
    p95_latency_ms: float = Field(0.0, ge=0.0, description="P95 confirmation latency")
    p99_latency_ms: float = Field(0.0, ge=0.0, description="P99 confirmation latency")

    tags: Tuple[str, ...] = Field(default_factory=tuple, description="Ordered set of labels")
    metrics: Dict[str, float] = Field(default_factory=dict, description="Open-ended extra metrics")

    @field_validator("observed_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        return ordered_unique(value)

    @classmethod
    def from_status_codes(
        cls,
        context_id: str,
        workflow: str,
        status_codes: Iterable[int],
        captcha_hints: int = 0,
        injection_fallback_used: bool = False,
        tags: Iterable[str] = (),
        observed_at: Optional[datetime] = None,
    ) -> Signal:
        """
        Build a signal from HTTP status codes observed while executing.

        Closes the feedback loop: execution results become the next signal.
        human_like_score is 1 - (429 + 403) / total, clamped to [0, 1].
        """
        codes = list(status_codes)
        http_429 = sum(1 for code in codes if code == 429)
        http_403 = sum(1 for code in codes if code == 403)
        success = sum(1 for code in codes if 200 <= code < 300)
        total = max(len(codes), 1)
        human_score = min(max(1.0 - (http_429 + http_403) / total, 0.0), 1.0)

        return cls(
            context_id=context_id,
            workflow=workflow,
            observed_at=observed_at or utc_now(),
            total_interactions=len(codes),
            http_429=http_429,
            http_403=http_403,
            captcha_challenges=captcha_hints,
            injection_fallback_used=injection_fallback_used,
            human_like_score=human_score,
            tags=tuple(tags),
            metrics={
                "success2xx": float(success),
                "http429": float(http_429),
                "http403": float(http_403),
                "captcha": float(captcha_hints),
            },
        )


# =============================================================================
# Environment Fingerprint
# =============================================================================

class EnvironmentSnapshot(BaseModel):
    """
    Read-only fingerprint of the automated browser environment.

    Captured externally; any field may be None when the API is unavailable
    in the target environment.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    captured_at: Optional[str] = Field(None, description="Capture time (ISO 8601)")
    ua: Optional[str] = Field(None, description="Raw User-Agent")
    webdriver: Optional[bool] = Field(None, description="navigator.webdriver")
    language: Optional[str] = Field(None, description="navigator.language")
    languages: Optional[List[str]] = Field(None, description="First languages of navigator.languages")
    platform: Optional[str] = Field(None, description="navigator.platform")
    time_zone: Optional[str] = Field(None, description="IANA time zone (e.g. Asia/Shanghai)")
    device_pixel_ratio: Optional[float] = Field(None, description="window.devicePixelRatio")
    hardware_concurrency: Optional[int] = Field(None, description="Logical CPU count")
    webgl_vendor: Optional[str] = Field(None, description="Unmasked WebGL vendor")
    webgl_renderer: Optional[str] = Field(None, description="Unmasked WebGL renderer")
    cookies_enabled: Optional[bool] = Field(None, description="navigator.cookieEnabled")
    local_storage_keys: Optional[int] = Field(None, description="localStorage key count")
    session_storage_keys: Optional[int] = Field(None, description="sessionStorage key count")

    fonts: Optional[List[str]] = Field(None, description="Detected subset of a low-cardinality font list")
    permissions: Optional[Dict[str, str]] = Field(None, description="Permission name -> granted|denied|prompt")
    media_video_inputs: Optional[int] = Field(None, description="Video input device count")
    media_audio_inputs: Optional[int] = Field(None, description="Audio input device count")
    media_audio_outputs: Optional[int] = Field(None, description="Audio output device count")
    sensors: Optional[Dict[str, bool]] = Field(None, description="Sensor API support flags")


# =============================================================================
# Baseline Whitelist
# =============================================================================

class Whitelist(BaseModel):
    """
    Operator-authored baseline. Every rule is optional; an unset rule is
    not checked. Unknown keys are rejected so typos in whitelist files
    surface as validation errors instead of silently disabling a rule.
    Keys may be snake_case or camelCase (allowedPlatforms).
    """

    model_config = ConfigDict(frozen=True, extra="forbid", alias_generator=to_camel, populate_by_name=True)

    # Basic traits
    allowed_platforms: Optional[List[str]] = None
    allowed_time_zones: Optional[List[str]] = None
    allowed_webdrivers: Optional[List[bool]] = None
    user_agent_must_contain: Optional[List[str]] = None
    user_agent_must_not_contain: Optional[List[str]] = None
    languages_prefix_any: Optional[List[str]] = None

    # WebGL
    webgl_vendors: Optional[List[str]] = None
    webgl_renderer_regex: Optional[List[str]] = None

    # Device / display
    min_hardware_concurrency: Optional[int] = None
    min_device_pixel_ratio: Optional[float] = None

    # Storage (read-only counts)
    min_local_storage_keys: Optional[int] = None
    min_session_storage_keys: Optional[int] = None
    cookies_enabled: Optional[bool] = None

    # Fonts / permissions / media / sensors
    fonts_must_contain_any: Optional[List[str]] = None
    permission_states: Optional[Dict[str, List[str]]] = None
    min_media_video_inputs: Optional[int] = None
    min_media_audio_inputs: Optional[int] = None
    min_media_audio_outputs: Optional[int] = None
    required_sensors_any: Optional[List[str]] = None
    forbidden_sensors_any: Optional[List[str]] = None

    max_violations: Optional[int] = Field(
        None, ge=0, description="Violations at or below this count recommend degrading"
    )

    def declares_rules(self) -> bool:
        """True when at least one rule (anything but max_violations) is set."""
        for name in type(self).model_fields:
            if name == "max_violations":
                continue
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, (list, dict)) and not value:
                continue
            return True
        return False


# =============================================================================
# HTTP Payloads
# =============================================================================

class BaselineCheckPayload(BaseModel):
    """Request body for POST /baseline/validate."""
    snapshot: EnvironmentSnapshot = Field(..., description="Captured environment fingerprint")
    whitelist: Whitelist = Field(default_factory=Whitelist, description="Baseline to check against")
