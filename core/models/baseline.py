"""
Anti-Detection Baseline Validator

Pure rule evaluation of an EnvironmentSnapshot against a Whitelist.
This module is STATELESS and DETERMINISTIC: no I/O, no shared state,
safe to call concurrently.

Every whitelist rule that is set is evaluated independently; each
failing rule appends a stable violation code. The snapshot itself is
never rejected, malformed values simply fail the rules they touch.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import ValidationError as SchemaError

from core.errors import ValidationError
from core.schemas.inputs import EnvironmentSnapshot, Whitelist
from core.schemas.outputs import ValidationResult


logger = logging.getLogger(__name__)


class BaselineValidator:
    """
    Stateless, deterministic whitelist checker.

    Violation Codes (in evaluation order):
        WEBDRIVER_NOT_ALLOWED, PLATFORM_NOT_ALLOWED, TIMEZONE_NOT_ALLOWED,
        UA_MUST_CONTAIN:<token>, UA_MUST_NOT_CONTAIN:<token>,
        WEBGL_VENDOR_NOT_ALLOWED, WEBGL_RENDERER_NOT_ALLOWED,
        LANG_PREFIX_NOT_ALLOWED, HARDWARE_CONCURRENCY_TOO_LOW,
        DEVICE_PIXEL_RATIO_TOO_LOW, LOCAL_STORAGE_TOO_SMALL,
        SESSION_STORAGE_TOO_SMALL, COOKIES_ENABLED_MISMATCH,
        FONTS_MUST_CONTAIN_ANY_MISSING, PERMISSION_STATE_DENIED:<name>,
        MEDIA_VIDEO_INPUTS_TOO_LOW, MEDIA_AUDIO_INPUTS_TOO_LOW,
        MEDIA_AUDIO_OUTPUTS_TOO_LOW, SENSOR_REQUIRED_MISSING,
        SENSOR_FORBIDDEN_PRESENT

    Degrade:
        0 < total_violations <= max_violations (unset counts as 0)
    """

    def validate(self, snapshot: EnvironmentSnapshot, whitelist: Whitelist) -> ValidationResult:
        violations: List[str] = []

        self._check_traits(snapshot, whitelist, violations)
        self._check_webgl(snapshot, whitelist, violations)
        self._check_device(snapshot, whitelist, violations)
        self._check_extensions(snapshot, whitelist, violations)

        total = len(violations)
        threshold = whitelist.max_violations or 0
        return ValidationResult(
            violations=violations,
            total_violations=total,
            degrade_recommended=0 < total <= threshold,
        )

    # =================================================================
    # Basic Traits
    # =================================================================

    def _check_traits(self, snapshot: EnvironmentSnapshot, whitelist: Whitelist, v: List[str]) -> None:
        # webdriver: explicit set wins, otherwise false is expected once any rule is declared
        if whitelist.allowed_webdrivers:
            if snapshot.webdriver is None or snapshot.webdriver not in whitelist.allowed_webdrivers:
                v.append("WEBDRIVER_NOT_ALLOWED")
        elif whitelist.declares_rules() and snapshot.webdriver is not False:
            v.append("WEBDRIVER_NOT_ALLOWED")

        if whitelist.allowed_platforms and not _in_set(snapshot.platform, whitelist.allowed_platforms):
            v.append("PLATFORM_NOT_ALLOWED")

        if whitelist.allowed_time_zones and not _in_set(snapshot.time_zone, whitelist.allowed_time_zones):
            v.append("TIMEZONE_NOT_ALLOWED")

        ua = (snapshot.ua or "").lower()
        for token in whitelist.user_agent_must_contain or []:
            if token and token.lower() not in ua:
                v.append(f"UA_MUST_CONTAIN:{token}")
        for token in whitelist.user_agent_must_not_contain or []:
            if token and token.lower() in ua:
                v.append(f"UA_MUST_NOT_CONTAIN:{token}")

    # =================================================================
    # WebGL / Language
    # =================================================================

    def _check_webgl(self, snapshot: EnvironmentSnapshot, whitelist: Whitelist, v: List[str]) -> None:
        if whitelist.webgl_vendors and not _in_set(snapshot.webgl_vendor, whitelist.webgl_vendors):
            v.append("WEBGL_VENDOR_NOT_ALLOWED")

        if whitelist.webgl_renderer_regex:
            renderer = snapshot.webgl_renderer or ""
            if not any(_regex_matches(pattern, renderer) for pattern in whitelist.webgl_renderer_regex):
                v.append("WEBGL_RENDERER_NOT_ALLOWED")

        if whitelist.languages_prefix_any:
            first = snapshot.languages[0] if snapshot.languages else (snapshot.language or "")
            first = first.lower()
            if not any(p and first.startswith(p.lower()) for p in whitelist.languages_prefix_any):
                v.append("LANG_PREFIX_NOT_ALLOWED")

    # =================================================================
    # Device / Storage (checked only when both sides are present)
    # =================================================================

    def _check_device(self, snapshot: EnvironmentSnapshot, whitelist: Whitelist, v: List[str]) -> None:
        if _below(snapshot.hardware_concurrency, whitelist.min_hardware_concurrency):
            v.append("HARDWARE_CONCURRENCY_TOO_LOW")
        if _below(snapshot.device_pixel_ratio, whitelist.min_device_pixel_ratio):
            v.append("DEVICE_PIXEL_RATIO_TOO_LOW")
        if _below(snapshot.local_storage_keys, whitelist.min_local_storage_keys):
            v.append("LOCAL_STORAGE_TOO_SMALL")
        if _below(snapshot.session_storage_keys, whitelist.min_session_storage_keys):
            v.append("SESSION_STORAGE_TOO_SMALL")
        if (
            whitelist.cookies_enabled is not None
            and snapshot.cookies_enabled is not None
            and snapshot.cookies_enabled != whitelist.cookies_enabled
        ):
            v.append("COOKIES_ENABLED_MISMATCH")

    # =================================================================
    # Fonts / Permissions / Media / Sensors
    # =================================================================

    def _check_extensions(self, snapshot: EnvironmentSnapshot, whitelist: Whitelist, v: List[str]) -> None:
        if whitelist.fonts_must_contain_any:
            fonts = {f.lower() for f in snapshot.fonts or []}
            if not any(req.lower() in fonts for req in whitelist.fonts_must_contain_any):
                v.append("FONTS_MUST_CONTAIN_ANY_MISSING")

        if whitelist.permission_states:
            reported = _lower_keys(snapshot.permissions or {})
            for name, allowed in whitelist.permission_states.items():
                if not allowed:
                    continue
                state = reported.get(name.lower())
                if state is None or state.lower() not in {a.lower() for a in allowed}:
                    v.append(f"PERMISSION_STATE_DENIED:{name}")

        # Media counts default to 0 when not reported
        if whitelist.min_media_video_inputs is not None and (snapshot.media_video_inputs or 0) < whitelist.min_media_video_inputs:
            v.append("MEDIA_VIDEO_INPUTS_TOO_LOW")
        if whitelist.min_media_audio_inputs is not None and (snapshot.media_audio_inputs or 0) < whitelist.min_media_audio_inputs:
            v.append("MEDIA_AUDIO_INPUTS_TOO_LOW")
        if whitelist.min_media_audio_outputs is not None and (snapshot.media_audio_outputs or 0) < whitelist.min_media_audio_outputs:
            v.append("MEDIA_AUDIO_OUTPUTS_TOO_LOW")

        sensors = _lower_keys(snapshot.sensors or {})
        if whitelist.required_sensors_any:
            if not any(sensors.get(s.lower(), False) for s in whitelist.required_sensors_any):
                v.append("SENSOR_REQUIRED_MISSING")
        if whitelist.forbidden_sensors_any:
            if any(sensors.get(s.lower(), False) for s in whitelist.forbidden_sensors_any):
                v.append("SENSOR_FORBIDDEN_PRESENT")


# =============================================================================
# Helpers
# =============================================================================

def _in_set(value: Optional[str], allowed: List[str]) -> bool:
    return bool(value and value.strip()) and value in allowed


def _below(value: Optional[float], minimum: Optional[float]) -> bool:
    return value is not None and minimum is not None and value < minimum


def _lower_keys(mapping: Dict) -> Dict:
    return {str(k).lower(): val for k, val in mapping.items()}


def _regex_matches(pattern: str, text: str) -> bool:
    if not pattern:
        return False
    try:
        return re.search(pattern, text) is not None
    except re.error:
        logger.debug(f"Ignoring malformed renderer pattern: {pattern!r}")
        return False


# =============================================================================
# Module API
# =============================================================================

_VALIDATOR = BaselineValidator()


def validate(snapshot: EnvironmentSnapshot, whitelist: Optional[Whitelist] = None) -> ValidationResult:
    """Validate a snapshot; no whitelist means nothing is checked."""
    return _VALIDATOR.validate(snapshot, whitelist or Whitelist())


def load_whitelist(path: Union[str, Path]) -> Whitelist:
    """
    Parse a whitelist JSON file.

    Raises:
        ValidationError: unreadable file, invalid JSON, unknown keys or
            wrongly typed values.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ValidationError(f"Cannot read whitelist {path}: {e}") from e

    try:
        document = json.loads(raw) if raw.strip() else {}
    except json.JSONDecodeError as e:
        raise ValidationError(f"Whitelist {path} is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise ValidationError(f"Whitelist {path} must be a JSON object")

    try:
        return Whitelist.model_validate(document)
    except SchemaError as e:
        raise ValidationError(f"Malformed whitelist {path}: {e}") from e
