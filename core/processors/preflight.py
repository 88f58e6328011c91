"""
Click Preflight Processors

Advisory readiness checks run before a click attempt:

- DomPreflightInspector: semantic readiness from attributes
  (disabled / busy / focusable)
- ClickabilityDetector: physical clickability from the driver probe
  (box, viewport, style visibility, pointer-events, center occlusion)

Neither blocks the click engine. A failing probe yields a report, never
an exception.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from core.automation import AutomationElement


logger = logging.getLogger(__name__)


SPINNER_SELECTOR = '.spinner,.loading,[aria-busy="true"],.is-loading,.btn-loading'
FOCUSABLE_TAGS = frozenset({"a", "button", "input", "textarea", "select"})


# =============================================================================
# Reports
# =============================================================================

@dataclass
class DomPreflightReport:
    """Semantic readiness of an element."""
    is_ready: bool = True
    is_disabled: bool = False
    is_busy: bool = False
    is_focusable: bool = False
    role: Optional[str] = None
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ClickabilityReport:
    """Physical clickability heuristics of an element."""
    is_clickable: bool = False
    is_visible: bool = False
    has_box: bool = False
    in_viewport: bool = False
    pointer_events_enabled: bool = False
    possibly_occluded: bool = False
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# DOM Preflight
# =============================================================================

class DomPreflightInspector:
    """Attribute-level readiness check (no script evaluation)."""

    async def inspect(self, element: AutomationElement) -> DomPreflightReport:
        report = DomPreflightReport()
        try:
            role = _lower(await element.get_attribute("role"))
            tag = _lower(await element.tag_name())
            report.role = role or tag

            aria_disabled = _lower(await element.get_attribute("aria-disabled")) == "true"
            has_disabled = await element.get_attribute("disabled") is not None
            report.is_disabled = aria_disabled or has_disabled

            aria_busy = _lower(await element.get_attribute("aria-busy")) == "true"
            data_loading = _lower(await element.get_attribute("data-loading")) == "true"
            spinner = await element.query_selector(SPINNER_SELECTOR, 150) is not None
            report.is_busy = aria_busy or data_loading or spinner

            report.is_focusable = _tabindex(await element.get_attribute("tabindex")) >= 0 or tag in FOCUSABLE_TAGS
        except Exception as e:
            logger.debug(f"Preflight probe failed, allowing click: {e}")
            return DomPreflightReport(is_ready=True, reason="preflight error (allowed)")

        if report.is_disabled:
            report.is_ready = False
            report.reason = "element disabled (disabled/aria-disabled)"
        elif report.is_busy:
            report.is_ready = False
            report.reason = "element busy (spinner/aria-busy/data-loading)"
        else:
            report.is_ready = True
            report.reason = "ready"
        return report


# =============================================================================
# Clickability
# =============================================================================

class ClickabilityDetector:
    """Maps the driver's clickability probe to a report with a reason."""

    async def assess(self, element: AutomationElement) -> ClickabilityReport:
        try:
            probe = await element.clickability_probe()
        except Exception as e:
            logger.debug(f"Clickability probe failed: {e}")
            return ClickabilityReport(is_clickable=False, reason="assessment error")

        report = ClickabilityReport(
            is_clickable=probe.clickable,
            is_visible=probe.visible_by_style,
            has_box=probe.has_box,
            in_viewport=probe.in_viewport,
            pointer_events_enabled=probe.pointer_events_enabled,
            possibly_occluded=probe.center_occluded,
        )

        if not report.has_box:
            report.reason = "no bounding box"
        elif not report.in_viewport:
            report.reason = "outside viewport"
        elif not report.is_visible:
            report.reason = "invisible or transparent"
        elif not report.pointer_events_enabled:
            report.reason = "pointer-events disabled"
        elif report.possibly_occluded:
            report.reason = "center possibly occluded"
        else:
            report.reason = "clickable"
        return report


def _lower(value: Optional[str]) -> Optional[str]:
    return value.lower() if value else value


def _tabindex(raw: Optional[str]) -> int:
    try:
        return int(raw) if raw is not None else -1
    except ValueError:
        return -1
