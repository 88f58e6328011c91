"""
Humanized Click Decision Engine

Single-attempt, escalating click strategy:

    Preflight (advisory)
      → regular     scroll into view + hover + pause + element.click()
      → coordinate  minimum-jerk pointer path to the box center + page click
      → dispatch    audited injection, only when BOTH gates are open:
                      1. local InteractionPolicy
                      2. live anti-detection policy

A closed gate ends the attempt with the last regular/coordinate failure
re-raised unchanged. Retrying a whole click is the caller's job.

Pauses and pointer speed slow down with the live pacing profile
(profile_multiplier) and the PacingAdvisor delay multiplier.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from core.automation import AutomationElement, AutomationPage, InjectionPipeline
from core.policy import InjectionGate, InteractionPolicy
from core.processors.pacing import PacingAdvisor, profile_multiplier
from core.processors.preflight import (
    ClickabilityDetector,
    ClickabilityReport,
    DomPreflightInspector,
    DomPreflightReport,
)
from core.processors.trajectory import MinimumJerkTrajectoryGenerator
from core.schemas.outputs import ClickPath


logger = logging.getLogger(__name__)


DISPATCH_LABEL = "click.dispatchEvent"
HOVER_PAUSE_MS = (40, 120)


@dataclass
class ClickDecision:
    """Outcome and diagnostics of one click attempt."""
    success: bool = False
    path: Optional[ClickPath] = None
    steps_tried: List[str] = field(default_factory=list)
    preflight: Optional[DomPreflightReport] = None
    clickability: Optional[ClickabilityReport] = None
    coordinate_skipped: bool = False
    policy_denied: bool = False
    trajectory_points: int = 0

    @property
    def attempts(self) -> int:
        return len(self.steps_tried)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "path": self.path.value if self.path else None,
            "steps_tried": list(self.steps_tried),
            "attempts": self.attempts,
            "preflight": self.preflight.to_dict() if self.preflight else None,
            "clickability": self.clickability.to_dict() if self.clickability else None,
            "coordinate_skipped": self.coordinate_skipped,
            "policy_denied": self.policy_denied,
            "trajectory_points": self.trajectory_points,
        }


class HumanizedClickEngine:
    """
    Policy-gated click escalation.

    The engine keeps no state between clicks; both policies are read-only
    inputs owned elsewhere.
    """

    def __init__(
        self,
        interaction_policy: InteractionPolicy,
        anti_detection_policy: InjectionGate,
        pipeline: InjectionPipeline,
        preflight: Optional[DomPreflightInspector] = None,
        detector: Optional[ClickabilityDetector] = None,
        trajectory: Optional[MinimumJerkTrajectoryGenerator] = None,
        pacing: Optional[PacingAdvisor] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.interaction_policy = interaction_policy
        self.anti_detection_policy = anti_detection_policy
        self.pipeline = pipeline
        self.preflight = preflight or DomPreflightInspector()
        self.detector = detector or ClickabilityDetector()
        self.trajectory = trajectory or MinimumJerkTrajectoryGenerator()
        self.pacing = pacing
        self._sleep = sleep

    async def click(self, page: AutomationPage, element: AutomationElement) -> ClickDecision:
        """
        Click an element, escalating regular → coordinate → dispatch.

        Raises:
            The last regular/coordinate exception when every permitted
            path failed or the dispatch gates are closed.
        """
        decision = ClickDecision()

        # -------------------------------------------------------------------
        # Step 1: Preflight (advisory)
        # -------------------------------------------------------------------
        decision.preflight = await self.preflight.inspect(element)
        decision.clickability = await self.detector.assess(element)
        if not decision.preflight.is_ready:
            logger.debug(f"[Preflight] not ready: {decision.preflight.reason}")

        # -------------------------------------------------------------------
        # Step 2: Regular click, preceded by hover and a short pause
        # -------------------------------------------------------------------
        decision.steps_tried.append(ClickPath.REGULAR.value)
        try:
            await element.scroll_into_view_if_needed()
            await self._hover(element)
            await element.click()
            return self._succeed(decision, ClickPath.REGULAR)
        except Exception as e:
            last_error: BaseException = e
            logger.debug(f"Regular click failed: {e}")

        # -------------------------------------------------------------------
        # Step 3: Coordinate click along a humanized trajectory
        # -------------------------------------------------------------------
        try:
            box = await element.bounding_box()
        except Exception as e:
            logger.debug(f"Bounding box unavailable: {e}")
            box = None

        if box is None or box.is_empty:
            decision.coordinate_skipped = True
        else:
            decision.steps_tried.append(ClickPath.COORDINATE.value)
            try:
                await self._coordinate_click(page, box.center, decision)
                return self._succeed(decision, ClickPath.COORDINATE)
            except Exception as e:
                last_error = e
                logger.debug(f"Coordinate click failed: {e}")

        # -------------------------------------------------------------------
        # Step 4: Dispatch, both gates must be open
        # -------------------------------------------------------------------
        local_open = self.interaction_policy.allows_injection_fallback
        remote_open = self.anti_detection_policy.allows_injection_fallback
        if not (local_open and remote_open):
            decision.policy_denied = True
            logger.info(
                f"Dispatch fallback denied (interaction={local_open}, anti_detection={remote_open}); "
                f"steps={decision.steps_tried}"
            )
            raise last_error

        decision.steps_tried.append(ClickPath.DISPATCH.value)
        ok = await self.pipeline.try_ui_injection(element, DISPATCH_LABEL, _dispatch_click)
        if ok:
            return self._succeed(decision, ClickPath.DISPATCH)

        logger.info(f"Click failed on every path: steps={decision.steps_tried}")
        raise last_error

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _delay_factor(self) -> float:
        """Slowdown from the live pacing profile and the pacing advisor."""
        factor = 1.0
        profile = getattr(self.anti_detection_policy, "pacing_profile", None)
        if profile is not None:
            factor *= profile_multiplier(profile)
        if self.pacing is not None:
            factor *= self.pacing.current_multiplier
        return factor

    async def _hover(self, element: AutomationElement) -> None:
        try:
            await element.hover()
        except Exception as e:
            logger.debug(f"Hover failed: {e}")
        pause_ms = float(self.trajectory.rng.integers(*HOVER_PAUSE_MS)) * self._delay_factor()
        await self._sleep(pause_ms / 1000 / self.interaction_policy.pacing_multiplier)

    async def _coordinate_click(self, page: AutomationPage, target: Tuple[float, float], decision: ClickDecision) -> None:
        speed = self.interaction_policy.pacing_multiplier / self._delay_factor()

        path = self.trajectory.generate(None, target, speed)
        decision.trajectory_points = len(path)
        for point in path:
            await page.mouse_move(point.x, point.y)
            if point.pause_ms > 0:
                await self._sleep(point.pause_ms / 1000)

        await page.mouse_click(target[0], target[1])

    @staticmethod
    def _succeed(decision: ClickDecision, path: ClickPath) -> ClickDecision:
        decision.success = True
        decision.path = path
        logger.info(f"Click succeeded via {path.value} after {decision.attempts} attempt(s)")
        return decision


async def _dispatch_click(element: AutomationElement) -> None:
    await element.dispatch_click()
