"""
Anti-Detection Core Processors

Public exports for click preflight, pointer trajectories and pacing.
"""

from core.processors.pacing import PacingAdvisor, profile_multiplier
from core.processors.preflight import (
    ClickabilityDetector,
    ClickabilityReport,
    DomPreflightInspector,
    DomPreflightReport,
)
from core.processors.trajectory import MinimumJerkTrajectoryGenerator, TrajectoryPoint

__all__ = [
    "DomPreflightInspector",
    "DomPreflightReport",
    "ClickabilityDetector",
    "ClickabilityReport",
    "MinimumJerkTrajectoryGenerator",
    "TrajectoryPoint",
    "PacingAdvisor",
    "profile_multiplier",
]
