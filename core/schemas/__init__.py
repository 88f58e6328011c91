"""
Anti-Detection Core Schemas

Public exports for input and output Pydantic models.
"""

# Input schemas
from core.schemas.inputs import (
    BaselineCheckPayload,
    EnvironmentSnapshot,
    Signal,
    Whitelist,
)

# Output schemas
from core.schemas.outputs import (
    Adjustment,
    AdjustmentManifest,
    AdjustmentSummary,
    ClickPath,
    PacingProfile,
    ValidationResult,
)

__all__ = [
    # Input
    "Signal",
    "EnvironmentSnapshot",
    "Whitelist",
    "BaselineCheckPayload",
    # Output
    "PacingProfile",
    "ClickPath",
    "Adjustment",
    "AdjustmentSummary",
    "AdjustmentManifest",
    "ValidationResult",
]
