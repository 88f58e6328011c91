"""
Anti-Detection Core Models

Rule-based baseline validation and the policy-gated click engine.
"""

from core.models.baseline import BaselineValidator, load_whitelist, validate
from core.models.click import ClickDecision, HumanizedClickEngine

__all__ = [
    "BaselineValidator",
    "validate",
    "load_whitelist",
    "HumanizedClickEngine",
    "ClickDecision",
]
