"""
Anti-Detection Core

Adaptive pacing control plane: orchestrator, baseline validator and
humanized click engine. Import the orchestrator from core.orchestrator;
this package only re-exports the dependency-free pieces.
"""

from core.config import OrchestratorSettings, StoreSettings
from core.errors import (
    AntiDetectError,
    PersistenceError,
    ValidationError,
)

__all__ = [
    "OrchestratorSettings",
    "StoreSettings",
    "AntiDetectError",
    "ValidationError",
    "PersistenceError",
]
