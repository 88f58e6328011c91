"""
Anti-Detection Configuration

Pydantic settings models for the orchestrator and the document store.
Values come from ANTIDETECT_* environment variables (a local .env file is
merged first via python-dotenv), falling back to the defaults below.

Usage:
    settings = OrchestratorSettings.from_env()
    orchestrator = AdaptivePacingOrchestrator(store, settings)
"""

from __future__ import annotations

import os
from datetime import timedelta

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Environment Helpers
# =============================================================================

_TRUE_VALUES = {"true", "1", "yes"}


def env_flag(name: str, default: bool) -> bool:
    """Read a boolean flag; accepts true/1/yes (case-insensitive)."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


# =============================================================================
# Orchestrator Settings
# =============================================================================

class OrchestratorSettings(BaseModel):
    """
    Tuning knobs for the Adaptive Pacing Orchestrator.

    Rates are fractions of total interactions in the sliding window.
    """

    model_config = ConfigDict(frozen=True)

    sliding_window: int = Field(24, ge=3, description="Signals kept per context")
    history_depth: int = Field(12, ge=1, description="Persisted adjustments kept per context")

    http_429_high: float = Field(0.05, ge=0.0, le=1.0, description="429 rate that forces Conservative")
    http_403_high: float = Field(0.03, ge=0.0, le=1.0, description="403 rate that forces Conservative")
    captcha_high: float = Field(0.04, ge=0.0, le=1.0, description="Captcha rate that forces Conservative")
    http_429_recover: float = Field(0.02, ge=0.0, le=1.0, description="429 rate allowing recovery to Normal")
    http_403_recover: float = Field(0.01, ge=0.0, le=1.0, description="403 rate allowing recovery to Normal")

    aggressive_window_requirement: int = Field(
        6, ge=1, description="Clean signals required before promoting to Aggressive"
    )
    minimum_adjustment_interval: timedelta = Field(
        timedelta(minutes=5), description="Re-persist an unchanged adjustment after this long"
    )

    state_directory: str = Field("antidetect/state", description="Key prefix for state documents")
    adjustment_directory: str = Field(
        "antidetect/adjustments", description="Key prefix for adjustment and manifest documents"
    )

    @field_validator("minimum_adjustment_interval")
    @classmethod
    def _non_negative_interval(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            raise ValueError("minimum_adjustment_interval must not be negative")
        return value

    @field_validator("state_directory", "adjustment_directory")
    @classmethod
    def _non_blank_prefix(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("storage prefix must not be blank")
        return value.strip().rstrip("/")

    @classmethod
    def from_env(cls) -> OrchestratorSettings:
        """Build settings from ANTIDETECT_* environment variables."""
        load_dotenv()
        return cls(
            sliding_window=env_int("ANTIDETECT_SLIDING_WINDOW", 24),
            history_depth=env_int("ANTIDETECT_HISTORY_DEPTH", 12),
            http_429_high=env_float("ANTIDETECT_HTTP_429_HIGH", 0.05),
            http_403_high=env_float("ANTIDETECT_HTTP_403_HIGH", 0.03),
            captcha_high=env_float("ANTIDETECT_CAPTCHA_HIGH", 0.04),
            http_429_recover=env_float("ANTIDETECT_HTTP_429_RECOVER", 0.02),
            http_403_recover=env_float("ANTIDETECT_HTTP_403_RECOVER", 0.01),
            aggressive_window_requirement=env_int("ANTIDETECT_AGGRESSIVE_WINDOW", 6),
            minimum_adjustment_interval=timedelta(
                seconds=env_float("ANTIDETECT_MIN_ADJUSTMENT_SECONDS", 300.0)
            ),
            state_directory=env_str("ANTIDETECT_STATE_DIR", "antidetect/state"),
            adjustment_directory=env_str("ANTIDETECT_ADJUSTMENT_DIR", "antidetect/adjustments"),
        )


# =============================================================================
# Store Settings
# =============================================================================

class StoreSettings(BaseModel):
    """Which document store backs the orchestrator."""

    model_config = ConfigDict(frozen=True)

    backend: str = Field("file", pattern="^(file|redis)$", description="file or redis")
    root: str = Field(".antidetect", description="Root directory for the file backend")
    environment: str = Field("production", description="Deployment label stamped on audit records")

    @classmethod
    def from_env(cls) -> StoreSettings:
        load_dotenv()
        return cls(
            backend=env_str("ANTIDETECT_STORE_BACKEND", "file").lower(),
            root=env_str("ANTIDETECT_STORE_ROOT", ".antidetect"),
            environment=env_str("ANTIDETECT_ENV", "production"),
        )
