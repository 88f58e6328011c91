"""
Adaptive Pacing Test Suite - Shared Pytest Fixtures

This conftest.py provides fixtures for all test categories including:
- Temporary JSON document stores
- A manually advanced clock for debounce tests
- Orchestrator instances
- Fake automation driver elements and pages for click tests

Usage:
    pytest tests/ -v -s
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest

from core.automation import BoundingBox, ClickabilityProbe
from core.config import OrchestratorSettings
from core.orchestrator import AdaptivePacingOrchestrator
from core.schemas.inputs import Signal
from persistence.document_store import JsonFileStore


# =============================================================================
# Helpers
# =============================================================================

def make_signal(
    context_id: str = "ctx-1",
    workflow: str = "Comment",
    total: int = 100,
    http_429: int = 0,
    http_403: int = 0,
    captcha: int = 0,
    fallback: bool = False,
    human: float = 1.0,
    observed_at: Optional[datetime] = None,
    tags: Tuple[str, ...] = (),
) -> Signal:
    """Create a Signal with test-friendly defaults."""
    return Signal(
        context_id=context_id,
        workflow=workflow,
        observed_at=observed_at or datetime.now(timezone.utc),
        total_interactions=total,
        http_429=http_429,
        http_403=http_403,
        captcha_challenges=captcha,
        injection_fallback_used=fallback,
        human_like_score=human,
        tags=tags,
    )


class ManualClock:
    """Deterministic UTC clock advanced explicitly by tests."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeElement:
    """
    Scriptable automation element.

    Records every driver call in `calls` so tests can assert order.
    """

    def __init__(
        self,
        click_error: Optional[Exception] = None,
        box: Optional[BoundingBox] = BoundingBox(100, 200, 40, 20),
        attributes: Optional[Dict[str, str]] = None,
        tag: str = "button",
        probe: Optional[ClickabilityProbe] = None,
        has_spinner: bool = False,
        hover_error: Optional[Exception] = None,
    ) -> None:
        self.click_error = click_error
        self.hover_error = hover_error
        self.box = box
        self.attributes = attributes or {}
        self.tag = tag
        self.probe = probe or ClickabilityProbe(
            has_box=True, in_viewport=True, visible_by_style=True,
            pointer_events_enabled=True, center_occluded=False, clickable=True,
        )
        self.has_spinner = has_spinner
        self.calls: List[str] = []

    async def scroll_into_view_if_needed(self) -> None:
        self.calls.append("scroll")

    async def hover(self) -> None:
        self.calls.append("hover")
        if self.hover_error is not None:
            raise self.hover_error

    async def click(self) -> None:
        self.calls.append("click")
        if self.click_error is not None:
            raise self.click_error

    async def dispatch_click(self) -> None:
        self.calls.append("dispatch")

    async def get_attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)

    async def tag_name(self) -> Optional[str]:
        return self.tag

    async def query_selector(self, selector: str, timeout_ms: int = 150) -> Optional[Any]:
        return object() if self.has_spinner else None

    async def bounding_box(self) -> Optional[BoundingBox]:
        self.calls.append("bounding_box")
        return self.box

    async def clickability_probe(self) -> ClickabilityProbe:
        return self.probe


class FakePage:
    """Records pointer moves and clicks; optionally fails the click."""

    def __init__(self, click_error: Optional[Exception] = None) -> None:
        self.click_error = click_error
        self.moves: List[Tuple[float, float]] = []
        self.clicks: List[Tuple[float, float]] = []

    async def mouse_move(self, x: float, y: float) -> None:
        self.moves.append((x, y))

    async def mouse_click(self, x: float, y: float) -> None:
        self.clicks.append((x, y))
        if self.click_error is not None:
            raise self.click_error


async def no_sleep(seconds: float) -> None:
    """Drop-in for asyncio.sleep that only yields control."""
    await asyncio.sleep(0)


# =============================================================================
# Store & Orchestrator Fixtures
# =============================================================================

@pytest.fixture
def store(tmp_path):
    """File-backed document store rooted in a temporary directory."""
    return JsonFileStore(tmp_path / "store")


@pytest.fixture
def clock():
    """Manually advanced UTC clock."""
    return ManualClock()


@pytest.fixture
def settings():
    """Default orchestrator settings."""
    return OrchestratorSettings()


@pytest.fixture
def orchestrator(store, settings, clock):
    """Orchestrator over a temporary store with a manual clock."""
    return AdaptivePacingOrchestrator(store=store, settings=settings, clock=clock)
