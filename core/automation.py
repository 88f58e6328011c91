"""
Anti-Detection Automation Contracts

Interfaces of the browser-automation driver as seen by the click engine
and the injection pipeline. The driver itself (navigation, DOM querying,
screenshots) lives outside this package; adapters implement these
protocols over their own element and page handles.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol, Tuple, runtime_checkable


# =============================================================================
# Value Types
# =============================================================================

@dataclass(frozen=True)
class BoundingBox:
    """Element box in CSS pixels, page coordinates."""
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


@dataclass(frozen=True)
class ClickabilityProbe:
    """Read-only probe aggregated by the driver adapter."""
    has_box: bool = False
    in_viewport: bool = False
    visible_by_style: bool = False
    pointer_events_enabled: bool = False
    center_occluded: bool = False
    clickable: bool = False


# =============================================================================
# Driver Protocols
# =============================================================================

@runtime_checkable
class AutomationElement(Protocol):
    """Element handle exposed by the automation driver."""

    async def scroll_into_view_if_needed(self) -> None: ...

    async def hover(self) -> None: ...

    async def click(self) -> None: ...

    async def dispatch_click(self) -> None:
        """Fire a synthetic click event on the element (injection)."""
        ...

    async def get_attribute(self, name: str) -> Optional[str]: ...

    async def tag_name(self) -> Optional[str]: ...

    async def query_selector(self, selector: str, timeout_ms: int = 150) -> Optional[Any]: ...

    async def bounding_box(self) -> Optional[BoundingBox]: ...

    async def clickability_probe(self) -> ClickabilityProbe: ...


@runtime_checkable
class AutomationPage(Protocol):
    """Page-level pointer input."""

    async def mouse_move(self, x: float, y: float) -> None: ...

    async def mouse_click(self, x: float, y: float) -> None: ...


InjectionAction = Callable[[Any], Awaitable[None]]


@runtime_checkable
class InjectionPipeline(Protocol):
    """Rate-limited, audited executor of UI injection fallbacks."""

    async def try_ui_injection(self, target: Any, label: str, action: InjectionAction) -> bool:
        """Run action(target) if policy allows; True when it actually ran."""
        ...
