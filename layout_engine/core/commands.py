"""
Controller commands.

All layout and overlay state changes go through one of these messages, either
via ``LayoutController.dispatch`` or the matching named transition method.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Union

from .layout_state import LayoutStrategy


@dataclass(frozen=True)
class ItemSetChanged:
    items: Sequence[Any]


@dataclass(frozen=True)
class SettingsChanged:
    changes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StrategySwitchRequested:
    target: Union[LayoutStrategy, str]


@dataclass(frozen=True)
class ResetCameraRequested:
    pass


@dataclass(frozen=True)
class FocusRequested:
    item_id: str


@dataclass(frozen=True)
class SearchQueryChanged:
    query: str


@dataclass(frozen=True)
class CategoryFilterChanged:
    category: Optional[str]


@dataclass(frozen=True)
class SelectionChanged:
    item_id: Optional[str]


@dataclass(frozen=True)
class XRayModeChanged:
    enabled: bool


@dataclass(frozen=True)
class Tick:
    now: Optional[float] = None


Command = Union[
    ItemSetChanged,
    SettingsChanged,
    StrategySwitchRequested,
    ResetCameraRequested,
    FocusRequested,
    SearchQueryChanged,
    CategoryFilterChanged,
    SelectionChanged,
    XRayModeChanged,
    Tick,
]
