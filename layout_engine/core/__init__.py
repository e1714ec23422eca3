"""
Core components of the Spatial Layout Engine.

This module contains the fundamental building blocks:
- Item models: validated, closed set of item kinds
- LayoutSettings / LayoutStrategy: geometry inputs and strategy names
- Overlay: highlight, dim and select derivation
- Commands: messages accepted by the layout controller

The controller and frames live in their own modules and are imported from
there, since they depend on the visualization package.
"""

from .item import BaseItem, Item, ItemKind, ItemValidationError, parse_item, parse_items
from .layout_state import (
    ControllerConfig,
    ControllerPhase,
    InvalidRadiusError,
    InvalidSettingError,
    InvalidSpacingError,
    LayoutComputationError,
    LayoutError,
    LayoutSettings,
    LayoutStrategy,
    UnknownStrategyError,
    parse_strategy,
)
from .overlay import OverlayCriteria, OverlayState, derive_overlay
from .commands import (
    CategoryFilterChanged,
    Command,
    FocusRequested,
    ItemSetChanged,
    ResetCameraRequested,
    SearchQueryChanged,
    SelectionChanged,
    SettingsChanged,
    StrategySwitchRequested,
    Tick,
    XRayModeChanged,
)

__all__ = [
    # Items
    "BaseItem",
    "Item",
    "ItemKind",
    "ItemValidationError",
    "parse_item",
    "parse_items",

    # Layout state
    "ControllerConfig",
    "ControllerPhase",
    "LayoutSettings",
    "LayoutStrategy",
    "parse_strategy",

    # Errors
    "LayoutError",
    "InvalidSettingError",
    "InvalidSpacingError",
    "InvalidRadiusError",
    "UnknownStrategyError",
    "LayoutComputationError",

    # Overlay
    "OverlayCriteria",
    "OverlayState",
    "derive_overlay",

    # Commands
    "Command",
    "ItemSetChanged",
    "SettingsChanged",
    "StrategySwitchRequested",
    "ResetCameraRequested",
    "FocusRequested",
    "SearchQueryChanged",
    "CategoryFilterChanged",
    "SelectionChanged",
    "XRayModeChanged",
    "Tick",
]
