"""
Per-tick output handed to the renderer.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..visualization.camera import CameraDirective
from .layout_state import ControllerPhase, LayoutStrategy, Position


@dataclass(frozen=True)
class ItemFrame:
    """Geometry and overlay of one item for one tick"""
    position: Position
    highlighted: bool
    dimmed: bool
    selected: bool
    color: str
    scale: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": list(self.position),
            "highlighted": self.highlighted,
            "dimmed": self.dimmed,
            "selected": self.selected,
            "color": self.color,
            "scale": self.scale,
        }


@dataclass(frozen=True)
class LayoutFrame:
    """Immutable snapshot of everything the renderer needs for one tick"""
    frame_index: int
    timestamp: float
    strategy: LayoutStrategy
    phase: ControllerPhase
    progress: float
    eased_progress: float
    is_animating: bool
    camera_reset_requested: bool
    camera_directive: Optional[CameraDirective]
    x_ray_mode: bool
    items: Mapping[str, ItemFrame]

    def position_of(self, item_id: str) -> Optional[Position]:
        frame = self.items.get(item_id)
        return frame.position if frame else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frame_index": self.frame_index,
            "timestamp": self.timestamp,
            "strategy": self.strategy.value,
            "phase": self.phase.value,
            "progress": self.progress,
            "eased_progress": self.eased_progress,
            "is_animating": self.is_animating,
            "camera_reset_requested": self.camera_reset_requested,
            "camera_directive": self.camera_directive.to_dict() if self.camera_directive else None,
            "x_ray_mode": self.x_ray_mode,
            "items": {item_id: frame.to_dict() for item_id, frame in self.items.items()},
        }
