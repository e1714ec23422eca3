"""
Camera Synchronization - one-shot viewpoint directives for the renderer.

The engine never owns the live camera. It only tells the renderer where a
sensible viewpoint is after a strategy switch, an explicit reset, or a focus
request; moving there is the renderer's job.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

import numpy as np

from ..core.layout_state import LayoutStrategy, Position

logger = logging.getLogger(__name__)

ORIGIN: Position = (0.0, 0.0, 0.0)

# Viewing direction (camera position relative to target) for each strategy
VIEW_DIRECTIONS: Dict[LayoutStrategy, Tuple[float, float, float]] = {
    LayoutStrategy.GRID: (0.0, 5.0, 10.0),
    LayoutStrategy.SPHERE: (0.0, 0.0, 1.0),
    LayoutStrategy.CLUSTER: (0.0, 1.0, 1.0),
}

VIEW_DISTANCE_FACTORS: Dict[LayoutStrategy, float] = {
    LayoutStrategy.GRID: 1.6,
    LayoutStrategy.SPHERE: 2.5,
    LayoutStrategy.CLUSTER: 1.8,
}

FOCUS_DIRECTION: Tuple[float, float, float] = (0.0, 0.3, 1.0)


class CameraReason(str, Enum):
    STRATEGY_SWITCH = "strategy_switch"
    RESET = "reset"
    FOCUS = "focus"


@dataclass(frozen=True)
class CameraDirective:
    """Where the renderer should move the camera, and why"""
    position: Position
    target: Position
    reason: CameraReason
    strategy: LayoutStrategy
    item_id: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "position": list(self.position),
            "target": list(self.target),
            "reason": self.reason.value,
            "strategy": self.strategy.value,
            "item_id": self.item_id,
        }


def _unit(vector: Tuple[float, float, float]) -> np.ndarray:
    v = np.asarray(vector, dtype=float)
    return v / np.linalg.norm(v)


def bounding_radius(positions: Mapping[str, Position], center: Position = ORIGIN) -> float:
    """Largest distance of any position from ``center``"""
    if not positions:
        return 0.0
    points = np.asarray(list(positions.values()), dtype=float)
    return float(np.linalg.norm(points - np.asarray(center), axis=1).max())


def default_viewpoint(strategy: LayoutStrategy,
                      positions: Mapping[str, Position],
                      min_distance: float = 10.0) -> Tuple[Position, Position]:
    """
    Default camera (position, target) pair for a strategy.

    The camera looks at the origin from the strategy's viewing direction, far
    enough back to frame the whole layout.
    """
    distance = max(min_distance, bounding_radius(positions) * VIEW_DISTANCE_FACTORS[strategy])
    eye = _unit(VIEW_DIRECTIONS[strategy]) * distance
    return (float(eye[0]), float(eye[1]), float(eye[2])), ORIGIN


def focus_viewpoint(target: Position, distance: float) -> Tuple[Position, Position]:
    """Camera (position, target) pair looking at a single item"""
    eye = np.asarray(target, dtype=float) + _unit(FOCUS_DIRECTION) * distance
    return (float(eye[0]), float(eye[1]), float(eye[2])), target


class CameraSynchronizer:
    """
    Holds at most one pending camera directive.

    A newer request replaces an unconsumed one; ``consume`` hands it out once.
    """

    def __init__(self, min_distance: float = 10.0):
        self.min_distance = min_distance
        self._pending: Optional[CameraDirective] = None

    @property
    def reset_requested(self) -> bool:
        """True while a strategy switch or explicit reset awaits delivery; focus requests do not count"""
        return self._pending is not None and self._pending.reason is not CameraReason.FOCUS

    @property
    def pending(self) -> Optional[CameraDirective]:
        return self._pending

    def request_reset(self,
                      strategy: LayoutStrategy,
                      positions: Mapping[str, Position],
                      reason: CameraReason = CameraReason.RESET) -> CameraDirective:
        position, target = default_viewpoint(strategy, positions, self.min_distance)
        self._pending = CameraDirective(position=position, target=target, reason=reason, strategy=strategy)
        logger.debug(f"Camera {reason.value} requested for {strategy.value} layout")
        return self._pending

    def request_focus(self, strategy: LayoutStrategy, item_id: str, item_position: Position) -> CameraDirective:
        distance = max(self.min_distance * 0.5, 1.0)
        position, target = focus_viewpoint(item_position, distance)
        self._pending = CameraDirective(
            position=position,
            target=target,
            reason=CameraReason.FOCUS,
            strategy=strategy,
            item_id=item_id,
        )
        logger.debug(f"Camera focus requested on {item_id}")
        return self._pending

    def consume(self) -> Optional[CameraDirective]:
        directive, self._pending = self._pending, None
        return directive

    def clear(self):
        self._pending = None
