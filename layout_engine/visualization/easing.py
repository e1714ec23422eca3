"""
Easing functions for layout transitions.

Easing only remaps animation progress for rendering. Stored position maps are
never touched; frames interpolate from the on-screen origin toward them.
"""

import math
from typing import Callable, Dict, Mapping

import numpy as np

from ..core.layout_state import LayoutStrategy, Position, PositionMap

EasingFunction = Callable[[float], float]


def linear(x: float) -> float:
    return x


def ease_out_cubic(x: float) -> float:
    return 1 - math.pow(1 - x, 3)


def ease_in_out_cubic(x: float) -> float:
    if x < 0.5:
        return 4 * x * x * x
    return 1 - math.pow(-2 * x + 2, 3) / 2


def ease_out_elastic(x: float) -> float:
    """Overshoots past 1 and settles, exact at both ends."""
    c4 = (2 * math.pi) / 3
    if x <= 0:
        return 0.0
    if x >= 1:
        return 1.0
    return math.pow(2, -10 * x) * math.sin((x * 10 - 0.75) * c4) + 1


EASING_BY_STRATEGY: Dict[LayoutStrategy, EasingFunction] = {
    LayoutStrategy.GRID: ease_out_cubic,
    LayoutStrategy.SPHERE: ease_out_elastic,
    LayoutStrategy.CLUSTER: ease_in_out_cubic,
}


def easing_for(strategy: LayoutStrategy) -> EasingFunction:
    return EASING_BY_STRATEGY.get(strategy, linear)


def lerp_position(start: Position, end: Position, t: float) -> Position:
    return (
        start[0] + (end[0] - start[0]) * t,
        start[1] + (end[1] - start[1]) * t,
        start[2] + (end[2] - start[2]) * t,
    )


def blend_positions(origin: Mapping[str, Position],
                    target: Mapping[str, Position],
                    t: float) -> PositionMap:
    """
    Interpolate every target position from its origin.

    Ids missing from ``origin`` (items that appeared mid-transition) are placed
    directly at their target.
    """
    if not target:
        return {}

    ids = list(target.keys())
    end = np.asarray([target[i] for i in ids], dtype=float)
    start = np.asarray([origin.get(i, target[i]) for i in ids], dtype=float)
    blended = start + (end - start) * t

    return {item_id: (float(p[0]), float(p[1]), float(p[2])) for item_id, p in zip(ids, blended)}
