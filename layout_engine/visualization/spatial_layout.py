"""
3D Spatial Layout Strategies for Board Visualization

This module provides the placement strategies that turn an ordered set of item
ids into 3D coordinates. Every strategy is a pure function of its inputs:
identical ids, order and settings always produce the identical map.
"""

import logging
import math
from collections import OrderedDict
from typing import Callable, Dict, Hashable, List, Sequence, Tuple

import numpy as np

from ..core.layout_state import (
    LayoutComputationError,
    LayoutSettings,
    LayoutStrategy,
    Position,
    PositionMap,
)

logger = logging.getLogger(__name__)

GOLDEN_RATIO = (1.0 + math.sqrt(5.0)) / 2.0
GOLDEN_ANGLE = math.pi * (3.0 - math.sqrt(5.0))

# Anchor slots for cluster centers, in anchor units on the xz plane
ANCHOR_SLOTS: List[Tuple[float, float, float]] = [
    (0.0, 0.0, 0.0),    # Center
    (-1.0, 0.0, 0.0),   # Left
    (1.0, 0.0, 0.0),    # Right
    (0.0, 0.0, -1.0),   # Back
    (0.0, 0.0, 1.0),    # Front
    (-1.0, 0.0, -1.0),
    (1.0, 0.0, -1.0),
    (-1.0, 0.0, 1.0),
    (1.0, 0.0, 1.0),
]

CATEGORY_SLOTS: Dict[str, int] = {
    "general": 0,
    "text": 1,
    "image": 2,
    "link": 3,
    "embed": 4,
    "tech": 5,
    "design": 6,
    "idea": 7,
    "question": 8,
}

OUTER_RING_RADIUS = 3.0


def _grid_size(count: int) -> int:
    """Smallest side length of a square grid holding ``count`` cells."""
    side = math.isqrt(count)
    return side if side * side == count else side + 1


def grid_layout(ids: Sequence[str], spacing: float) -> PositionMap:
    """
    Place items row by row on a centered square grid in the xz plane.

    Args:
        ids: Unique item ids in display order
        spacing: Distance between neighbouring cells

    Returns:
        Dictionary mapping item ids to 3D coordinates
    """
    count = len(ids)
    if count == 0:
        return {}

    grid_size = _grid_size(count)
    offset = (grid_size - 1) * spacing / 2.0

    index = np.arange(count)
    xs = (index % grid_size) * spacing - offset
    zs = (index // grid_size) * spacing - offset

    return {item_id: (float(x), 0.0, float(z)) for item_id, x, z in zip(ids, xs, zs)}


def sphere_layout(ids: Sequence[str], radius: float) -> PositionMap:
    """
    Distribute items over a sphere surface using the Fibonacci sphere.

    The i-th of n items (1-indexed) sits at inclination acos(1 - 2i/n) and
    azimuth 2*pi*i/phi. A single item sits on the +z pole.
    """
    count = len(ids)
    if count == 0:
        return {}
    if count == 1:
        return {ids[0]: (0.0, 0.0, float(radius))}

    i = np.arange(1, count + 1, dtype=float)
    inclination = np.arccos(np.clip(1.0 - 2.0 * i / count, -1.0, 1.0))
    azimuth = 2.0 * math.pi * i / GOLDEN_RATIO

    xs = radius * np.sin(inclination) * np.cos(azimuth)
    ys = radius * np.sin(inclination) * np.sin(azimuth)
    zs = radius * np.cos(inclination)

    return {
        item_id: (float(x), float(y), float(z))
        for item_id, x, y, z in zip(ids, xs, ys, zs)
    }


def cluster_layout(entries: Sequence[Tuple[str, str]],
                   spacing: float,
                   spacing_ratio: float = 0.5,
                   anchor_factor: float = 3.0) -> PositionMap:
    """
    Group items by category around fixed anchors and grid each group.

    Args:
        entries: (item id, category) pairs in display order
        spacing: Primary item spacing
        spacing_ratio: Fraction of ``spacing`` used between items of one group
        anchor_factor: Minimum anchor distance in multiples of ``spacing``

    Returns:
        Dictionary mapping item ids to 3D coordinates
    """
    if not entries:
        return {}

    groups = _group_by_category(entries)
    inner_spacing = spacing * spacing_ratio

    # Anchors move apart far enough that the widest group never overlaps a neighbour
    widest = max((_grid_size(len(ids)) - 1) * inner_spacing for ids in groups.values())
    anchor_unit = max(anchor_factor * spacing, widest + inner_spacing)

    anchors = _category_anchors(list(groups.keys()), anchor_unit)

    positions: PositionMap = {}
    for category, ids in groups.items():
        ax, ay, az = anchors[category]
        for item_id, (x, y, z) in grid_layout(ids, inner_spacing).items():
            positions[item_id] = (ax + x, ay + y, az + z)

    return positions


def _group_by_category(entries: Sequence[Tuple[str, str]]) -> "OrderedDict[str, List[str]]":
    """Partition ids by category, keeping input order inside each group."""
    groups: "OrderedDict[str, List[str]]" = OrderedDict()
    for item_id, category in entries:
        groups.setdefault(category, []).append(item_id)
    return groups


def _category_anchors(categories: List[str], anchor_unit: float) -> Dict[str, Position]:
    """
    Fixed anchor for each category.

    Known categories use their reserved slot. Other categories, taken in sorted
    order so the result does not depend on input order, continue on an outer
    ring with golden angle increments.
    """
    anchors: Dict[str, Position] = {}
    unknown = sorted(c for c in categories if c not in CATEGORY_SLOTS)

    for category in categories:
        if category in CATEGORY_SLOTS:
            slot = ANCHOR_SLOTS[CATEGORY_SLOTS[category]]
        else:
            slot = _get_ring_position(unknown.index(category))
        anchors[category] = (slot[0] * anchor_unit, slot[1] * anchor_unit, slot[2] * anchor_unit)

    return anchors


def _get_ring_position(index: int) -> Position:
    """Position on the outer anchor ring, in anchor units."""
    theta = GOLDEN_ANGLE * index
    return (OUTER_RING_RADIUS * math.cos(theta), 0.0, OUTER_RING_RADIUS * math.sin(theta))


# Strategy registry: each entry adapts (items, settings) to the strategy's own inputs
StrategyFunction = Callable[[Sequence, LayoutSettings], PositionMap]

STRATEGIES: Dict[LayoutStrategy, StrategyFunction] = {
    LayoutStrategy.GRID: lambda items, s: grid_layout([item.id for item in items], s.spacing),
    LayoutStrategy.SPHERE: lambda items, s: sphere_layout([item.id for item in items], s.sphere_radius),
    LayoutStrategy.CLUSTER: lambda items, s: cluster_layout(
        [(item.id, item.category) for item in items],
        s.spacing,
        s.cluster_spacing_ratio,
        s.cluster_anchor_factor,
    ),
}


def compute_layout(strategy: LayoutStrategy, items: Sequence, settings: LayoutSettings) -> PositionMap:
    """
    Compute the complete position map of one strategy.

    Args:
        strategy: Strategy to run
        items: Items with unique ids, in display order
        settings: Geometry settings

    Returns:
        Dictionary mapping every item id to a 3D coordinate

    Raises:
        LayoutComputationError: If the strategy fails or yields non-finite coordinates
    """
    try:
        positions = STRATEGIES[strategy](items, settings)
    except (ArithmeticError, ValueError) as e:
        raise LayoutComputationError(f"{strategy.value} layout failed: {e}") from e

    if positions and not np.isfinite(np.asarray(list(positions.values()), dtype=float)).all():
        raise LayoutComputationError(f"{strategy.value} layout produced non-finite coordinates")

    logger.debug(f"{strategy.value} layout computed for {len(positions)} items")
    return positions


def layout_signature(strategy: LayoutStrategy, items: Sequence, settings: LayoutSettings) -> Tuple[Hashable, ...]:
    """
    Cache key of the inputs a strategy depends on.

    Only the id set matters for grid and sphere, so reordering alone keeps a
    cached map valid. Cluster also depends on each item's category.
    """
    if strategy == LayoutStrategy.GRID:
        return (frozenset(item.id for item in items), settings.spacing)
    if strategy == LayoutStrategy.SPHERE:
        return (frozenset(item.id for item in items), settings.sphere_radius)
    return (
        frozenset((item.id, item.category) for item in items),
        settings.spacing,
        settings.cluster_spacing_ratio,
        settings.cluster_anchor_factor,
    )
