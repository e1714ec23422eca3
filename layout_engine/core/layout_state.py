"""
Layout State - settings, snapshots and errors shared by the layout engine.

Everything here is either an immutable value or a plain counter holder, so it
can be handed to readers without exposing the controller's internals.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Tuple

Position = Tuple[float, float, float]
PositionMap = Dict[str, Position]


class LayoutStrategy(str, Enum):
    """Interchangeable placement strategies"""
    GRID = "grid"
    SPHERE = "sphere"
    CLUSTER = "cluster"


class ControllerPhase(str, Enum):
    IDLE = "idle"
    RECOMPUTING = "recomputing"
    ANIMATING = "animating"


def parse_strategy(value) -> LayoutStrategy:
    """Resolve a strategy from an enum member or its name."""
    if isinstance(value, LayoutStrategy):
        return value
    try:
        return LayoutStrategy(str(value).lower())
    except ValueError:
        available = [s.value for s in LayoutStrategy]
        raise UnknownStrategyError(f"Unknown strategy: {value}. Available: {available}")


@dataclass(frozen=True)
class LayoutSettings:
    """
    Geometry inputs of the placement strategies.

    Construction validates every field, so ``dataclasses.replace`` can be used
    to derive a changed copy and a bad value never produces an instance.
    """
    spacing: float = 2.0
    sphere_radius: float = 5.0
    cluster_spacing_ratio: float = 0.5
    cluster_anchor_factor: float = 3.0

    def __post_init__(self):
        if not _is_positive(self.spacing):
            raise InvalidSpacingError(f"Spacing must be a finite number > 0, got {self.spacing!r}")
        if not _is_positive(self.sphere_radius):
            raise InvalidRadiusError(f"Sphere radius must be a finite number > 0, got {self.sphere_radius!r}")
        if not _is_positive(self.cluster_spacing_ratio) or self.cluster_spacing_ratio > 1.0:
            raise InvalidSettingError(
                f"Cluster spacing ratio must be in (0, 1], got {self.cluster_spacing_ratio!r}"
            )
        if not _is_positive(self.cluster_anchor_factor):
            raise InvalidSettingError(
                f"Cluster anchor factor must be a finite number > 0, got {self.cluster_anchor_factor!r}"
            )

    @property
    def cluster_spacing(self) -> float:
        return self.spacing * self.cluster_spacing_ratio


def _is_positive(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


# Progress of 0.02 (grid) and 0.015 (sphere) per frame at 60 fps
DEFAULT_TRANSITION_DURATIONS: Dict[LayoutStrategy, float] = {
    LayoutStrategy.GRID: 50 / 60,
    LayoutStrategy.SPHERE: (1 / 0.015) / 60,
    LayoutStrategy.CLUSTER: 1.0,
}


@dataclass
class ControllerConfig:
    """Configuration for the layout controller"""
    transition_durations: Dict[LayoutStrategy, float] = field(
        default_factory=lambda: dict(DEFAULT_TRANSITION_DURATIONS)
    )
    camera_min_distance: float = 10.0
    strict: bool = False  # Re-raise strategy failures instead of degrading

    def duration_for(self, strategy: LayoutStrategy) -> float:
        return self.transition_durations.get(strategy, 1.0)


@dataclass(frozen=True)
class CachedLayout:
    """A completed position map and the inputs it was computed from."""
    strategy: LayoutStrategy
    positions: Mapping[str, Position]
    signature: Tuple

    @classmethod
    def build(cls, strategy: LayoutStrategy, positions: PositionMap, signature: Tuple) -> "CachedLayout":
        return cls(strategy=strategy, positions=MappingProxyType(dict(positions)), signature=signature)


@dataclass(frozen=True)
class LayoutStateSnapshot:
    """Read-only view of the controller's layout state"""
    active_strategy: LayoutStrategy
    phase: ControllerPhase
    cached_maps: Mapping[LayoutStrategy, Mapping[str, Position]]
    transition_progress: float
    is_animating: bool
    camera_reset_requested: bool
    settings: LayoutSettings

    def to_dict(self) -> Dict:
        return {
            "active_strategy": self.active_strategy.value,
            "phase": self.phase.value,
            "cached_strategies": sorted(s.value for s in self.cached_maps),
            "transition_progress": self.transition_progress,
            "is_animating": self.is_animating,
            "camera_reset_requested": self.camera_reset_requested,
            "settings": {
                "spacing": self.settings.spacing,
                "sphere_radius": self.settings.sphere_radius,
                "cluster_spacing_ratio": self.settings.cluster_spacing_ratio,
                "cluster_anchor_factor": self.settings.cluster_anchor_factor,
            },
        }


@dataclass
class LayoutStats:
    """Statistics for controller operations"""
    recomputations: Dict[LayoutStrategy, int] = field(default_factory=dict)
    cache_hits: int = 0
    strategy_switches: int = 0
    cancelled_animations: int = 0
    completed_animations: int = 0
    rejected_settings: int = 0
    failed_recomputations: int = 0
    ticks: int = 0

    def record_recomputation(self, strategy: LayoutStrategy):
        self.recomputations[strategy] = self.recomputations.get(strategy, 0) + 1

    def recomputations_for(self, strategy: LayoutStrategy) -> int:
        return self.recomputations.get(strategy, 0)

    def to_dict(self) -> Dict:
        return {
            "recomputations": {s.value: n for s, n in self.recomputations.items()},
            "cache_hits": self.cache_hits,
            "strategy_switches": self.strategy_switches,
            "cancelled_animations": self.cancelled_animations,
            "completed_animations": self.completed_animations,
            "rejected_settings": self.rejected_settings,
            "failed_recomputations": self.failed_recomputations,
            "ticks": self.ticks,
        }


# Custom exceptions
class LayoutError(Exception):
    """Base exception for layout engine errors"""
    pass


class InvalidSettingError(LayoutError):
    """Raised when a layout setting is out of range"""
    pass


class InvalidSpacingError(InvalidSettingError):
    """Raised when spacing is not a finite positive number"""
    pass


class InvalidRadiusError(InvalidSettingError):
    """Raised when the sphere radius is not a finite positive number"""
    pass


class UnknownStrategyError(LayoutError):
    """Raised when a strategy name cannot be resolved"""
    pass


class LayoutComputationError(LayoutError):
    """Raised when a strategy produces unusable coordinates"""
    pass
