"""
Layout Controller - owns strategy selection, cached position maps and the
transition state machine.

The controller is the only writer of layout and overlay state. Callers change
it through named transition methods (or ``dispatch`` with a command object)
and read it through immutable snapshots: ``tick`` advances the animation and
returns the frame for the renderer, ``snapshot`` and ``state`` only look.

Phases:
    IDLE        -> nothing in flight
    RECOMPUTING -> a position map is being rebuilt (synchronous, never observed
                   between ticks)
    ANIMATING   -> interpolating from the on-screen positions to the active
                   strategy's map
"""

import dataclasses
import logging
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..visualization.appearance import category_color, node_scale
from ..visualization.camera import CameraDirective, CameraReason, CameraSynchronizer
from ..visualization.easing import blend_positions, easing_for
from ..visualization.spatial_layout import compute_layout, layout_signature
from .commands import (
    CategoryFilterChanged,
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
from .frames import ItemFrame, LayoutFrame
from .item import BaseItem, parse_items
from .layout_state import (
    CachedLayout,
    ControllerConfig,
    ControllerPhase,
    InvalidSettingError,
    LayoutComputationError,
    LayoutSettings,
    LayoutStateSnapshot,
    LayoutStats,
    LayoutStrategy,
    Position,
    parse_strategy,
)
from .overlay import OverlayCriteria, OverlayState, derive_overlay

FrameListener = Callable[[LayoutFrame], None]

_EMPTY_POSITIONS: Mapping[str, Position] = MappingProxyType({})


@dataclass
class _Transition:
    """In-flight animation toward the active strategy"""
    source: LayoutStrategy
    target: LayoutStrategy
    origin: Mapping[str, Position]
    duration: float
    last_time: float


class LayoutController:
    """
    Single owner of the layout engine state.

    Item and settings changes recompute the active strategy's map at once;
    other strategies are recomputed when they are next activated, unless their
    cached map is still valid for the current inputs.
    """

    def __init__(self,
                 settings: Optional[LayoutSettings] = None,
                 strategy: Any = LayoutStrategy.SPHERE,
                 config: Optional[ControllerConfig] = None,
                 clock: Optional[Callable[[], float]] = None,
                 logger=None):
        """
        Initialize the layout controller.

        Args:
            settings: Initial geometry settings
            strategy: Initially active strategy (enum member or name)
            config: Transition durations, camera distance and failure policy
            clock: Monotonic time source in seconds, used for animation timing
            logger: Logger for debugging and monitoring
        """
        self._settings = settings or LayoutSettings()
        self.config = config or ControllerConfig()
        self._clock = clock or time.monotonic
        self.logger = logger or logging.getLogger(__name__)
        self.stats = LayoutStats()
        self.last_error: Optional[Exception] = None

        self._active = parse_strategy(strategy)
        self._phase = ControllerPhase.IDLE
        self._progress = 1.0
        self._transition: Optional[_Transition] = None

        self._items: Tuple[BaseItem, ...] = ()
        self._items_by_id: Dict[str, BaseItem] = {}
        self._cache: Dict[LayoutStrategy, CachedLayout] = {}

        self._criteria = OverlayCriteria()
        self._overlay = OverlayState()
        self._camera = CameraSynchronizer(self.config.camera_min_distance)
        self._x_ray_mode = False

        self._listeners: List[FrameListener] = []
        self._frame_index = 0

        self._handlers: Dict[type, Callable[[Any], Any]] = {
            ItemSetChanged: lambda c: self.replace_items(c.items),
            SettingsChanged: lambda c: self.update_settings(**c.changes),
            StrategySwitchRequested: lambda c: self.switch_strategy(c.target),
            ResetCameraRequested: lambda c: self.request_camera_reset(),
            FocusRequested: lambda c: self.focus_item(c.item_id),
            SearchQueryChanged: lambda c: self.set_search_query(c.query),
            CategoryFilterChanged: lambda c: self.set_category_filter(c.category),
            SelectionChanged: lambda c: self.select_item(c.item_id),
            XRayModeChanged: lambda c: self.set_x_ray_mode(c.enabled),
            Tick: lambda c: self.tick(c.now),
        }

        self._recompute_active()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def settings(self) -> LayoutSettings:
        return self._settings

    @property
    def active_strategy(self) -> LayoutStrategy:
        return self._active

    @property
    def phase(self) -> ControllerPhase:
        return self._phase

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def is_animating(self) -> bool:
        return self._transition is not None

    @property
    def items(self) -> Tuple[BaseItem, ...]:
        return self._items

    @property
    def criteria(self) -> OverlayCriteria:
        return self._criteria

    @property
    def overlay(self) -> OverlayState:
        return self._overlay

    @property
    def x_ray_mode(self) -> bool:
        return self._x_ray_mode

    @property
    def camera_reset_requested(self) -> bool:
        return self._camera.reset_requested

    def clock(self) -> float:
        """Current reading of the controller clock in seconds"""
        return self._clock()

    def position_map(self, strategy: Any = None) -> Optional[Mapping[str, Position]]:
        """Cached map of a strategy if it is valid for the current items and settings"""
        strategy = self._active if strategy is None else parse_strategy(strategy)
        cached = self._cache.get(strategy)
        if cached is None or cached.signature != layout_signature(strategy, self._items, self._settings):
            return None
        return cached.positions

    def state(self) -> LayoutStateSnapshot:
        cached_maps = {}
        for strategy in self._cache:
            positions = self.position_map(strategy)
            if positions is not None:
                cached_maps[strategy] = positions
        return LayoutStateSnapshot(
            active_strategy=self._active,
            phase=self._phase,
            cached_maps=MappingProxyType(cached_maps),
            transition_progress=self._progress,
            is_animating=self.is_animating,
            camera_reset_requested=self._camera.reset_requested,
            settings=self._settings,
        )

    def snapshot(self) -> LayoutFrame:
        """Current frame without advancing time or consuming the camera directive"""
        return self._build_frame(self._clock(), consume_camera=False)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def dispatch(self, command) -> Any:
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"Unsupported command: {command!r}")
        return handler(command)

    def replace_items(self, items: Iterable[Any]) -> bool:
        """
        Replace the full item list.

        Args:
            items: Item dictionaries or models in display order

        Returns:
            True if the set of ids changed

        Raises:
            ItemValidationError: If the list is rejected; the previous items stay
            LayoutComputationError: If strict and the active layout fails; the
                previous items stay
        """
        parsed = parse_items(items)

        previous = (self._items, self._items_by_id, self._criteria, self._overlay)
        old_ids = set(self._items_by_id)
        self._items = tuple(parsed)
        self._items_by_id = {item.id: item for item in parsed}
        id_set_changed = old_ids != set(self._items_by_id)

        if self._criteria.selected_id is not None and self._criteria.selected_id not in self._items_by_id:
            self.logger.debug(f"Selected item {self._criteria.selected_id} left the item set")
            self._criteria = dataclasses.replace(self._criteria, selected_id=None)

        self._refresh_overlay()
        try:
            self._recompute_active()
        except LayoutComputationError:
            self._items, self._items_by_id, self._criteria, self._overlay = previous
            raise

        if id_set_changed:
            self.logger.info(f"Item set changed: {len(old_ids)} -> {len(self._items_by_id)} items")
        return id_set_changed

    def update_settings(self, **changes) -> bool:
        """
        Apply layout setting changes.

        An invalid value rejects the whole change: the previous settings stay in
        effect and nothing is recomputed.

        Returns:
            True if the settings changed
        """
        if not changes:
            return False

        try:
            candidate = dataclasses.replace(self._settings, **changes)
        except TypeError as e:
            return self._reject_settings(changes, InvalidSettingError(f"Unknown layout setting: {e}"))
        except InvalidSettingError as e:
            return self._reject_settings(changes, e)

        if candidate == self._settings:
            return False

        previous = self._settings
        self._settings = candidate
        try:
            self._recompute_active()
        except LayoutComputationError:
            self._settings = previous
            raise

        self.logger.debug(f"Layout settings updated: {changes}")
        return True

    def switch_strategy(self, target: Any) -> bool:
        """
        Switch the active strategy and start the transition animation.

        Any running animation is cancelled; the new one starts from the
        positions currently on screen with progress reset to 0. Requesting the
        strategy that is already active does nothing.

        Returns:
            True if a switch happened

        Raises:
            UnknownStrategyError: If ``target`` is not a known strategy
        """
        target = parse_strategy(target)
        if target == self._active:
            self.logger.debug(f"Strategy {target.value} already active")
            return False

        origin = self._displayed_positions()
        source = self._active

        prior_phase = self._phase
        self._phase = ControllerPhase.RECOMPUTING
        try:
            target_positions = self._ensure_map(target)
        except LayoutComputationError:
            self._phase = prior_phase
            raise

        if self._transition is not None:
            self.stats.cancelled_animations += 1
            self.logger.info(
                f"Cancelled {self._transition.target.value} transition at progress {self._progress:.2f}"
            )

        self._active = target
        self._progress = 0.0
        self._transition = _Transition(
            source=source,
            target=target,
            origin=MappingProxyType(origin),
            duration=self.config.duration_for(target),
            last_time=self._clock(),
        )
        self._phase = ControllerPhase.ANIMATING
        self._camera.request_reset(target, target_positions, CameraReason.STRATEGY_SWITCH)

        self.stats.strategy_switches += 1
        self.logger.info(f"Switching layout {source.value} -> {target.value}")
        return True

    def request_camera_reset(self) -> CameraDirective:
        return self._camera.request_reset(self._active, self._active_positions(), CameraReason.RESET)

    def focus_item(self, item_id: str) -> Optional[CameraDirective]:
        """Aim the camera at one item; unknown ids are ignored"""
        if item_id not in self._items_by_id:
            self.logger.warning(f"Cannot focus unknown item {item_id}")
            return None
        position = self._displayed_positions().get(item_id)
        if position is None:
            self.logger.warning(f"Item {item_id} has no position in the {self._active.value} layout")
            return None
        return self._camera.request_focus(self._active, item_id, position)

    def consume_camera_directive(self) -> Optional[CameraDirective]:
        return self._camera.consume()

    def set_search_query(self, query: Optional[str]) -> OverlayState:
        self._criteria = OverlayCriteria.normalized(
            query, self._criteria.category_filter, self._criteria.selected_id
        )
        return self._refresh_overlay()

    def set_category_filter(self, category: Optional[str]) -> OverlayState:
        self._criteria = OverlayCriteria.normalized(
            self._criteria.search_query, category, self._criteria.selected_id
        )
        return self._refresh_overlay()

    def select_item(self, item_id: Optional[str]) -> bool:
        """Select an item, or clear the selection with None"""
        if item_id is not None and item_id not in self._items_by_id:
            self.logger.warning(f"Cannot select unknown item {item_id}")
            return False
        self._criteria = dataclasses.replace(self._criteria, selected_id=item_id)
        self._refresh_overlay()
        return True

    def clear_selection(self):
        self.select_item(None)

    def set_x_ray_mode(self, enabled: bool):
        self._x_ray_mode = bool(enabled)

    def toggle_x_ray_mode(self) -> bool:
        self._x_ray_mode = not self._x_ray_mode
        return self._x_ray_mode

    def tick(self, now: Optional[float] = None) -> LayoutFrame:
        """
        Advance the animation by the elapsed time and produce a frame.

        The pending camera directive, if any, is delivered in this frame and
        cleared. Subscribed listeners receive the same frame.

        Args:
            now: Current time in seconds; defaults to the controller clock
        """
        now = self._clock() if now is None else now
        self.stats.ticks += 1

        if self._transition is not None:
            self._advance(now)

        self._frame_index += 1
        frame = self._build_frame(now, consume_camera=True)
        self._notify(frame)
        return frame

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, listener: FrameListener) -> Callable[[], None]:
        """
        Register a listener called with every ticked frame.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, frame: LayoutFrame):
        for listener in list(self._listeners):
            try:
                listener(frame)
            except Exception as e:
                self.logger.error(f"Frame listener failed: {e}")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reject_settings(self, changes: Dict[str, Any], error: InvalidSettingError) -> bool:
        self.stats.rejected_settings += 1
        self.last_error = error
        self.logger.warning(f"Rejected layout settings {changes}: {error}")
        return False

    def _recompute_active(self):
        prior_phase = self._phase
        self._phase = ControllerPhase.RECOMPUTING
        try:
            self._ensure_map(self._active)
        finally:
            self._phase = prior_phase

    def _ensure_map(self, strategy: LayoutStrategy) -> Mapping[str, Position]:
        """
        Return a map of ``strategy`` valid for the current inputs.

        A cached map is reused when its inputs are unchanged. Otherwise the map
        is rebuilt completely and swapped in. If the strategy fails, the last
        cached map is kept unless the controller is strict.
        """
        signature = layout_signature(strategy, self._items, self._settings)
        cached = self._cache.get(strategy)
        if cached is not None and cached.signature == signature:
            self.stats.cache_hits += 1
            return cached.positions

        try:
            positions = compute_layout(strategy, self._items, self._settings)
        except LayoutComputationError as e:
            self.stats.failed_recomputations += 1
            self.last_error = e
            self.logger.error(f"Keeping last {strategy.value} layout after failed recomputation: {e}", exc_info=True)
            if self.config.strict:
                raise
            return cached.positions if cached is not None else _EMPTY_POSITIONS

        self._cache[strategy] = CachedLayout.build(strategy, positions, signature)
        self.stats.record_recomputation(strategy)
        self.logger.debug(f"Recomputed {strategy.value} layout for {len(positions)} items")
        return self._cache[strategy].positions

    def _active_positions(self) -> Mapping[str, Position]:
        cached = self._cache.get(self._active)
        return cached.positions if cached is not None else _EMPTY_POSITIONS

    def _eased_progress(self) -> float:
        if self._transition is None:
            return 1.0
        return easing_for(self._transition.target)(self._progress)

    def _displayed_positions(self) -> Dict[str, Position]:
        """Positions as the renderer draws them right now"""
        target = self._active_positions()
        if self._transition is None:
            return dict(target)
        return blend_positions(self._transition.origin, target, self._eased_progress())

    def _advance(self, now: float):
        transition = self._transition
        elapsed = max(0.0, now - transition.last_time)
        transition.last_time = max(transition.last_time, now)

        if transition.duration > 0:
            self._progress = min(1.0, self._progress + elapsed / transition.duration)
        else:
            self._progress = 1.0

        if self._progress >= 1.0:
            self._progress = 1.0
            self._transition = None
            self._phase = ControllerPhase.IDLE
            self.stats.completed_animations += 1
            self.logger.debug(f"Transition to {transition.target.value} complete")

    def _refresh_overlay(self) -> OverlayState:
        self._overlay = derive_overlay(self._items, self._criteria)
        return self._overlay

    def _build_frame(self, now: float, consume_camera: bool) -> LayoutFrame:
        positions = self._displayed_positions()
        overlay = self._overlay

        item_frames: Dict[str, ItemFrame] = {}
        for item in self._items:
            position = positions.get(item.id)
            if position is None:
                continue
            flags = overlay.flags_for(item.id)
            item_frames[item.id] = ItemFrame(
                position=position,
                highlighted=flags.highlighted,
                dimmed=flags.dimmed,
                selected=flags.selected,
                color=category_color(item.category),
                scale=node_scale(item.weight),
            )

        camera_reset_requested = self._camera.reset_requested
        directive = self._camera.consume() if consume_camera else self._camera.pending

        return LayoutFrame(
            frame_index=self._frame_index,
            timestamp=now,
            strategy=self._active,
            phase=self._phase,
            progress=self._progress,
            eased_progress=self._eased_progress(),
            is_animating=self.is_animating,
            camera_reset_requested=camera_reset_requested,
            camera_directive=directive,
            x_ray_mode=self._x_ray_mode,
            items=MappingProxyType(item_frames),
        )
