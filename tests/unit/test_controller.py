"""
Test suite for the layout controller state machine.

Covers:
- Recomputation and the per-strategy position map cache
- Strategy switches, animation progress and cancellation
- Settings validation and rejection
- Overlay transitions and selection lifecycle
- Camera directives and frame listeners
- Degraded and strict handling of strategy failures
"""

import pytest

from layout_engine.core.commands import (
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
from layout_engine.core.item import ItemValidationError
from layout_engine.core.layout_controller import LayoutController
from layout_engine.core.layout_state import (
    ControllerConfig,
    ControllerPhase,
    LayoutComputationError,
    LayoutSettings,
    LayoutStrategy,
    UnknownStrategyError,
)
from layout_engine.visualization import spatial_layout
from layout_engine.visualization.camera import CameraReason
from layout_engine.visualization.spatial_layout import grid_layout, sphere_layout

GRID = LayoutStrategy.GRID
SPHERE = LayoutStrategy.SPHERE
CLUSTER = LayoutStrategy.CLUSTER


def _positions(frame):
    return {item_id: item.position for item_id, item in frame.items.items()}


def _assert_positions_equal(actual, expected):
    assert set(actual) == set(expected)
    for item_id, position in expected.items():
        assert actual[item_id] == pytest.approx(position)


class TestRecomputation:
    """Test item and settings changes"""

    def test_initial_state(self, controller):
        assert controller.phase is ControllerPhase.IDLE
        assert controller.active_strategy is GRID
        assert controller.progress == 1.0
        assert controller.tick().items == {}

    def test_replace_items_computes_active_only(self, loaded_controller):
        stats = loaded_controller.stats

        assert stats.recomputations_for(GRID) == 2  # empty set, then the sample items
        assert stats.recomputations_for(SPHERE) == 0
        assert loaded_controller.position_map(SPHERE) is None

    def test_grid_positions(self, controller):
        controller.replace_items([{"id": i} for i in "abcd"])
        frame = controller.tick()

        assert _positions(frame) == grid_layout(list("abcd"), 2.0)

    def test_reorder_keeps_cached_map(self, loaded_controller, sample_items):
        before = loaded_controller.position_map()

        changed = loaded_controller.replace_items(list(reversed(sample_items)))

        assert changed is False
        assert loaded_controller.position_map() == before
        assert loaded_controller.stats.recomputations_for(GRID) == 2

    def test_id_set_change_recomputes(self, loaded_controller, sample_items):
        changed = loaded_controller.replace_items(sample_items + [{"id": "e"}])

        assert changed is True
        assert set(loaded_controller.position_map()) == {"a", "b", "c", "d", "e"}

    def test_empty_item_set(self, loaded_controller):
        loaded_controller.replace_items([])
        assert loaded_controller.position_map() == {}

    def test_invalid_items_leave_state(self, loaded_controller):
        before = loaded_controller.items

        with pytest.raises(ItemValidationError):
            loaded_controller.replace_items([{"id": "ok"}, {"id": "bad", "weight": -5}])

        assert loaded_controller.items == before

    def test_duplicate_ids_last_wins(self, controller):
        controller.replace_items([{"id": "a", "title": "old"}, {"id": "b"}, {"id": "a", "title": "new"}])

        assert [item.id for item in controller.items] == ["b", "a"]
        assert controller.items[1].title == "new"
        assert len(controller.position_map()) == 2

    def test_settings_change_recomputes_active(self, loaded_controller):
        assert loaded_controller.update_settings(spacing=4.0) is True

        assert loaded_controller.settings.spacing == 4.0
        assert loaded_controller.stats.recomputations_for(GRID) == 3
        assert loaded_controller.position_map() == grid_layout(["a", "b", "c", "d"], 4.0)

    def test_unrelated_setting_is_cache_hit(self, loaded_controller):
        loaded_controller.update_settings(sphere_radius=9.0)
        assert loaded_controller.stats.recomputations_for(GRID) == 2

    def test_same_settings_no_change(self, loaded_controller):
        assert loaded_controller.update_settings(spacing=2.0) is False


class TestInvalidSettings:
    """An invalid value is rejected without recomputation"""

    @pytest.mark.parametrize("changes", [
        {"spacing": 0},
        {"spacing": -2.0},
        {"spacing": float("nan")},
        {"sphere_radius": 0},
        {"cluster_spacing_ratio": 3.0},
        {"no_such_setting": 1.0},
    ])
    def test_rejected(self, loaded_controller, changes):
        settings = loaded_controller.settings
        recomputations = loaded_controller.stats.recomputations_for(GRID)

        assert loaded_controller.update_settings(**changes) is False

        assert loaded_controller.settings == settings
        assert loaded_controller.stats.recomputations_for(GRID) == recomputations
        assert loaded_controller.stats.rejected_settings == 1

    def test_mixed_change_rejected_whole(self, loaded_controller):
        loaded_controller.update_settings(spacing=3.0, sphere_radius=-1)
        assert loaded_controller.settings.spacing == 2.0

    def test_rejection_logged(self, loaded_controller, caplog):
        loaded_controller.update_settings(spacing=0)
        assert "Rejected layout settings" in caplog.text


class TestStrategySwitch:
    """Test switching and the transition animation"""

    def test_switch_starts_animation(self, loaded_controller):
        assert loaded_controller.switch_strategy("sphere") is True

        assert loaded_controller.active_strategy is SPHERE
        assert loaded_controller.phase is ControllerPhase.ANIMATING
        assert loaded_controller.progress == 0.0
        assert loaded_controller.is_animating

    def test_switch_to_active_is_noop(self, loaded_controller):
        assert loaded_controller.switch_strategy(GRID) is False
        assert loaded_controller.stats.strategy_switches == 0
        assert not loaded_controller.camera_reset_requested

    def test_unknown_strategy(self, loaded_controller):
        with pytest.raises(UnknownStrategyError):
            loaded_controller.switch_strategy("helix")
        assert loaded_controller.active_strategy is GRID

    def test_progress_and_completion(self, loaded_controller, clock):
        loaded_controller.switch_strategy(CLUSTER)  # 1.0 s transition

        clock.advance(0.25)
        assert loaded_controller.tick().progress == pytest.approx(0.25)

        clock.advance(10.0)
        frame = loaded_controller.tick()

        assert frame.progress == 1.0
        assert not frame.is_animating
        assert loaded_controller.phase is ControllerPhase.IDLE
        assert loaded_controller.stats.completed_animations == 1
        _assert_positions_equal(_positions(frame), loaded_controller.position_map(CLUSTER))

    def test_progress_independent_of_tick_count(self, sample_items, clock):
        """Same elapsed time yields the same progress however often it is sampled"""
        fine = LayoutController(strategy=GRID, clock=clock)
        coarse = LayoutController(strategy=GRID, clock=clock)
        for c in (fine, coarse):
            c.replace_items(sample_items)
            c.switch_strategy(SPHERE)

        for step in range(1, 11):
            fine.tick(now=step * 0.05)
        coarse.tick(now=0.5)

        assert fine.progress == pytest.approx(coarse.progress)
        assert fine.progress == pytest.approx(0.5 / ControllerConfig().duration_for(SPHERE))

    def test_progress_monotonic(self, loaded_controller, clock):
        loaded_controller.switch_strategy(SPHERE)
        seen = []
        for _ in range(30):
            clock.advance(0.05)
            seen.append(loaded_controller.tick().progress)

        assert seen == sorted(seen)
        assert seen[-1] == 1.0

    def test_clock_going_backwards_ignored(self, loaded_controller, clock):
        clock.advance(1.0)
        loaded_controller.switch_strategy(CLUSTER)
        loaded_controller.tick(now=1.5)

        assert loaded_controller.tick(now=0.2).progress == pytest.approx(0.5)

    def test_animation_starts_from_current_positions(self, loaded_controller):
        grid_positions = dict(loaded_controller.position_map(GRID))

        loaded_controller.switch_strategy(SPHERE)
        frame = loaded_controller.tick()

        _assert_positions_equal(_positions(frame), grid_positions)

    def test_cache_reused_on_return(self, loaded_controller, clock):
        """A -> B -> A reuses A's map without recomputation"""
        grid_map = loaded_controller.position_map(GRID)

        loaded_controller.switch_strategy(SPHERE)
        clock.advance(5.0)
        loaded_controller.tick()
        loaded_controller.switch_strategy(GRID)

        assert loaded_controller.stats.recomputations_for(GRID) == 2
        assert loaded_controller.stats.recomputations_for(SPHERE) == 1
        assert loaded_controller.position_map(GRID) == grid_map

    def test_switch_does_not_touch_other_maps(self, loaded_controller):
        grid_map = loaded_controller.position_map(GRID)
        loaded_controller.switch_strategy(SPHERE)
        loaded_controller.switch_strategy(CLUSTER)

        assert loaded_controller.position_map(GRID) == grid_map
        assert loaded_controller.position_map(SPHERE) == sphere_layout(["a", "b", "c", "d"], 5.0)


class TestAnimationCancel:
    """A new switch cancels the running animation"""

    def test_grid_sphere_grid_mid_animation(self, loaded_controller, clock):
        loaded_controller.switch_strategy(SPHERE)
        clock.advance(0.3)
        mid_frame = loaded_controller.tick()
        assert 0 < mid_frame.progress < 1

        loaded_controller.switch_strategy(GRID)

        assert loaded_controller.active_strategy is GRID
        assert loaded_controller.progress == 0.0
        assert loaded_controller.stats.cancelled_animations == 1

        frames = [loaded_controller.tick()]
        # Restart happens from where the items were drawn, no jump
        _assert_positions_equal(_positions(frames[0]), _positions(mid_frame))

        for _ in range(20):
            clock.advance(0.1)
            frames.append(loaded_controller.tick())

        assert all(frame.strategy is GRID for frame in frames)
        assert frames[-1].progress == 1.0
        _assert_positions_equal(_positions(frames[-1]), loaded_controller.position_map(GRID))

    def test_only_latest_switch_counts(self, loaded_controller):
        for target in (SPHERE, CLUSTER, GRID, SPHERE):
            loaded_controller.switch_strategy(target)

        assert loaded_controller.active_strategy is SPHERE
        assert loaded_controller.stats.cancelled_animations == 3
        assert loaded_controller.stats.strategy_switches == 4

    def test_item_change_mid_animation_retargets(self, loaded_controller, sample_items, clock):
        loaded_controller.switch_strategy(CLUSTER)
        clock.advance(0.5)
        loaded_controller.tick()

        loaded_controller.replace_items(sample_items + [{"id": "e", "category": "idea"}])

        assert loaded_controller.is_animating
        assert loaded_controller.progress == pytest.approx(0.5)
        frame = loaded_controller.tick()
        # New items have no origin and appear at their target
        assert frame.position_of("e") == pytest.approx(loaded_controller.position_map(CLUSTER)["e"])


class TestCamera:
    """Camera directives are delivered once"""

    def test_switch_requests_camera_reset(self, loaded_controller):
        loaded_controller.switch_strategy(SPHERE)

        assert loaded_controller.camera_reset_requested
        first = loaded_controller.tick()
        second = loaded_controller.tick()

        assert first.camera_reset_requested
        assert first.camera_directive.reason is CameraReason.STRATEGY_SWITCH
        assert first.camera_directive.strategy is SPHERE
        assert second.camera_directive is None
        assert not second.camera_reset_requested

    def test_snapshot_does_not_consume(self, loaded_controller):
        loaded_controller.request_camera_reset()

        assert loaded_controller.snapshot().camera_directive is not None
        assert loaded_controller.state().camera_reset_requested
        assert loaded_controller.tick().camera_directive.reason is CameraReason.RESET
        assert loaded_controller.snapshot().camera_directive is None

    def test_focus_item(self, loaded_controller):
        directive = loaded_controller.focus_item("c")

        assert directive.item_id == "c"
        assert directive.target == loaded_controller.position_map()["c"]
        assert not loaded_controller.camera_reset_requested

        frame = loaded_controller.tick()
        assert frame.camera_directive.reason is CameraReason.FOCUS
        assert not frame.camera_reset_requested

    def test_focus_unknown_item(self, loaded_controller):
        assert loaded_controller.focus_item("missing") is None
        assert not loaded_controller.camera_reset_requested


class TestOverlayTransitions:
    """Overlay state flows into frames"""

    def test_search_highlights_in_frame(self, loaded_controller):
        loaded_controller.set_search_query("rust")
        frame = loaded_controller.tick()

        assert frame.items["c"].highlighted
        assert frame.items["a"].dimmed

    def test_category_all_clears_filter(self, loaded_controller):
        loaded_controller.set_category_filter("tech")
        loaded_controller.set_category_filter("all")

        assert loaded_controller.criteria.category_filter is None
        assert loaded_controller.overlay.highlighted_ids == frozenset()

    def test_overlay_independent_of_geometry(self, loaded_controller):
        before = loaded_controller.position_map()
        loaded_controller.set_search_query("python")

        assert loaded_controller.position_map() == before
        assert loaded_controller.stats.recomputations_for(GRID) == 2

    def test_select_unknown_item(self, loaded_controller):
        assert loaded_controller.select_item("nope") is False
        assert loaded_controller.criteria.selected_id is None

    def test_selection_cleared_when_item_removed(self, loaded_controller, sample_items):
        loaded_controller.select_item("b")
        loaded_controller.replace_items([item for item in sample_items if item["id"] != "b"])

        assert loaded_controller.criteria.selected_id is None
        assert not any(frame.dimmed for frame in loaded_controller.tick().items.values())

    def test_selected_item_never_dimmed(self, loaded_controller):
        loaded_controller.set_search_query("rust")
        loaded_controller.select_item("a")
        frame = loaded_controller.tick()

        assert frame.items["a"].selected
        assert not frame.items["a"].dimmed

    def test_search_updates_on_item_edit(self, loaded_controller, sample_items):
        loaded_controller.set_search_query("kotlin")
        assert loaded_controller.overlay.highlighted_ids == frozenset()

        edited = [dict(item) for item in sample_items]
        edited[1]["title"] = "Kotlin coroutines"
        loaded_controller.replace_items(edited)

        assert loaded_controller.overlay.highlighted_ids == frozenset({"b"})

    def test_frame_appearance(self, loaded_controller):
        frame = loaded_controller.tick()

        assert frame.items["a"].color == "#EA4335"
        assert frame.items["a"].scale > 1.0
        assert frame.items["b"].scale == 1.0


class TestDispatch:
    """Commands route to the named transitions"""

    def test_dispatch_all_commands(self, controller, sample_items):
        controller.dispatch(ItemSetChanged(sample_items))
        controller.dispatch(SettingsChanged({"spacing": 3.0}))
        controller.dispatch(SearchQueryChanged("python"))
        controller.dispatch(CategoryFilterChanged("tech"))
        controller.dispatch(SelectionChanged("a"))
        controller.dispatch(XRayModeChanged(True))
        controller.dispatch(StrategySwitchRequested("cluster"))
        controller.dispatch(ResetCameraRequested())
        controller.dispatch(FocusRequested("a"))
        frame = controller.dispatch(Tick(now=0.0))

        assert len(controller.items) == 4
        assert controller.settings.spacing == 3.0
        assert frame.strategy is CLUSTER
        assert frame.x_ray_mode
        assert frame.items["a"].selected
        assert frame.camera_directive.reason is CameraReason.FOCUS

    def test_unsupported_command(self, controller):
        with pytest.raises(TypeError):
            controller.dispatch("switch to grid")


class TestListeners:

    def test_subscribe_and_unsubscribe(self, loaded_controller):
        received = []
        unsubscribe = loaded_controller.subscribe(received.append)

        first = loaded_controller.tick()
        unsubscribe()
        loaded_controller.tick()

        assert received == [first]

    def test_failing_listener_does_not_break_tick(self, loaded_controller):
        received = []

        def broken(frame):
            raise RuntimeError("renderer crashed")

        loaded_controller.subscribe(broken)
        loaded_controller.subscribe(received.append)

        loaded_controller.tick()
        assert len(received) == 1

    def test_frames_are_immutable(self, loaded_controller):
        frame = loaded_controller.tick()

        with pytest.raises(TypeError):
            frame.items["a"] = None
        with pytest.raises(AttributeError):
            frame.progress = 0.5

    def test_frame_serializable(self, loaded_controller):
        data = loaded_controller.tick().to_dict()

        assert data["strategy"] == "grid"
        assert data["items"]["a"]["position"] == list(loaded_controller.position_map()["a"])


class TestComputationFailures:
    """Strategy failures keep the last valid map unless strict"""

    @staticmethod
    def _break_grid(monkeypatch):
        monkeypatch.setitem(
            spatial_layout.STRATEGIES,
            GRID,
            lambda items, s: {item.id: (float("inf"), 0.0, 0.0) for item in items},
        )

    @pytest.fixture
    def broken_grid(self, monkeypatch):
        self._break_grid(monkeypatch)

    @pytest.fixture
    def strict_controller(self, clock, sample_items):
        controller = LayoutController(
            settings=LayoutSettings(spacing=2.0, sphere_radius=5.0),
            strategy=GRID,
            config=ControllerConfig(strict=True),
            clock=clock,
        )
        controller.replace_items(sample_items)
        return controller

    def test_degraded_keeps_last_map(self, loaded_controller, sample_items, broken_grid):
        before = loaded_controller.position_map(GRID)

        loaded_controller.replace_items(sample_items[:2])

        assert loaded_controller.stats.failed_recomputations == 1
        assert isinstance(loaded_controller.last_error, LayoutComputationError)
        # the stale map is no longer valid for the inputs, but stays on screen
        assert GRID not in loaded_controller.state().cached_maps
        positions = _positions(loaded_controller.tick())
        assert set(positions) == {"a", "b"}
        assert positions["a"] == pytest.approx(before["a"])
        assert positions["b"] == pytest.approx(before["b"])

    def test_degraded_logs_traceback(self, loaded_controller, sample_items, broken_grid, caplog):
        loaded_controller.replace_items(sample_items[:2])

        errors = [record for record in caplog.records if record.levelname == "ERROR"]
        assert errors
        assert errors[0].exc_info is not None
        assert errors[0].exc_info[0] is LayoutComputationError

    def test_strict_raises(self, clock, sample_items, broken_grid):
        controller = LayoutController(strategy=SPHERE, config=ControllerConfig(strict=True), clock=clock)
        controller.replace_items(sample_items)

        with pytest.raises(LayoutComputationError):
            controller.switch_strategy(GRID)

        assert controller.active_strategy is SPHERE
        assert controller.phase is ControllerPhase.IDLE

    def test_strict_replace_keeps_previous_items(self, strict_controller, sample_items, monkeypatch):
        before = strict_controller.position_map()
        self._break_grid(monkeypatch)

        with pytest.raises(LayoutComputationError):
            strict_controller.replace_items(sample_items + [{"id": "e"}])

        assert [item.id for item in strict_controller.items] == ["a", "b", "c", "d"]
        assert strict_controller.position_map() == before
        assert set(_positions(strict_controller.tick())) == {item.id for item in strict_controller.items}
        assert strict_controller.phase is ControllerPhase.IDLE

    def test_strict_replace_keeps_selection_and_overlay(self, strict_controller, sample_items, monkeypatch):
        strict_controller.select_item("b")
        strict_controller.set_search_query("rust")
        overlay = strict_controller.overlay
        self._break_grid(monkeypatch)

        with pytest.raises(LayoutComputationError):
            strict_controller.replace_items(sample_items[:1])

        assert strict_controller.criteria.selected_id == "b"
        assert strict_controller.overlay == overlay

    def test_strict_settings_change_rolled_back(self, strict_controller, monkeypatch):
        before = strict_controller.position_map()
        self._break_grid(monkeypatch)

        with pytest.raises(LayoutComputationError):
            strict_controller.update_settings(spacing=3.0)

        assert strict_controller.settings.spacing == 2.0
        assert strict_controller.position_map() == before
        assert strict_controller.phase is ControllerPhase.IDLE


class TestStateSnapshot:

    def test_clock_reading(self, controller, clock):
        clock.advance(3.0)
        assert controller.clock() == 3.0

    def test_cached_maps_only_valid(self, loaded_controller, sample_items):
        loaded_controller.switch_strategy(SPHERE)
        assert set(loaded_controller.state().cached_maps) == {GRID, SPHERE}

        loaded_controller.replace_items(sample_items + [{"id": "z"}])
        state = loaded_controller.state()

        assert set(state.cached_maps) == {SPHERE}
        assert state.to_dict()["active_strategy"] == "sphere"

    def test_cached_maps_read_only(self, loaded_controller):
        positions = loaded_controller.state().cached_maps[GRID]
        with pytest.raises(TypeError):
            positions["a"] = (0.0, 0.0, 0.0)
