"""
Tests for camera viewpoints and the one-shot directive holder
"""

import math

import pytest

from layout_engine.core.layout_state import LayoutStrategy
from layout_engine.visualization.camera import (
    CameraReason,
    CameraSynchronizer,
    bounding_radius,
    default_viewpoint,
    focus_viewpoint,
)


class TestViewpoints:

    def test_bounding_radius(self):
        assert bounding_radius({"a": (3.0, 4.0, 0.0), "b": (1.0, 0.0, 0.0)}) == pytest.approx(5.0)
        assert bounding_radius({}) == 0.0

    def test_min_distance_respected(self):
        position, target = default_viewpoint(LayoutStrategy.SPHERE, {"a": (0.0, 0.0, 1.0)}, min_distance=10.0)

        assert target == (0.0, 0.0, 0.0)
        assert position == pytest.approx((0.0, 0.0, 10.0))

    def test_distance_grows_with_layout(self):
        positions = {"a": (0.0, 0.0, 20.0)}
        position, _ = default_viewpoint(LayoutStrategy.SPHERE, positions, min_distance=10.0)

        assert math.dist(position, (0.0, 0.0, 0.0)) == pytest.approx(50.0)

    def test_grid_viewed_from_above(self):
        position, _ = default_viewpoint(LayoutStrategy.GRID, {}, min_distance=10.0)
        assert position[1] > 0
        assert position[2] > 0

    def test_focus_looks_at_item(self):
        position, target = focus_viewpoint((1.0, 2.0, 3.0), distance=5.0)

        assert target == (1.0, 2.0, 3.0)
        assert math.dist(position, target) == pytest.approx(5.0)


class TestCameraSynchronizer:

    def test_reset_is_one_shot(self):
        camera = CameraSynchronizer()
        camera.request_reset(LayoutStrategy.GRID, {})

        assert camera.reset_requested
        directive = camera.consume()
        assert directive.reason is CameraReason.RESET
        assert not camera.reset_requested
        assert camera.consume() is None

    def test_newer_request_replaces_pending(self):
        camera = CameraSynchronizer()
        camera.request_reset(LayoutStrategy.GRID, {})
        camera.request_focus(LayoutStrategy.GRID, "a", (1.0, 0.0, 1.0))

        directive = camera.consume()
        assert directive.reason is CameraReason.FOCUS
        assert directive.item_id == "a"
        assert not camera.reset_requested

    def test_focus_is_not_a_reset(self):
        camera = CameraSynchronizer()
        camera.request_focus(LayoutStrategy.GRID, "a", (1.0, 0.0, 1.0))

        assert not camera.reset_requested
        assert camera.pending.reason is CameraReason.FOCUS
        assert camera.consume().item_id == "a"
        assert camera.pending is None

    def test_directive_serializable(self):
        camera = CameraSynchronizer(min_distance=4.0)
        data = camera.request_reset(LayoutStrategy.CLUSTER, {}, CameraReason.STRATEGY_SWITCH).to_dict()

        assert data["reason"] == "strategy_switch"
        assert data["strategy"] == "cluster"
        assert data["target"] == [0.0, 0.0, 0.0]
