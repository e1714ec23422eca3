"""
Shared pytest fixtures and configuration
"""
import pytest

from layout_engine.config.settings import reset_settings
from layout_engine.core.layout_controller import LayoutController
from layout_engine.core.layout_state import ControllerConfig, LayoutSettings, LayoutStrategy


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Every test starts from default settings, unaffected by a local .env"""
    for key in ("LAYOUT_SPACING", "LAYOUT_SPHERE_RADIUS", "LAYOUT_DEFAULT_STRATEGY", "LAYOUT_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_items():
    """Board items of mixed kinds and categories"""
    return [
        {"id": "a", "category": "tech", "title": "Python tips", "content": "<p>Use <b>generators</b></p>",
         "tags": ["python"], "weight": 120},
        {"id": "b", "category": "design", "title": "Colour theory", "content": "Warm and cool tones"},
        {"id": "c", "category": "tech", "title": "Rust ownership", "tags": ["rust", "memory"]},
        {"id": "d", "kind": "image", "title": "Sketch", "width": 640, "height": 480},
    ]


@pytest.fixture
def controller(clock):
    """Grid-first controller on a fake clock"""
    return LayoutController(
        settings=LayoutSettings(spacing=2.0, sphere_radius=5.0),
        strategy=LayoutStrategy.GRID,
        config=ControllerConfig(),
        clock=clock,
    )


@pytest.fixture
def loaded_controller(controller, sample_items):
    controller.replace_items(sample_items)
    return controller
