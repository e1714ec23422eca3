"""
Spatial Layout Engine

Places a set of items in 3D space with interchangeable strategies (grid,
Fibonacci sphere, category clusters), animates the transitions between them
and derives search/selection overlays for the renderer.
"""

from .core.layout_controller import LayoutController

__version__ = "1.0.0"

__all__ = ["LayoutController", "__version__"]
