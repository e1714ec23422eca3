"""
Visualization module for the Spatial Layout Engine

This module provides the placement strategies, easing curves, node appearance
and camera viewpoints used to render items in 3D space.
"""

from .spatial_layout import compute_layout, grid_layout, sphere_layout, cluster_layout
from .easing import easing_for, blend_positions
from .camera import CameraDirective, CameraSynchronizer

__all__ = [
    'compute_layout',
    'grid_layout',
    'sphere_layout',
    'cluster_layout',
    'easing_for',
    'blend_positions',
    'CameraDirective',
    'CameraSynchronizer',
]
