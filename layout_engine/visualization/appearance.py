"""
Node appearance helpers: category colours and weight-based scale.
"""

import math
from typing import Dict, Optional

CATEGORY_COLORS: Dict[str, str] = {
    "general": "#4285F4",   # Blue
    "tech": "#EA4335",      # Red
    "design": "#FBBC05",    # Yellow
    "idea": "#34A853",      # Green
    "question": "#9C27B0",  # Purple
    "default": "#757575",   # Grey
}

BASE_SCALE = 1.0
MAX_SCALE_MULTIPLIER = 1.5
FULL_SCALE_WEIGHT = 1000.0


def category_color(category: Optional[str]) -> str:
    '''Hex colour for a category, grey for unknown ones'''
    return CATEGORY_COLORS.get(category or "default", CATEGORY_COLORS["default"])


def node_scale(weight: Optional[float]) -> float:
    """
    Node scale from item weight (e.g. view count).

    Grows on a log scale from 1.0 at weight <= 1 to 1.5 at weight >= 1000.
    """
    if weight is None or weight <= 1:
        return BASE_SCALE

    log_scale = math.log10(weight) / math.log10(FULL_SCALE_WEIGHT)
    return BASE_SCALE * (1 + min(1.0, log_scale) * (MAX_SCALE_MULTIPLIER - 1))
