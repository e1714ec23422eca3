"""
Overlay Derivation - highlight, dim and select flags from search state.

Overlays are independent of geometry. They are derived from the item set and
the current criteria, and joined with positions by id only when a frame is
built.
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional

from .item import BaseItem

NO_FILTER_VALUES = ("", "all")


@dataclass(frozen=True)
class OverlayCriteria:
    """Search query, category filter and selection driving the overlay"""
    search_query: str = ""
    category_filter: Optional[str] = None
    selected_id: Optional[str] = None

    @classmethod
    def normalized(cls,
                   search_query: Optional[str] = "",
                   category_filter: Optional[str] = None,
                   selected_id: Optional[str] = None) -> "OverlayCriteria":
        """Whitespace-only queries and the "all" category mean no criterion."""
        query = (search_query or "").strip()
        if category_filter is not None and category_filter.strip().lower() in NO_FILTER_VALUES:
            category_filter = None
        return cls(search_query=query, category_filter=category_filter, selected_id=selected_id or None)

    @property
    def is_filtering(self) -> bool:
        return self.search_query != "" or self.category_filter is not None

    @property
    def is_neutral(self) -> bool:
        return not self.is_filtering and self.selected_id is None


@dataclass(frozen=True)
class OverlayFlags:
    highlighted: bool = False
    dimmed: bool = False
    selected: bool = False


NEUTRAL_FLAGS = OverlayFlags()


@dataclass(frozen=True)
class OverlayState:
    """Highlighted ids and selection; dimming is derived on demand"""
    highlighted_ids: FrozenSet[str] = frozenset()
    selected_id: Optional[str] = None

    def is_highlighted(self, item_id: str) -> bool:
        return item_id in self.highlighted_ids

    def is_selected(self, item_id: str) -> bool:
        return self.selected_id is not None and item_id == self.selected_id

    def is_dimmed(self, item_id: str) -> bool:
        # A selected item is never dimmed
        if self.is_selected(item_id):
            return False
        if self.highlighted_ids and item_id not in self.highlighted_ids:
            return True
        return self.selected_id is not None

    def flags_for(self, item_id: str) -> OverlayFlags:
        if not self.highlighted_ids and self.selected_id is None:
            return NEUTRAL_FLAGS
        return OverlayFlags(
            highlighted=self.is_highlighted(item_id),
            dimmed=self.is_dimmed(item_id),
            selected=self.is_selected(item_id),
        )


def matches(item: BaseItem, search_query: str, category_filter: Optional[str]) -> bool:
    """
    Whether an item satisfies the query and the category filter.

    The query is a case-insensitive substring match over title, content and
    tags; an empty query matches everything. The category must match exactly.
    """
    if category_filter is not None and item.category != category_filter:
        return False
    if not search_query:
        return True
    needle = search_query.lower()
    return any(needle in text for text in item.searchable_fields())


def derive_overlay(items: Iterable[BaseItem], criteria: OverlayCriteria) -> OverlayState:
    """
    Derive the overlay state for an item set.

    Args:
        items: Current items
        criteria: Normalized overlay criteria

    Returns:
        OverlayState with the highlighted ids and the selection
    """
    if not criteria.is_filtering:
        return OverlayState(selected_id=criteria.selected_id)

    highlighted = frozenset(
        item.id for item in items
        if matches(item, criteria.search_query, criteria.category_filter)
    )
    return OverlayState(highlighted_ids=highlighted, selected_id=criteria.selected_id)
