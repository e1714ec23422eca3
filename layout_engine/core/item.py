"""
Item schema for the layout engine.

Items arrive from the persistence collaborator as a full, ordered replacement
list. Every item is one of a closed set of kinds, validated once at ingestion
so the rest of the engine can rely on the fields being present and sane.
"""

import logging
import re
from enum import Enum
from typing import Annotated, Any, Dict, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)

_HTML_TAG = re.compile(r"<[^>]*>")


class ItemKind(str, Enum):
    POST = "post"
    TEXT = "text"
    IMAGE = "image"
    LINK = "link"
    EMBED = "embed"


class BaseItem(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1, description="Stable opaque identifier")
    category: str = Field(default="general", min_length=1)
    weight: Optional[float] = Field(default=None, ge=0.0, allow_inf_nan=False)
    title: str = ""
    content: str = ""
    tags: List[str] = Field(default_factory=list)

    @property
    def plain_content(self) -> str:
        '''Content with markup removed'''
        return _HTML_TAG.sub("", self.content).strip()

    def searchable_fields(self) -> List[str]:
        '''Lower-cased fields a search query is matched against'''
        return [self.title.lower(), self.plain_content.lower()] + [tag.lower() for tag in self.tags]

    def to_dict(self) -> Dict[str, Any]:
        '''Convert to a plain dictionary'''
        return self.model_dump(mode="json")


class _BoardItem(BaseItem):
    """Board items fall back to their kind as category."""

    @model_validator(mode="before")
    @classmethod
    def default_category_to_kind(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("category"):
            kind = data.get("kind") or cls.model_fields["kind"].default
            data = {**data, "category": kind}
        return data


class PostItem(BaseItem):
    kind: Literal["post"] = "post"
    author_id: Optional[str] = None
    view_count: int = Field(default=0, ge=0)
    comment_count: int = Field(default=0, ge=0)


class TextItem(_BoardItem):
    kind: Literal["text"] = "text"
    font_size: float = Field(default=16.0, gt=0.0)
    font_color: str = "#ffffff"
    background_color: Optional[str] = None


class ImageItem(_BoardItem):
    kind: Literal["image"] = "image"
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    alt: Optional[str] = None


class LinkItem(_BoardItem):
    kind: Literal["link"] = "link"
    url: str
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Only web links can be placed on the board."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid link URL: {v}")
        return v


class EmbedItem(_BoardItem):
    kind: Literal["embed"] = "embed"
    embed_type: Literal["youtube", "vimeo", "other"] = "other"
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    embed_code: str = Field(..., min_length=1)


Item = Annotated[
    Union[PostItem, TextItem, ImageItem, LinkItem, EmbedItem],
    Field(discriminator="kind"),
]

_ITEM_ADAPTER: TypeAdapter = TypeAdapter(Item)


def parse_item(raw: Any) -> BaseItem:
    """
    Validate a single item description.

    Dictionaries without a ``kind`` are treated as posts, which is what the
    board feed delivers for plain posts.
    """
    if isinstance(raw, BaseItem):
        return raw
    if isinstance(raw, dict) and "kind" not in raw:
        raw = {**raw, "kind": ItemKind.POST.value}
    return _ITEM_ADAPTER.validate_python(raw)


def parse_items(raw_items: Iterable[Any]) -> List[BaseItem]:
    """
    Validate a full replacement list of items.

    Args:
        raw_items: Item dictionaries or already-built item models, in display order

    Returns:
        Validated items with duplicate ids resolved (last occurrence wins)

    Raises:
        ItemValidationError: If any entry fails validation. Nothing is returned
            for a partially valid list.
    """
    parsed: List[BaseItem] = []
    errors: List[Dict[str, Any]] = []

    for index, raw in enumerate(raw_items):
        try:
            parsed.append(parse_item(raw))
        except ValidationError as e:
            errors.append({"index": index, "errors": e.errors(include_url=False, include_context=False)})

    if errors:
        raise ItemValidationError(errors)

    return dedupe_items(parsed)


def dedupe_items(items: List[BaseItem]) -> List[BaseItem]:
    """
    Drop earlier occurrences of repeated ids.

    The surviving item keeps the slot of its last occurrence, so order-sensitive
    layouts see one entry per id and no empty cells.
    """
    last_index = {item.id: index for index, item in enumerate(items)}
    if len(last_index) == len(items):
        return list(items)

    deduped = [item for index, item in enumerate(items) if last_index[item.id] == index]
    logger.warning(f"Dropped {len(items) - len(deduped)} duplicate item(s); last occurrence wins")
    return deduped


class ItemValidationError(Exception):
    """Raised when an item list is rejected at ingestion."""

    def __init__(self, errors: List[Dict[str, Any]]):
        self.errors = errors
        indexes = ", ".join(str(e["index"]) for e in errors[:5])
        super().__init__(f"{len(errors)} invalid item(s) at index {indexes}")
