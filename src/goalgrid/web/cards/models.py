"""Card Pydantic models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from ...grid.codec import item_to_dict
from ...grid.models import BingoLine, Card, CardStats


class CardCreate(BaseModel):
    year: int
    title: str | None = None
    category: str | None = None
    grid_size: int = 5
    header_text: str | None = None
    has_free_space: bool = True


class ItemCreate(BaseModel):
    content: str
    position: int | None = None


class ItemUpdate(BaseModel):
    content: str


class SwapRequest(BaseModel):
    position_a: int
    position_b: int


class ConfigUpdate(BaseModel):
    header_text: str | None = None
    has_free_space: bool | None = None


class MetaUpdate(BaseModel):
    title: str | None = None
    category: str | None = None


class FinalizeRequest(BaseModel):
    visible_to_friends: bool = True


class CompleteRequest(BaseModel):
    notes: str | None = None


class NotesUpdate(BaseModel):
    notes: str | None = None


class VisibilityUpdate(BaseModel):
    visible_to_friends: bool


class CloneRequest(BaseModel):
    year: int | None = None
    title: str | None = None
    category: str | None = None
    grid_size: int | None = None
    header_text: str | None = None
    has_free_space: bool | None = None
    copy_items: bool = True


class BulkRequest(BaseModel):
    card_ids: list[str] = Field(max_length=100)


class BulkVisibilityRequest(BulkRequest):
    visible_to_friends: bool


class BulkArchiveRequest(BulkRequest):
    is_archived: bool


class BulkResponse(BaseModel):
    count: int


class ImportRequest(BaseModel):
    """A serialized local draft, as written by the CLI or a browser."""

    snapshot: dict[str, Any]


class ResolveRequest(BaseModel):
    snapshot: dict[str, Any]
    existing_card_id: str
    resolution: Literal["keep_existing", "save_as_new", "replace"]
    title: str | None = None
    confirmed: bool = False


class ItemResponse(BaseModel):
    position: int
    content: str
    notes: str | None
    is_completed: bool
    completed_at: str | None


class CardResponse(BaseModel):
    id: str
    owner: str | None
    year: int
    title: str | None
    category: str | None
    grid_size: int
    header_text: str
    has_free_space: bool
    free_space_position: int | None
    is_finalized: bool
    visible_to_friends: bool
    is_archived: bool
    item_count: int
    capacity: int
    items: list[ItemResponse]
    created_at: str
    updated_at: str

    @classmethod
    def of(cls, card: Card) -> CardResponse:
        return cls(
            id=card.id,
            owner=card.owner,
            year=card.year,
            title=card.title,
            category=card.category,
            grid_size=card.grid_size,
            header_text=card.header_text,
            has_free_space=card.has_free_space,
            free_space_position=card.free_space_position,
            is_finalized=card.is_finalized,
            visible_to_friends=card.visible_to_friends,
            is_archived=card.is_archived,
            item_count=card.item_count,
            capacity=card.capacity,
            items=[ItemResponse(**item_to_dict(p, i)) for p, i in sorted(card.items.items())],
            created_at=card.created_at.isoformat(),
            updated_at=card.updated_at.isoformat(),
        )


class CloneResponse(BaseModel):
    card: CardResponse
    truncated_item_count: int


class BingoLineResponse(BaseModel):
    kind: str
    index: int
    positions: list[int]

    @classmethod
    def of(cls, line: BingoLine) -> BingoLineResponse:
        return cls(kind=str(line.kind), index=line.index, positions=list(line.positions))


class StatsResponse(BaseModel):
    card_id: str
    year: int
    total_items: int
    completed_items: int
    completion_rate: float
    bingos_achieved: int
    first_completion: str | None = None
    last_completion: str | None = None

    @classmethod
    def of(cls, stats: CardStats) -> StatsResponse:
        return cls(
            card_id=stats.card_id,
            year=stats.year,
            total_items=stats.total_items,
            completed_items=stats.completed_items,
            completion_rate=stats.completion_rate,
            bingos_achieved=stats.bingos_achieved,
            first_completion=stats.first_completion.isoformat()
            if stats.first_completion
            else None,
            last_completion=stats.last_completion.isoformat() if stats.last_completion else None,
        )


class ExistingCardResponse(BaseModel):
    id: str
    title: str | None
    year: int
    item_count: int
    is_finalized: bool


class ErrorResponse(BaseModel):
    detail: str
    code: str = ""
    existing_card: ExistingCardResponse | None = Field(default=None)


class ItemAddResponse(BaseModel):
    card: CardResponse
    position: int
