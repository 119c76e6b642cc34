"""Plain-dict form of a card.

Shared by the SQLite store, the local draft file and the HTTP layer. Items
are listed with explicit positions; FREE is carried as
``has_free_space``/``free_space_position`` like the database columns.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from . import engine
from .errors import ValidationError
from .models import FREE, Card, Cell, Item, ItemCell, empty_cells, utcnow


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_ts(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def item_to_dict(position: int, item: Item) -> dict[str, Any]:
    return {
        "position": position,
        "content": item.content,
        "notes": item.notes,
        "is_completed": item.is_completed,
        "completed_at": _ts(item.completed_at),
    }


def item_from_dict(data: dict[str, Any]) -> Item:
    return Item(
        content=data["content"],
        notes=data.get("notes") or None,
        is_completed=bool(data.get("is_completed", False)),
        completed_at=_parse_ts(data.get("completed_at")),
    )


def card_to_dict(card: Card) -> dict[str, Any]:
    return {
        "id": card.id,
        "owner": card.owner,
        "year": card.year,
        "title": card.title,
        "category": card.category,
        "grid_size": card.grid_size,
        "header_text": card.header_text,
        "has_free_space": card.has_free_space,
        "free_space_position": card.free_space_position,
        "is_finalized": card.is_finalized,
        "visible_to_friends": card.visible_to_friends,
        "is_archived": card.is_archived,
        "created_at": _ts(card.created_at),
        "updated_at": _ts(card.updated_at),
        "items": [item_to_dict(pos, item) for pos, item in card.items.items()],
    }


def build_cells(
    grid_size: int,
    free_space_position: int | None,
    items: list[tuple[int, Item]],
) -> tuple[Cell, ...]:
    """Lay items out on a grid, rejecting anything that breaks placement rules."""
    engine.validate_grid_size(grid_size)
    total = grid_size * grid_size
    cells: list[Cell] = list(empty_cells(grid_size))
    if free_space_position is not None:
        if not 0 <= free_space_position < total:
            raise ValidationError("FREE position is out of range", "invalid_position")
        cells[free_space_position] = FREE
    for position, item in items:
        if not 0 <= position < total:
            raise ValidationError(f"Position {position} is out of range", "invalid_position")
        if position == free_space_position:
            raise ValidationError("Cannot place an item on the FREE cell", "invalid_position")
        if isinstance(cells[position], ItemCell):
            raise ValidationError(f"Position {position} is already occupied", "position_occupied")
        cells[position] = ItemCell(item)
    return tuple(cells)


def card_from_dict(data: dict[str, Any]) -> Card:
    """Rebuild a card, checking every layout invariant on the way in."""
    grid_size = int(data["grid_size"])
    free_pos = data.get("free_space_position") if data.get("has_free_space") else None
    items = [(int(it["position"]), item_from_dict(it)) for it in data.get("items", [])]
    card = Card(
        id=data["id"],
        owner=data.get("owner"),
        year=int(data["year"]),
        grid_size=grid_size,
        header_text=data["header_text"],
        cells=build_cells(grid_size, free_pos, items),
        title=data.get("title") or None,
        category=data.get("category") or None,
        is_finalized=bool(data.get("is_finalized", False)),
        visible_to_friends=bool(data.get("visible_to_friends", True)),
        is_archived=bool(data.get("is_archived", False)),
        created_at=_parse_ts(data.get("created_at")) or utcnow(),
        updated_at=_parse_ts(data.get("updated_at")) or utcnow(),
    )
    if data.get("has_free_space") and free_pos is None:
        card = engine.toggle_free_space(card, True)
    engine.validate_layout(card)
    return card
