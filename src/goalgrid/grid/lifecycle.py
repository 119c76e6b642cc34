"""Card lifecycle: the Draft -> Finalized state machine.

Draft cards accept layout changes. Finalizing is one-way; afterwards only
completion state and notes may change. Every function validates first and
returns a new Card, so a rejected call never leaves a half-applied change.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, replace
from datetime import datetime

from . import engine
from .errors import CapacityError, NotFoundError, StateError, ValidationError
from .models import (
    FREE,
    MAX_TITLE_LENGTH,
    MIN_YEAR,
    Card,
    Cell,
    Item,
    ItemCell,
    empty_cells,
    is_valid_category,
    utcnow,
)


def require_draft(card: Card) -> None:
    if card.is_finalized:
        raise StateError("Card is finalized and cannot be modified", "card_finalized")


def require_finalized(card: Card) -> None:
    if not card.is_finalized:
        raise StateError("Card must be finalized first", "card_not_finalized")


def clean_title(title: str | None) -> str | None:
    if title is None:
        return None
    title = title.strip()
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(
            f"Title must be {MAX_TITLE_LENGTH} characters or less", "title_too_long"
        )
    return title or None


def clean_category(category: str | None) -> str | None:
    if not category:
        return None
    if not is_valid_category(category):
        raise ValidationError(f"Invalid category {category!r}", "invalid_category")
    return category


def validate_year(year: int, now: datetime | None = None) -> None:
    latest = (now or utcnow()).year + 1
    if not MIN_YEAR <= year <= latest:
        raise ValidationError(
            f"Year must be between {MIN_YEAR} and {latest}", "invalid_year"
        )


def new_card(
    card_id: str,
    owner: str | None,
    year: int,
    *,
    title: str | None = None,
    category: str | None = None,
    grid_size: int = 5,
    header_text: str | None = None,
    has_free_space: bool = True,
    rng: random.Random | None = None,
) -> Card:
    """Build a fresh Draft card from its initial configuration."""
    engine.validate_grid_size(grid_size)
    header = engine.normalize_header_text(
        grid_size, header_text or engine.default_header_text(grid_size)
    )
    cells = list(empty_cells(grid_size))
    if has_free_space:
        cells[engine.default_free_space_position(grid_size, tuple(cells), rng)] = FREE
    return Card(
        id=card_id,
        owner=owner,
        year=year,
        grid_size=grid_size,
        header_text=header,
        cells=tuple(cells),
        title=clean_title(title),
        category=clean_category(category),
    )


# --- Draft transitions ---


def add_item(
    card: Card,
    content: str,
    position: int | None = None,
    rng: random.Random | None = None,
) -> tuple[Card, int]:
    """Place a new item. Without a position a random empty slot is used.

    Returns the updated card and the position the item landed on.
    """
    require_draft(card)
    if card.item_count >= card.capacity:
        raise CapacityError("Card is full", "card_full")
    if position is None:
        content = engine.validate_content(content)
        position = engine.random_empty_position(card, rng)
    else:
        content = engine.validate_placement(card, position, content)
    return engine.place_item(card, position, Item(content=content)), position


def remove_item(card: Card, position: int) -> Card:
    require_draft(card)
    return engine.clear_position(card, position)


def update_item_content(card: Card, position: int, content: str) -> Card:
    require_draft(card)
    content = engine.validate_content(content)
    item = _item_or_raise(card, position)
    return engine.replace_item(card, position, replace(item, content=content))


def shuffle(card: Card, rng: random.Random | None = None) -> Card:
    require_draft(card)
    return engine.shuffle(card, rng)


def swap(card: Card, pos_a: int, pos_b: int) -> Card:
    require_draft(card)
    return engine.swap(card, pos_a, pos_b)


def toggle_free_space(card: Card, enable: bool, rng: random.Random | None = None) -> Card:
    require_draft(card)
    return engine.toggle_free_space(card, enable, rng)


def set_header_text(card: Card, text: str) -> Card:
    require_draft(card)
    return card.touch(header_text=engine.normalize_header_text(card.grid_size, text))


def update_config(
    card: Card,
    header_text: str | None = None,
    has_free_space: bool | None = None,
    rng: random.Random | None = None,
) -> Card:
    """Change header and/or FREE together; either both apply or neither."""
    require_draft(card)
    if header_text is not None:
        card = set_header_text(card, header_text)
    if has_free_space is not None:
        card = engine.toggle_free_space(card, has_free_space, rng)
    return card


_UNSET = object()


def set_meta(card: Card, title=_UNSET, category=_UNSET) -> Card:
    """Change title and/or category. Pass None to clear a field."""
    require_draft(card)
    changes = {}
    if title is not _UNSET:
        changes["title"] = clean_title(title)
    if category is not _UNSET:
        changes["category"] = clean_category(category)
    if not changes:
        return card
    return card.touch(**changes)


def finalize(card: Card, visible_to_friends: bool = True) -> Card:
    """Lock the layout.

    Re-finalizing a finalized card succeeds and changes nothing, so client
    retries are harmless.
    """
    if card.is_finalized:
        return card
    if card.item_count < card.capacity:
        raise CapacityError(
            f"Card needs {card.capacity} items, has {card.item_count}", "card_not_full"
        )
    return card.touch(is_finalized=True, visible_to_friends=visible_to_friends)


# --- Finalized transitions ---


def complete_item(card: Card, position: int, notes: str | None = None) -> Card:
    require_finalized(card)
    item = _item_or_raise(card, position)
    updated = replace(
        item,
        is_completed=True,
        completed_at=utcnow(),
        notes=notes if notes is not None else item.notes,
    )
    return engine.place_item(card, position, updated)


def uncomplete_item(card: Card, position: int) -> Card:
    require_finalized(card)
    item = _item_or_raise(card, position)
    return engine.place_item(card, position, replace(item, is_completed=False, completed_at=None))


def update_item_notes(card: Card, position: int, notes: str | None) -> Card:
    """Notes are not layout and may change in any state."""
    item = _item_or_raise(card, position)
    return engine.place_item(card, position, replace(item, notes=notes or None))


def set_visibility(card: Card, visible_to_friends: bool) -> Card:
    require_finalized(card)
    if card.visible_to_friends == visible_to_friends:
        return card
    return card.touch(visible_to_friends=visible_to_friends)


def set_archived(card: Card, is_archived: bool) -> Card:
    """Archiving only files the card away; it works in any state."""
    if card.is_archived == is_archived:
        return card
    return card.touch(is_archived=is_archived)


def in_archive(card: Card, now: datetime | None = None) -> bool:
    """Finalized cards from years that are over."""
    return card.is_finalized and card.year < (now or utcnow()).year


# --- Clone ---


@dataclass
class CloneResult:
    card: Card
    truncated_item_count: int


def clone(
    source: Card,
    card_id: str,
    owner: str | None,
    *,
    year: int | None = None,
    title: str | None = None,
    category: str | None = None,
    grid_size: int | None = None,
    header_text: str | None = None,
    has_free_space: bool | None = None,
    copy_items: bool = True,
    rng: random.Random | None = None,
) -> CloneResult:
    """Start a new Draft card from any existing card.

    Not a lifecycle transition: the source is untouched whatever its state.
    Item content is copied onto shuffled positions; completion and notes are
    not. Items beyond the new card's capacity are dropped and counted.
    """
    rng = rng or random
    grid_size = grid_size or source.grid_size
    title = clean_title(title) or f"{source.display_name} (Copy)"
    card = new_card(
        card_id,
        owner,
        year or source.year,
        title=title,
        category=category if category is not None else source.category,
        grid_size=grid_size,
        header_text=header_text,
        has_free_space=source.has_free_space if has_free_space is None else has_free_space,
        rng=rng,
    )
    if not copy_items:
        return CloneResult(card=card, truncated_item_count=0)

    contents = [item.content for item in source.items.values()]
    truncated = max(0, len(contents) - card.capacity)
    contents = contents[: card.capacity]

    positions = card.empty_positions
    rng.shuffle(positions)
    cells: list[Cell] = list(card.cells)
    for pos, content in zip(positions, contents):
        cells[pos] = ItemCell(Item(content=content))
    return CloneResult(card=card.with_cells(cells), truncated_item_count=truncated)


def _item_or_raise(card: Card, position: int) -> Item:
    engine.validate_position(card, position)
    item = card.item_at(position)
    if item is None:
        raise NotFoundError(f"No item at position {position}", "item_not_found")
    return item

