"""Grid engine: stateless operations over a card's layout.

Every function takes a Card and returns a new Card (or a query result). The
input card is never mutated, so a failed operation leaves the caller's card
exactly as it was. Lifecycle gating (Draft vs Finalized) is not checked
here; see ``lifecycle``.
"""

from __future__ import annotations

import random

from .errors import CapacityError, NotFoundError, ValidationError
from .models import (
    DEFAULT_HEADER,
    EMPTY,
    FREE,
    MAX_CONTENT_LENGTH,
    BingoLine,
    Card,
    CardStats,
    Cell,
    EmptyCell,
    FreeCell,
    Item,
    ItemCell,
    LineKind,
    is_valid_grid_size,
)


def capacity(grid_size: int, has_free_space: bool) -> int:
    """Number of goal slots on a grid."""
    return grid_size * grid_size - (1 if has_free_space else 0)


def default_header_text(grid_size: int) -> str:
    return DEFAULT_HEADER[:grid_size]


def normalize_header_text(grid_size: int, text: str) -> str:
    """Uppercase, trim and truncate a header to one letter per column."""
    normalized = (text or "").strip().upper()[:grid_size]
    if not normalized:
        raise ValidationError("Header text must have at least 1 character", "invalid_header")
    return normalized


def default_free_space_position(
    grid_size: int,
    cells: tuple[Cell, ...] | None = None,
    rng: random.Random | None = None,
) -> int:
    """Pick where FREE goes when it is first enabled.

    Odd grids use the exact center. Even grids have no center, so an
    available position is chosen uniformly at random.
    """
    total = grid_size * grid_size
    if grid_size % 2 == 1:
        return total // 2
    if cells is None:
        candidates = list(range(total))
    else:
        candidates = [pos for pos, cell in enumerate(cells) if isinstance(cell, EmptyCell)]
    if not candidates:
        raise CapacityError("No space available for the FREE cell", "no_space_for_free")
    return (rng or random).choice(candidates)


def validate_grid_size(grid_size: int) -> None:
    if not is_valid_grid_size(grid_size):
        raise ValidationError(f"Invalid grid size {grid_size}", "invalid_grid_size")


def validate_content(content: str) -> str:
    content = (content or "").strip()
    if not content:
        raise ValidationError("Item content must not be empty", "invalid_content")
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError(
            f"Item content must be {MAX_CONTENT_LENGTH} characters or less", "invalid_content"
        )
    return content


def validate_position(card: Card, position: int) -> None:
    if not 0 <= position < card.total_squares:
        raise ValidationError(f"Position {position} is out of range", "invalid_position")


def validate_placement(card: Card, position: int, content: str) -> str:
    """Check that ``content`` may be placed at ``position``.

    Returns the cleaned content.
    """
    validate_position(card, position)
    cell = card.cells[position]
    if isinstance(cell, FreeCell):
        raise ValidationError("Cannot place an item on the FREE cell", "invalid_position")
    if isinstance(cell, ItemCell):
        raise ValidationError(f"Position {position} is already occupied", "position_occupied")
    return validate_content(content)


def validate_layout(card: Card) -> None:
    """Check the structural invariants of a card built from outside data."""
    validate_grid_size(card.grid_size)
    if len(card.cells) != card.total_squares:
        raise ValidationError(
            f"Card has {len(card.cells)} cells, expected {card.total_squares}", "invalid_layout"
        )
    if sum(1 for c in card.cells if isinstance(c, FreeCell)) > 1:
        raise ValidationError("Card has more than one FREE cell", "invalid_layout")
    if not 1 <= len(card.header_text) <= card.grid_size:
        raise ValidationError("Header text length must match the grid", "invalid_header")
    for item in card.items.values():
        validate_content(item.content)
    if card.is_finalized and card.item_count != card.capacity:
        raise ValidationError("Finalized card is missing items", "invalid_layout")


def random_empty_position(card: Card, rng: random.Random | None = None) -> int:
    empties = card.empty_positions
    if not empties:
        raise CapacityError("Card is full", "card_full")
    return (rng or random).choice(empties)


def place_item(card: Card, position: int, item: Item) -> Card:
    cells = list(card.cells)
    cells[position] = ItemCell(item)
    return card.with_cells(cells)


def clear_position(card: Card, position: int) -> Card:
    validate_position(card, position)
    if not isinstance(card.cells[position], ItemCell):
        raise NotFoundError(f"No item at position {position}", "item_not_found")
    cells = list(card.cells)
    cells[position] = EMPTY
    return card.with_cells(cells)


def replace_item(card: Card, position: int, item: Item) -> Card:
    validate_position(card, position)
    if not isinstance(card.cells[position], ItemCell):
        raise NotFoundError(f"No item at position {position}", "item_not_found")
    return place_item(card, position, item)


def shuffle(card: Card, rng: random.Random | None = None) -> Card:
    """Randomly permute every non-FREE cell over the non-FREE positions."""
    if card.item_count == 0:
        raise ValidationError("Card has no items to shuffle", "no_items")
    positions = [pos for pos, cell in enumerate(card.cells) if not isinstance(cell, FreeCell)]
    movable = [card.cells[pos] for pos in positions]
    (rng or random).shuffle(movable)

    cells = list(card.cells)
    for pos, cell in zip(positions, movable):
        cells[pos] = cell
    return card.with_cells(cells)


def swap(card: Card, pos_a: int, pos_b: int) -> Card:
    """Exchange two cells.

    Two items trade places; an item next to an empty cell moves into it; the
    FREE cell relocates to the other position and whatever was there takes
    FREE's old slot. Applying the same swap twice restores the layout.
    """
    validate_position(card, pos_a)
    validate_position(card, pos_b)
    if pos_a == pos_b:
        return card

    cell_a, cell_b = card.cells[pos_a], card.cells[pos_b]
    if isinstance(cell_a, EmptyCell) and isinstance(cell_b, EmptyCell):
        raise NotFoundError("No item at either position", "item_not_found")

    cells = list(card.cells)
    cells[pos_a], cells[pos_b] = cell_b, cell_a
    return card.with_cells(cells)


def toggle_free_space(card: Card, enable: bool, rng: random.Random | None = None) -> Card:
    """Enable or disable the FREE cell.

    Disabling leaves an empty slot behind and moves no items. Enabling on an
    odd grid claims the center, moving any item sitting there to a random
    empty slot; on an even grid a random empty slot is used.
    """
    rng = rng or random
    if enable == card.has_free_space:
        return card

    cells = list(card.cells)
    if not enable:
        cells[card.free_space_position] = EMPTY
        return card.with_cells(cells)

    empties = card.empty_positions
    if not empties:
        raise CapacityError("No space available for the FREE cell", "no_space_for_free")

    target = default_free_space_position(card.grid_size, card.cells, rng)
    displaced = cells[target]
    if isinstance(displaced, ItemCell):
        cells[rng.choice(empties)] = displaced
    cells[target] = FREE
    return card.with_cells(cells)


def _marked(card: Card) -> list[bool]:
    return [
        isinstance(cell, FreeCell) or (isinstance(cell, ItemCell) and cell.item.is_completed)
        for cell in card.cells
    ]


def detect_bingo(card: Card) -> list[BingoLine]:
    """Every complete row, column and diagonal.

    Cells count as marked when completed or FREE. Pure query; results are
    ordered rows, columns, then diagonals.
    """
    n = card.grid_size
    marked = _marked(card)
    candidates: list[BingoLine] = []
    for row in range(n):
        candidates.append(
            BingoLine(LineKind.ROW, row, tuple(row * n + col for col in range(n)))
        )
    for col in range(n):
        candidates.append(
            BingoLine(LineKind.COLUMN, col, tuple(row * n + col for row in range(n)))
        )
    candidates.append(BingoLine(LineKind.DIAGONAL, 0, tuple(i * n + i for i in range(n))))
    candidates.append(
        BingoLine(LineKind.DIAGONAL, 1, tuple(i * n + (n - 1 - i) for i in range(n)))
    )
    return [line for line in candidates if all(marked[pos] for pos in line.positions)]


def card_stats(card: Card) -> CardStats:
    completed = [item for item in card.items.values() if item.is_completed]
    stamps = [item.completed_at for item in completed if item.completed_at is not None]
    total = card.capacity
    return CardStats(
        card_id=card.id,
        year=card.year,
        total_items=total,
        completed_items=len(completed),
        completion_rate=(len(completed) / total * 100) if total else 0.0,
        bingos_achieved=len(detect_bingo(card)),
        first_completion=min(stamps) if stamps else None,
        last_completion=max(stamps) if stamps else None,
    )
