"""Card data models."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum

MIN_GRID_SIZE = 2
MAX_GRID_SIZE = 5
MAX_CONTENT_LENGTH = 500
MAX_TITLE_LENGTH = 100
MIN_YEAR = 2020
DEFAULT_HEADER = "BINGO"

CATEGORY_NAMES: dict[str, str] = {
    "personal": "Personal Growth",
    "health": "Health & Fitness",
    "food": "Food & Dining",
    "travel": "Travel & Adventure",
    "hobbies": "Hobbies & Creativity",
    "social": "Social & Relationships",
    "professional": "Professional & Career",
    "fun": "Fun & Silly",
}


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class Item:
    """A goal placed on the grid."""

    content: str
    notes: str | None = None
    is_completed: bool = False
    completed_at: datetime | None = None


# Cells: a card's layout is exactly grid_size² of these, indexed by position.


@dataclass(frozen=True)
class ItemCell:
    item: Item


@dataclass(frozen=True)
class FreeCell:
    pass


@dataclass(frozen=True)
class EmptyCell:
    pass


Cell = ItemCell | FreeCell | EmptyCell

FREE = FreeCell()
EMPTY = EmptyCell()


class LineKind(StrEnum):
    ROW = "row"
    COLUMN = "column"
    DIAGONAL = "diagonal"


@dataclass(frozen=True)
class BingoLine:
    """A complete row, column or diagonal.

    Diagonal index 0 runs top-left to bottom-right, index 1 top-right to
    bottom-left.
    """

    kind: LineKind
    index: int
    positions: tuple[int, ...]


@dataclass
class CardStats:
    card_id: str
    year: int
    total_items: int
    completed_items: int
    completion_rate: float
    bingos_achieved: int
    first_completion: datetime | None = None
    last_completion: datetime | None = None


@dataclass(frozen=True)
class Card:
    """A goal card. Operations never mutate a Card; they return a new one."""

    id: str
    owner: str | None
    year: int
    grid_size: int
    header_text: str
    cells: tuple[Cell, ...]
    title: str | None = None
    category: str | None = None
    is_finalized: bool = False
    visible_to_friends: bool = True
    is_archived: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def total_squares(self) -> int:
        return self.grid_size * self.grid_size

    @property
    def has_free_space(self) -> bool:
        return any(isinstance(c, FreeCell) for c in self.cells)

    @property
    def free_space_position(self) -> int | None:
        for pos, cell in enumerate(self.cells):
            if isinstance(cell, FreeCell):
                return pos
        return None

    @property
    def capacity(self) -> int:
        return self.total_squares - (1 if self.has_free_space else 0)

    @property
    def items(self) -> dict[int, Item]:
        """Items keyed by position, in position order."""
        return {
            pos: cell.item for pos, cell in enumerate(self.cells) if isinstance(cell, ItemCell)
        }

    @property
    def item_count(self) -> int:
        return sum(1 for c in self.cells if isinstance(c, ItemCell))

    @property
    def empty_positions(self) -> list[int]:
        return [pos for pos, cell in enumerate(self.cells) if isinstance(cell, EmptyCell)]

    @property
    def display_name(self) -> str:
        if self.title:
            return self.title
        return f"{self.year} Bingo Card"

    def item_at(self, position: int) -> Item | None:
        if 0 <= position < len(self.cells):
            cell = self.cells[position]
            if isinstance(cell, ItemCell):
                return cell.item
        return None

    def with_cells(self, cells: list[Cell] | tuple[Cell, ...]) -> Card:
        return replace(self, cells=tuple(cells), updated_at=utcnow())

    def touch(self, **changes) -> Card:
        return replace(self, updated_at=utcnow(), **changes)


def empty_cells(grid_size: int) -> tuple[Cell, ...]:
    return tuple(EMPTY for _ in range(grid_size * grid_size))


def is_valid_grid_size(grid_size: int) -> bool:
    return MIN_GRID_SIZE <= grid_size <= MAX_GRID_SIZE


def is_valid_category(category: str) -> bool:
    return category in CATEGORY_NAMES
