"""Grid engine and card lifecycle."""

from .errors import (
    CapacityError,
    ConflictError,
    GoalGridError,
    ImportFailedError,
    NotFoundError,
    StateError,
    TransientStoreError,
    ValidationError,
)
from .models import BingoLine, Card, CardStats, EmptyCell, FreeCell, Item, ItemCell, LineKind

__all__ = [
    "BingoLine",
    "CapacityError",
    "Card",
    "CardStats",
    "ConflictError",
    "EmptyCell",
    "FreeCell",
    "GoalGridError",
    "ImportFailedError",
    "Item",
    "ItemCell",
    "LineKind",
    "NotFoundError",
    "StateError",
    "TransientStoreError",
    "ValidationError",
]
