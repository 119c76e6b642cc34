"""Card persistence."""

from .base import CardStore
from .sqlite import SqliteCardStore

__all__ = ["CardStore", "SqliteCardStore"]
