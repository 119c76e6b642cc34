"""Merge conflict models."""

from __future__ import annotations

from dataclasses import dataclass

from ..grid.models import Card


@dataclass(frozen=True)
class ExistingCardSummary:
    """What the user is shown about the account's card when a merge conflicts."""

    id: str
    title: str | None
    year: int
    item_count: int
    is_finalized: bool

    @classmethod
    def of(cls, card: Card) -> ExistingCardSummary:
        return cls(
            id=card.id,
            title=card.title,
            year=card.year,
            item_count=card.item_count,
            is_finalized=card.is_finalized,
        )


@dataclass(frozen=True)
class KeepExisting:
    """Drop the local card and keep the account's card untouched."""


@dataclass(frozen=True)
class SaveAsNew:
    """Import the local card next to the existing one under a distinct title."""

    title: str


@dataclass(frozen=True)
class Replace:
    """Delete the existing card and import the local one in its place.

    Destructive; refused unless ``confirmed`` is set.
    """

    confirmed: bool = False


Resolution = KeepExisting | SaveAsNew | Replace
