"""CardStore contract.

The store is the authoritative home of account-owned cards. Each owner has
at most one primary card per year; that (owner, year) pair is the only
conflict key; titles are informational. The one exception is a card
written with ``allow_same_year=True``, which only the merge "save as new"
path uses: it sits beside the primary card and must carry a title no other
card of that owner and year has.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..grid.models import Card, Item


class CardStore(ABC):
    """Abstract async card persistence.

    Every write is atomic: when a call raises, the stored card is exactly
    as it was before the call.
    """

    @abstractmethod
    async def create(self, card: Card, *, allow_same_year: bool = False) -> Card:
        """Insert a card and its items, returning it with a store-assigned id.

        Raises ConflictError (code ``card_exists``) when the owner already
        has a primary card for the year, or (code ``title_taken``) when a
        same-year card already uses the title.
        """

    @abstractmethod
    async def get(self, owner: str, card_id: str) -> Card:
        """Raises NotFoundError for unknown ids and for other owners' cards."""

    @abstractmethod
    async def get_by_key(self, owner: str, year: int) -> Card | None:
        """The owner's primary card for ``year``, if any."""

    @abstractmethod
    async def list_cards(self, owner: str) -> list[Card]:
        """All of the owner's cards, newest year first."""

    @abstractmethod
    async def save(self, card: Card) -> Card:
        """Replace a stored card's fields and items with ``card``'s."""

    @abstractmethod
    async def put_item(self, owner: str, card_id: str, position: int, item: Item) -> None:
        """Write one item into an empty position."""

    @abstractmethod
    async def delete(self, owner: str, card_id: str) -> None:
        """Remove a card and its items. Raises NotFoundError if absent."""

    async def close(self) -> None:
        return None
