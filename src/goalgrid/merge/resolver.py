"""MergeResolver: bring an anonymous local card into an account.

Runs once when a session holding a local draft authenticates. The conflict
key is (owner, local year). With no card under that key the draft is
imported directly; otherwise the caller gets a ConflictError with a summary
of the existing card and picks one of three resolutions.

The local cache is cleared only after a resolution succeeds. Any failure
leaves it untouched so unsynced work is never lost.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import assert_never

from ..grid import lifecycle
from ..grid.errors import ConflictError, ImportFailedError, ValidationError
from ..grid.models import EMPTY, Card, ItemCell
from ..local.cache import LocalDraftCache
from ..locks import KeyedLocks, card_locks
from ..store.base import CardStore
from .models import ExistingCardSummary, KeepExisting, Replace, Resolution, SaveAsNew

logger = logging.getLogger(__name__)


class MergeResolver:
    """Imports local drafts into a CardStore, one merge per (owner, year) at a time."""

    def __init__(self, store: CardStore, card_locks: KeyedLocks = card_locks):
        self.store = store
        self.card_locks = card_locks
        self._key_locks = KeyedLocks()

    async def import_local(self, owner: str, cache: LocalDraftCache) -> Card:
        """Import the cached card, or raise ConflictError if the year is taken."""
        local = cache.get()
        lifecycle.validate_year(local.year)

        async with self._key_locks.hold((owner, local.year)):
            existing = await self.store.get_by_key(owner, local.year)
            if existing is not None:
                raise _conflict_with(existing)
            card = await self._import(owner, local)

        cache.delete()
        logger.info("Imported local draft as card %s for %s", card.id, owner)
        return card

    async def resolve(
        self,
        owner: str,
        cache: LocalDraftCache,
        resolution: Resolution,
        existing_card_id: str,
    ) -> Card:
        """Apply the user's choice for a conflicting merge and return the resulting card."""
        local = cache.get()

        async with self._key_locks.hold((owner, local.year)):
            match resolution:
                case KeepExisting():
                    card = await self._primary(owner, local.year, existing_card_id)
                case SaveAsNew(title=title):
                    card = await self._save_as_new(owner, local, title)
                case Replace(confirmed=confirmed):
                    card = await self._replace(owner, local, existing_card_id, confirmed)
                case _:
                    assert_never(resolution)

        cache.delete()
        logger.info(
            "Resolved merge for %s (%d) with %s -> card %s",
            owner,
            local.year,
            type(resolution).__name__,
            card.id,
        )
        return card

    async def _save_as_new(self, owner: str, local: Card, title: str) -> Card:
        title = lifecycle.clean_title(title)
        if not title:
            raise ValidationError("A new title is required to save as a new card", "title_required")
        for card in await self.store.list_cards(owner):
            if card.year == local.year and card.title == title:
                raise ConflictError(
                    f"You already have a card titled {title!r} for {local.year}", "title_taken"
                )
        return await self._import(owner, replace(local, title=title), allow_same_year=True)

    async def _replace(
        self, owner: str, local: Card, existing_card_id: str, confirmed: bool
    ) -> Card:
        if not confirmed:
            raise ValidationError(
                "Replacing the existing card deletes it permanently and must be confirmed",
                "confirmation_required",
            )
        existing = await self._primary(owner, local.year, existing_card_id)
        async with self.card_locks.hold(existing.id):
            await self.store.delete(owner, existing.id)
        logger.warning("Replaced card %s for %s (%d)", existing.id, owner, existing.year)
        return await self._import(owner, local)

    async def _primary(self, owner: str, year: int, existing_card_id: str) -> Card:
        """The primary card for the year, which must be the one the user was shown."""
        primary = await self.store.get_by_key(owner, year)
        if primary is None or primary.id != existing_card_id:
            raise ValidationError(f"Card {existing_card_id} is not the {year} card", "wrong_card")
        return primary

    async def _import(self, owner: str, local: Card, *, allow_same_year: bool = False) -> Card:
        """Write the card shell, then each item, then the finalized flag.

        A failure after the shell exists deletes it again so the import is
        all-or-nothing; if that cleanup fails too it is reported separately.
        """
        shell = replace(
            local,
            owner=owner,
            is_finalized=False,
            cells=tuple(EMPTY if isinstance(c, ItemCell) else c for c in local.cells),
        )
        try:
            created = await self.store.create(shell, allow_same_year=allow_same_year)
        except ConflictError as e:
            if e.code != "card_exists":
                raise
            # Lost a race with another import; treat it as a fresh conflict.
            existing = await self.store.get_by_key(owner, local.year)
            if existing is None:
                raise
            raise _conflict_with(existing) from e
        except Exception as e:
            raise ImportFailedError(f"Importing card failed: {e}", cause=e) from e

        try:
            for position, item in local.items.items():
                await self.store.put_item(owner, created.id, position, item)
            card = await self.store.get(owner, created.id)
            if local.is_finalized:
                card = await self.store.save(lifecycle.finalize(card, local.visible_to_friends))
            return card
        except Exception as e:
            rollback_error = None
            try:
                await self.store.delete(owner, created.id)
            except Exception as cleanup_error:
                rollback_error = cleanup_error
                logger.error(
                    "Rolling back partial import of card %s failed: %s", created.id, cleanup_error
                )
            raise ImportFailedError(
                f"Importing card failed: {e}", cause=e, rollback_error=rollback_error
            ) from e


def _conflict_with(existing: Card) -> ConflictError:
    return ConflictError(
        f"You already have a card for {existing.year}",
        "card_exists",
        existing=ExistingCardSummary.of(existing),
    )
