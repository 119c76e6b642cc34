"""Card service - business logic.

Every mutation runs under the card's lock: load, apply one lifecycle
transition, save, publish. Two requests for the same card never see each
other's half-applied state; requests for different cards do not wait on
each other.
"""

from __future__ import annotations

import logging
import random
import weakref
from collections.abc import Callable
from datetime import datetime

from ...grid import engine, lifecycle
from ...grid.codec import card_to_dict
from ...grid.errors import NotFoundError
from ...grid.models import BingoLine, Card, CardStats
from ...local.cache import LocalDraftCache
from ...local.storage import MemoryDraftStorage
from ...locks import card_locks
from ...merge.models import Resolution
from ...merge.resolver import MergeResolver
from ...store.base import CardStore
from ..events import Event, EventType, event_manager

logger = logging.getLogger(__name__)

_resolvers: weakref.WeakKeyDictionary[CardStore, MergeResolver] = weakref.WeakKeyDictionary()


def _resolver(store: CardStore) -> MergeResolver:
    resolver = _resolvers.get(store)
    if resolver is None:
        resolver = _resolvers[store] = MergeResolver(store)
    return resolver


async def _publish(owner: str, event_type: EventType, data: dict) -> None:
    await event_manager.publish_to_owner(owner, Event(event_type=event_type, data=data))


async def _mutate(
    store: CardStore,
    owner: str,
    card_id: str,
    transition: Callable[[Card], Card],
    event_type: EventType = EventType.CARD_UPDATED,
) -> Card:
    async with card_locks.hold(card_id):
        card = await store.get(owner, card_id)
        updated = transition(card)
        if updated is card:
            return card
        saved = await store.save(updated)
    await _publish(owner, event_type, card_to_dict(saved))
    return saved


# --- Card CRUD ---


async def create_card(
    store: CardStore,
    owner: str,
    year: int,
    *,
    title: str | None = None,
    category: str | None = None,
    grid_size: int = 5,
    header_text: str | None = None,
    has_free_space: bool = True,
) -> Card:
    lifecycle.validate_year(year)
    draft = lifecycle.new_card(
        "",
        owner,
        year,
        title=title,
        category=category,
        grid_size=grid_size,
        header_text=header_text,
        has_free_space=has_free_space,
    )
    card = await store.create(draft)
    await _publish(owner, EventType.CARD_CREATED, card_to_dict(card))
    return card


async def get_card(store: CardStore, owner: str, card_id: str) -> Card:
    return await store.get(owner, card_id)


async def list_cards(store: CardStore, owner: str) -> list[Card]:
    return await store.list_cards(owner)


async def delete_card(store: CardStore, owner: str, card_id: str) -> None:
    async with card_locks.hold(card_id):
        await store.delete(owner, card_id)
    await _publish(owner, EventType.CARD_DELETED, {"id": card_id})


# --- Draft editing ---


async def add_item(
    store: CardStore, owner: str, card_id: str, content: str, position: int | None = None
) -> tuple[Card, int]:
    async with card_locks.hold(card_id):
        card = await store.get(owner, card_id)
        updated, placed = lifecycle.add_item(card, content, position)
        saved = await store.save(updated)
    await _publish(owner, EventType.CARD_UPDATED, card_to_dict(saved))
    return saved, placed


async def remove_item(store: CardStore, owner: str, card_id: str, position: int) -> Card:
    return await _mutate(store, owner, card_id, lambda c: lifecycle.remove_item(c, position))


async def update_item(
    store: CardStore, owner: str, card_id: str, position: int, content: str
) -> Card:
    return await _mutate(
        store, owner, card_id, lambda c: lifecycle.update_item_content(c, position, content)
    )


async def swap_items(
    store: CardStore, owner: str, card_id: str, position_a: int, position_b: int
) -> Card:
    return await _mutate(
        store, owner, card_id, lambda c: lifecycle.swap(c, position_a, position_b)
    )


async def shuffle(
    store: CardStore, owner: str, card_id: str, rng: random.Random | None = None
) -> Card:
    return await _mutate(store, owner, card_id, lambda c: lifecycle.shuffle(c, rng))


async def update_draft_config(
    store: CardStore,
    owner: str,
    card_id: str,
    header_text: str | None = None,
    has_free_space: bool | None = None,
) -> Card:
    return await _mutate(
        store,
        owner,
        card_id,
        lambda c: lifecycle.update_config(c, header_text, has_free_space),
    )


async def update_meta(store: CardStore, owner: str, card_id: str, **changes: str | None) -> Card:
    return await _mutate(store, owner, card_id, lambda c: lifecycle.set_meta(c, **changes))


async def finalize(
    store: CardStore, owner: str, card_id: str, visible_to_friends: bool = True
) -> Card:
    return await _mutate(
        store,
        owner,
        card_id,
        lambda c: lifecycle.finalize(c, visible_to_friends),
        EventType.CARD_FINALIZED,
    )


# --- Finalized card ---


async def complete_item(
    store: CardStore, owner: str, card_id: str, position: int, notes: str | None = None
) -> Card:
    """Mark an item done and announce any line it completes."""
    async with card_locks.hold(card_id):
        card = await store.get(owner, card_id)
        before = set(engine.detect_bingo(card))
        saved = await store.save(lifecycle.complete_item(card, position, notes))
    await _publish(owner, EventType.ITEM_COMPLETED, {"card_id": card_id, "position": position})
    for line in engine.detect_bingo(saved):
        if line not in before:
            logger.info("Bingo on card %s: %s %d", card_id, line.kind, line.index)
            await _publish(
                owner,
                EventType.BINGO,
                {
                    "card_id": card_id,
                    "kind": str(line.kind),
                    "index": line.index,
                    "positions": list(line.positions),
                },
            )
    return saved


async def uncomplete_item(store: CardStore, owner: str, card_id: str, position: int) -> Card:
    return await _mutate(
        store,
        owner,
        card_id,
        lambda c: lifecycle.uncomplete_item(c, position),
        EventType.ITEM_UNCOMPLETED,
    )


async def update_item_notes(
    store: CardStore, owner: str, card_id: str, position: int, notes: str | None
) -> Card:
    return await _mutate(
        store, owner, card_id, lambda c: lifecycle.update_item_notes(c, position, notes)
    )


async def update_visibility(
    store: CardStore, owner: str, card_id: str, visible_to_friends: bool
) -> Card:
    return await _mutate(
        store, owner, card_id, lambda c: lifecycle.set_visibility(c, visible_to_friends)
    )


async def clone_card(
    store: CardStore,
    owner: str,
    card_id: str,
    *,
    year: int | None = None,
    title: str | None = None,
    category: str | None = None,
    grid_size: int | None = None,
    header_text: str | None = None,
    has_free_space: bool | None = None,
    copy_items: bool = True,
) -> lifecycle.CloneResult:
    source = await store.get(owner, card_id)
    if year is not None:
        lifecycle.validate_year(year)
    result = lifecycle.clone(
        source,
        "",
        owner,
        year=year,
        title=title,
        category=category,
        grid_size=grid_size,
        header_text=header_text,
        has_free_space=has_free_space,
        copy_items=copy_items,
    )
    card = await store.create(result.card)
    await _publish(owner, EventType.CARD_CREATED, card_to_dict(card))
    return lifecycle.CloneResult(card=card, truncated_item_count=result.truncated_item_count)


async def get_stats(store: CardStore, owner: str, card_id: str) -> CardStats:
    return engine.card_stats(await store.get(owner, card_id))


async def get_bingos(store: CardStore, owner: str, card_id: str) -> list[BingoLine]:
    return engine.detect_bingo(await store.get(owner, card_id))


# --- Archive and bulk actions ---


async def get_archive(store: CardStore, owner: str, now: datetime | None = None) -> list[Card]:
    """Finalized cards from past years, newest first."""
    cards = [c for c in await store.list_cards(owner) if lifecycle.in_archive(c, now)]
    return sorted(cards, key=lambda c: (c.year, c.created_at), reverse=True)


async def _bulk_update(
    store: CardStore,
    owner: str,
    card_ids: list[str],
    transition: Callable[[Card], Card | None],
) -> int:
    """Apply ``transition`` to each listed card the owner has.

    Unknown ids and other owners' cards are skipped, as is any card the
    transition returns None for. Returns how many cards it applied to.
    """
    count = 0
    for card_id in dict.fromkeys(card_ids):
        async with card_locks.hold(card_id):
            try:
                card = await store.get(owner, card_id)
            except NotFoundError:
                continue
            updated = transition(card)
            if updated is None:
                continue
            if updated is not card:
                updated = await store.save(updated)
        count += 1
        if updated is not card:
            await _publish(owner, EventType.CARD_UPDATED, card_to_dict(updated))
    return count


async def bulk_update_visibility(
    store: CardStore, owner: str, card_ids: list[str], visible_to_friends: bool
) -> int:
    """Drafts have no visibility yet and are skipped."""
    return await _bulk_update(
        store,
        owner,
        card_ids,
        lambda c: lifecycle.set_visibility(c, visible_to_friends) if c.is_finalized else None,
    )


async def bulk_update_archive(
    store: CardStore, owner: str, card_ids: list[str], is_archived: bool
) -> int:
    return await _bulk_update(
        store, owner, card_ids, lambda c: lifecycle.set_archived(c, is_archived)
    )


async def bulk_delete(store: CardStore, owner: str, card_ids: list[str]) -> int:
    count = 0
    for card_id in dict.fromkeys(card_ids):
        try:
            await delete_card(store, owner, card_id)
        except NotFoundError:
            continue
        count += 1
    logger.info("Bulk deleted %d of %d cards for %s", count, len(card_ids), owner)
    return count


# --- Local draft import ---


def _cache_for(snapshot: dict) -> LocalDraftCache:
    cache = LocalDraftCache(MemoryDraftStorage())
    cache.load_snapshot(snapshot)
    return cache


async def import_local_card(store: CardStore, owner: str, snapshot: dict) -> Card:
    card = await _resolver(store).import_local(owner, _cache_for(snapshot))
    await _publish(owner, EventType.CARD_IMPORTED, card_to_dict(card))
    return card


async def resolve_conflict(
    store: CardStore,
    owner: str,
    snapshot: dict,
    resolution: Resolution,
    existing_card_id: str,
) -> Card:
    card = await _resolver(store).resolve(
        owner, _cache_for(snapshot), resolution, existing_card_id
    )
    if card.id != existing_card_id:
        await _publish(owner, EventType.CARD_IMPORTED, card_to_dict(card))
    return card
