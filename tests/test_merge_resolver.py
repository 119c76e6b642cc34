"""Tests for importing a local draft into an account."""

from __future__ import annotations

import asyncio
import random

import pytest
import pytest_asyncio

from goalgrid.grid import lifecycle
from goalgrid.grid.errors import (
    ConflictError,
    ImportFailedError,
    NotFoundError,
    ValidationError,
)
from goalgrid.grid.models import Item
from goalgrid.local.cache import LocalDraftCache, encode_snapshot
from goalgrid.local.storage import MemoryDraftStorage
from goalgrid.locks import KeyedLocks
from goalgrid.merge import KeepExisting, MergeResolver, Replace, SaveAsNew
from goalgrid.store.sqlite import SqliteCardStore


class FlakyStore(SqliteCardStore):
    """Fails the Nth put_item, and optionally the cleanup delete."""

    fail_on_item: int | None = None
    fail_delete: bool = False
    puts: int = 0

    async def put_item(self, owner: str, card_id: str, position: int, item: Item) -> None:
        self.puts += 1
        if self.fail_on_item is not None and self.puts >= self.fail_on_item:
            raise OSError("disk unplugged")
        await super().put_item(owner, card_id, position, item)

    async def delete(self, owner: str, card_id: str) -> None:
        if self.fail_delete:
            raise OSError("still unplugged")
        await super().delete(owner, card_id)


class StaleReadStore(SqliteCardStore):
    """Reports no card for the first lookup, as if another import landed just after it."""

    stale_reads: int = 1

    async def get_by_key(self, owner: str, year: int):
        if self.stale_reads:
            self.stale_reads -= 1
            return None
        return await super().get_by_key(owner, year)


@pytest_asyncio.fixture
async def store(tmp_path):
    store = await FlakyStore.open(str(tmp_path / "cards.db"))
    yield store
    await store.close()


@pytest.fixture
def cache():
    return LocalDraftCache(MemoryDraftStorage(), rng=random.Random(9))


def _draft(cache: LocalDraftCache, items: int = 3, title: str | None = "Local") -> None:
    cache.create(2025, title=title, grid_size=3)
    for i in range(items):
        cache.add_item(f"local goal {i}")


async def _existing(store, title: str = "Existing", items: int = 2):
    card = lifecycle.new_card("", "user1", 2025, title=title, grid_size=3)
    for i in range(items):
        card, _ = lifecycle.add_item(card, f"stored goal {i}")
    return await store.create(card)


class TestImport:
    async def test_import_without_conflict(self, store, cache):
        _draft(cache)
        local = cache.get()
        card = await MergeResolver(store).import_local("user1", cache)
        assert card.owner == "user1"
        assert card.year == 2025
        assert card.title == "Local"
        assert card.items == local.items
        assert card.free_space_position == local.free_space_position
        assert card.is_finalized is False
        assert cache.exists() is False

    async def test_finalized_local_card_imports_finalized(self, store, cache):
        _draft(cache, items=8)
        cache.finalize(visible_to_friends=False)
        position = next(iter(cache.get().items))
        cache.complete_item(position, notes="did it")
        card = await MergeResolver(store).import_local("user1", cache)
        assert card.is_finalized is True
        assert card.visible_to_friends is False
        assert card.item_at(position).is_completed is True
        assert card.item_at(position).notes == "did it"

    async def test_conflict_reports_existing_card(self, store, cache):
        existing = await _existing(store)
        _draft(cache)
        with pytest.raises(ConflictError) as exc:
            await MergeResolver(store).import_local("user1", cache)
        summary = exc.value.existing
        assert summary.id == existing.id
        assert summary.title == "Existing"
        assert summary.year == 2025
        assert summary.item_count == 2
        assert summary.is_finalized is False
        assert cache.exists()

    async def test_other_owner_is_not_a_conflict(self, store, cache):
        await _existing(store)
        _draft(cache)
        card = await MergeResolver(store).import_local("user2", cache)
        assert card.owner == "user2"

    async def test_invalid_year_rejected_before_writing(self, store):
        cache = LocalDraftCache(MemoryDraftStorage())
        data = encode_snapshot(lifecycle.new_card("local-x", None, 2025, grid_size=3))
        data["card"]["year"] = 2001
        cache.load_snapshot(data)
        with pytest.raises(ValidationError):
            await MergeResolver(store).import_local("user1", cache)
        assert await store.list_cards("user1") == []


class TestResolve:
    async def test_keep_existing(self, store, cache):
        existing = await _existing(store)
        _draft(cache)
        card = await MergeResolver(store).resolve("user1", cache, KeepExisting(), existing.id)
        assert card.id == existing.id
        assert card.items == existing.items
        assert len(await store.list_cards("user1")) == 1
        assert cache.exists() is False

    async def test_save_as_new(self, store, cache):
        existing = await _existing(store)
        _draft(cache)
        card = await MergeResolver(store).resolve(
            "user1", cache, SaveAsNew(title="Side quests"), existing.id
        )
        assert card.id != existing.id
        assert card.title == "Side quests"
        assert card.year == 2025
        assert card.item_count == 3
        assert (await store.get_by_key("user1", 2025)).id == existing.id
        assert len(await store.list_cards("user1")) == 2
        assert cache.exists() is False

    async def test_save_as_new_needs_a_title(self, store, cache):
        existing = await _existing(store)
        _draft(cache)
        with pytest.raises(ValidationError) as exc:
            await MergeResolver(store).resolve("user1", cache, SaveAsNew(title="  "), existing.id)
        assert exc.value.code == "title_required"
        assert cache.exists()

    async def test_save_as_new_with_taken_title(self, store, cache):
        existing = await _existing(store)
        _draft(cache)
        with pytest.raises(ConflictError) as exc:
            await MergeResolver(store).resolve(
                "user1", cache, SaveAsNew(title="Existing"), existing.id
            )
        assert exc.value.code == "title_taken"
        assert cache.exists()
        assert len(await store.list_cards("user1")) == 1

    async def test_replace_requires_confirmation(self, store, cache):
        existing = await _existing(store)
        _draft(cache)
        with pytest.raises(ValidationError) as exc:
            await MergeResolver(store).resolve("user1", cache, Replace(), existing.id)
        assert exc.value.code == "confirmation_required"
        assert (await store.get("user1", existing.id)).id == existing.id
        assert cache.exists()

    async def test_replace(self, store, cache):
        existing = await _existing(store)
        _draft(cache)
        card = await MergeResolver(store).resolve(
            "user1", cache, Replace(confirmed=True), existing.id
        )
        cards = await store.list_cards("user1")
        assert [c.id for c in cards] == [card.id]
        assert card.title == "Local"
        assert all(i.content.startswith("local goal") for i in card.items.values())
        assert cache.exists() is False

    async def test_replace_finalized_card(self, store, cache):
        existing = await _existing(store, items=8)
        existing = await store.save(lifecycle.finalize(existing))
        _draft(cache, items=8)
        cache.finalize()
        card = await MergeResolver(store).resolve(
            "user1", cache, Replace(confirmed=True), existing.id
        )
        assert card.is_finalized
        assert (await store.get_by_key("user1", 2025)).id == card.id
        with pytest.raises(NotFoundError):
            await store.get("user1", existing.id)

    async def test_cache_cleared_only_once(self, store, cache):
        existing = await _existing(store)
        _draft(cache)
        resolver = MergeResolver(store)
        await resolver.resolve("user1", cache, KeepExisting(), existing.id)
        with pytest.raises(NotFoundError):
            await resolver.resolve("user1", cache, KeepExisting(), existing.id)

    async def test_replace_rejects_non_primary_card(self, store, cache):
        await _existing(store, title="Main")
        side = lifecycle.new_card("", "user1", 2025, title="Side", grid_size=3)
        side = await store.create(side, allow_same_year=True)
        _draft(cache)
        with pytest.raises(ValidationError) as exc:
            await MergeResolver(store).resolve(
                "user1", cache, Replace(confirmed=True), side.id
            )
        assert exc.value.code == "wrong_card"
        assert (await store.get("user1", side.id)).title == "Side"
        assert len(await store.list_cards("user1")) == 2
        assert cache.exists()

    async def test_replace_rejects_card_from_other_year(self, store, cache):
        other = await store.create(lifecycle.new_card("", "user1", 2024, grid_size=3))
        _draft(cache)
        with pytest.raises(ValidationError) as exc:
            await MergeResolver(store).resolve(
                "user1", cache, Replace(confirmed=True), other.id
            )
        assert exc.value.code == "wrong_card"
        assert (await store.get("user1", other.id)).year == 2024

    async def test_keep_existing_rejects_non_primary_card(self, store, cache):
        await _existing(store, title="Main")
        side = lifecycle.new_card("", "user1", 2025, title="Side", grid_size=3)
        side = await store.create(side, allow_same_year=True)
        _draft(cache)
        with pytest.raises(ValidationError) as exc:
            await MergeResolver(store).resolve("user1", cache, KeepExisting(), side.id)
        assert exc.value.code == "wrong_card"
        assert cache.exists()


class TestImportFailures:
    async def test_failed_item_write_rolls_back(self, store, cache):
        _draft(cache, items=5)
        store.fail_on_item = 3
        with pytest.raises(ImportFailedError) as exc:
            await MergeResolver(store).import_local("user1", cache)
        assert exc.value.rolled_back is True
        assert isinstance(exc.value.cause, OSError)
        assert await store.get_by_key("user1", 2025) is None
        assert cache.exists()

    async def test_failed_rollback_is_reported_separately(self, store, cache):
        _draft(cache, items=5)
        store.fail_on_item = 2
        store.fail_delete = True
        with pytest.raises(ImportFailedError) as exc:
            await MergeResolver(store).import_local("user1", cache)
        assert exc.value.rolled_back is False
        assert str(exc.value.cause) == "disk unplugged"
        assert str(exc.value.rollback_error) == "still unplugged"
        assert cache.exists()

    async def test_retry_after_failure_succeeds(self, store, cache):
        _draft(cache, items=5)
        store.fail_on_item = 1
        with pytest.raises(ImportFailedError):
            await MergeResolver(store).import_local("user1", cache)
        store.fail_on_item = None
        card = await MergeResolver(store).import_local("user1", cache)
        assert card.item_count == 5

    async def test_replace_failure_keeps_local_draft(self, store, cache):
        existing = await _existing(store)
        _draft(cache)
        store.fail_on_item = 1
        with pytest.raises(ImportFailedError):
            await MergeResolver(store).resolve(
                "user1", cache, Replace(confirmed=True), existing.id
            )
        assert cache.exists()


class TestRaces:
    async def test_lost_race_becomes_fresh_conflict(self, tmp_path, cache):
        store = await StaleReadStore.open(str(tmp_path / "cards.db"))
        try:
            existing = await _existing(store)
            _draft(cache)
            with pytest.raises(ConflictError) as exc:
                await MergeResolver(store).import_local("user1", cache)
            assert exc.value.code == "card_exists"
            assert exc.value.existing.id == existing.id
            assert cache.exists()
            assert len(await store.list_cards("user1")) == 1
        finally:
            await store.close()

    async def test_concurrent_imports_for_same_year(self, store):
        first = LocalDraftCache(MemoryDraftStorage())
        second = LocalDraftCache(MemoryDraftStorage())
        _draft(first)
        _draft(second)
        resolver = MergeResolver(store)
        results = await asyncio.gather(
            resolver.import_local("user1", first),
            resolver.import_local("user1", second),
            return_exceptions=True,
        )
        assert sum(isinstance(r, ConflictError) for r in results) == 1
        assert len(await store.list_cards("user1")) == 1

    async def test_replace_waits_for_card_writer(self, store, cache):
        existing = await _existing(store)
        _draft(cache)
        locks = KeyedLocks()
        resolver = MergeResolver(store, card_locks=locks)
        async with locks.hold(existing.id):
            task = asyncio.create_task(
                resolver.resolve("user1", cache, Replace(confirmed=True), existing.id)
            )
            await asyncio.sleep(0.05)
            assert not task.done()
            assert (await store.get("user1", existing.id)).id == existing.id
        card = await task
        assert (await store.get_by_key("user1", 2025)).id == card.id
        assert len(locks) == 0

    async def test_key_locks_released_after_merge(self, store, cache):
        existing = await _existing(store)
        _draft(cache)
        resolver = MergeResolver(store)
        with pytest.raises(ConflictError):
            await resolver.import_local("user1", cache)
        await resolver.resolve("user1", cache, KeepExisting(), existing.id)
        assert len(resolver._key_locks) == 0
