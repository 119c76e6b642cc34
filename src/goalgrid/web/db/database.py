"""Card store lifecycle for the web app (singleton pattern)."""

from __future__ import annotations

from ...store.sqlite import SqliteCardStore

_store: SqliteCardStore | None = None


async def init_db(db_path: str) -> SqliteCardStore:
    """Open the card store and apply the schema."""
    global _store
    _store = await SqliteCardStore.open(db_path)
    return _store


async def get_store() -> SqliteCardStore:
    if _store is None:
        raise RuntimeError("Card store not initialized. Call init_db() first.")
    return _store


async def close_db() -> None:
    global _store
    if _store is not None:
        await _store.close()
        _store = None
