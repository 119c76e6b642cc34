"""SQLite card store on aiosqlite."""

from __future__ import annotations

import asyncio
import logging
import secrets
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

import aiosqlite

from ..grid.codec import build_cells, item_from_dict
from ..grid.errors import (
    ConflictError,
    GoalGridError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from ..grid.models import Card, Item
from .base import CardStore

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

_CARD_COLUMNS = """id, owner_id, year, title, category, grid_size, header_text,
    has_free_space, free_space_position, is_finalized, visible_to_friends,
    is_archived, created_at, updated_at"""


class SqliteCardStore(CardStore):
    """CardStore backed by a single aiosqlite connection.

    Writes go through one lock so transactions on the shared connection never
    interleave.
    """

    def __init__(self, db: aiosqlite.Connection):
        self._db = db
        self._write_lock = asyncio.Lock()

    @classmethod
    async def open(cls, db_path: str) -> SqliteCardStore:
        """Connect, enable WAL and foreign keys, and apply the schema."""
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(db_path)
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA journal_mode=WAL")
        await db.execute("PRAGMA foreign_keys=ON")
        await db.executescript(SCHEMA_PATH.read_text())
        await _run_migrations(db)
        await db.commit()
        logger.debug("Opened card store at %s", db_path)
        return cls(db)

    async def close(self) -> None:
        await self._db.close()

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        async with self._write_lock:
            try:
                yield self._db
                await self._db.commit()
            except BaseException:
                await self._db.rollback()
                raise

    # --- Reads ---

    async def _load(self, row: aiosqlite.Row) -> Card:
        cursor = await self._db.execute(
            "SELECT * FROM card_items WHERE card_id = ? ORDER BY position", (row["id"],)
        )
        items = [(r["position"], item_from_dict(dict(r))) for r in await cursor.fetchall()]
        free_pos = row["free_space_position"] if row["has_free_space"] else None
        return Card(
            id=row["id"],
            owner=row["owner_id"],
            year=row["year"],
            grid_size=row["grid_size"],
            header_text=row["header_text"],
            cells=build_cells(row["grid_size"], free_pos, items),
            title=row["title"],
            category=row["category"],
            is_finalized=bool(row["is_finalized"]),
            visible_to_friends=bool(row["visible_to_friends"]),
            is_archived=bool(row["is_archived"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    async def get(self, owner: str, card_id: str) -> Card:
        try:
            cursor = await self._db.execute(
                f"SELECT {_CARD_COLUMNS} FROM cards WHERE id = ? AND owner_id = ?",
                (card_id, owner),
            )
            row = await cursor.fetchone()
            if not row:
                raise NotFoundError(f"Card {card_id} not found", "card_not_found")
            return await self._load(row)
        except sqlite3.OperationalError as e:
            raise TransientStoreError(f"Reading card failed: {e}") from e

    async def get_by_key(self, owner: str, year: int) -> Card | None:
        try:
            cursor = await self._db.execute(
                f"""SELECT {_CARD_COLUMNS} FROM cards
                    WHERE owner_id = ? AND year = ? AND is_primary = 1""",
                (owner, year),
            )
            row = await cursor.fetchone()
            return await self._load(row) if row else None
        except sqlite3.OperationalError as e:
            raise TransientStoreError(f"Reading card failed: {e}") from e

    async def list_cards(self, owner: str) -> list[Card]:
        try:
            cursor = await self._db.execute(
                f"""SELECT {_CARD_COLUMNS} FROM cards WHERE owner_id = ?
                    ORDER BY year DESC, is_primary DESC, created_at""",
                (owner,),
            )
            return [await self._load(row) for row in await cursor.fetchall()]
        except sqlite3.OperationalError as e:
            raise TransientStoreError(f"Listing cards failed: {e}") from e

    # --- Writes ---

    async def create(self, card: Card, *, allow_same_year: bool = False) -> Card:
        if card.owner is None:
            raise ValidationError("Stored cards need an owner", "missing_owner")
        card_id = secrets.token_hex(8)
        try:
            async with self._transaction() as db:
                await db.execute(
                    """INSERT INTO cards (id, owner_id, year, title, category, grid_size,
                       header_text, has_free_space, free_space_position, is_primary,
                       is_finalized, visible_to_friends, is_archived, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        card_id,
                        card.owner,
                        card.year,
                        card.title,
                        card.category,
                        card.grid_size,
                        card.header_text,
                        int(card.has_free_space),
                        card.free_space_position,
                        0 if allow_same_year else 1,
                        int(card.is_finalized),
                        int(card.visible_to_friends),
                        int(card.is_archived),
                        card.created_at.isoformat(),
                        card.updated_at.isoformat(),
                    ),
                )
                await _insert_items(db, card_id, card.items)
        except sqlite3.IntegrityError as e:
            raise _conflict(e, card) from e
        except sqlite3.OperationalError as e:
            raise TransientStoreError(f"Creating card failed: {e}") from e

        logger.info("Created card %s for %s (%d)", card_id, card.owner, card.year)
        return await self.get(card.owner, card_id)

    async def save(self, card: Card) -> Card:
        try:
            async with self._transaction() as db:
                cursor = await db.execute(
                    """UPDATE cards SET title = ?, category = ?, header_text = ?,
                       has_free_space = ?, free_space_position = ?, is_finalized = ?,
                       visible_to_friends = ?, is_archived = ?, updated_at = ?
                       WHERE id = ? AND owner_id = ?""",
                    (
                        card.title,
                        card.category,
                        card.header_text,
                        int(card.has_free_space),
                        card.free_space_position,
                        int(card.is_finalized),
                        int(card.visible_to_friends),
                        int(card.is_archived),
                        card.updated_at.isoformat(),
                        card.id,
                        card.owner,
                    ),
                )
                if cursor.rowcount == 0:
                    raise NotFoundError(f"Card {card.id} not found", "card_not_found")
                await db.execute("DELETE FROM card_items WHERE card_id = ?", (card.id,))
                await _insert_items(db, card.id, card.items)
        except sqlite3.IntegrityError as e:
            raise _conflict(e, card) from e
        except sqlite3.OperationalError as e:
            raise TransientStoreError(f"Saving card failed: {e}") from e
        return await self.get(card.owner, card.id)

    async def put_item(self, owner: str, card_id: str, position: int, item: Item) -> None:
        try:
            async with self._transaction() as db:
                cursor = await db.execute(
                    "SELECT 1 FROM cards WHERE id = ? AND owner_id = ?", (card_id, owner)
                )
                if not await cursor.fetchone():
                    raise NotFoundError(f"Card {card_id} not found", "card_not_found")
                await _insert_items(db, card_id, {position: item})
        except sqlite3.IntegrityError as e:
            raise ValidationError(
                f"Position {position} is already occupied", "position_occupied"
            ) from e
        except sqlite3.OperationalError as e:
            raise TransientStoreError(f"Writing item failed: {e}") from e

    async def delete(self, owner: str, card_id: str) -> None:
        try:
            async with self._transaction() as db:
                await db.execute("DELETE FROM card_items WHERE card_id = ?", (card_id,))
                cursor = await db.execute(
                    "DELETE FROM cards WHERE id = ? AND owner_id = ?", (card_id, owner)
                )
                if cursor.rowcount == 0:
                    raise NotFoundError(f"Card {card_id} not found", "card_not_found")
        except sqlite3.OperationalError as e:
            raise TransientStoreError(f"Deleting card failed: {e}") from e
        logger.info("Deleted card %s for %s", card_id, owner)


async def _run_migrations(db: aiosqlite.Connection) -> None:
    """Add columns that may be missing from older databases."""
    cursor = await db.execute("PRAGMA table_info(cards)")
    existing = {row[1] for row in await cursor.fetchall()}
    if "is_archived" not in existing:
        await db.execute("ALTER TABLE cards ADD COLUMN is_archived INTEGER NOT NULL DEFAULT 0")


async def _insert_items(db: aiosqlite.Connection, card_id: str, items: dict[int, Item]) -> None:
    await db.executemany(
        """INSERT INTO card_items (card_id, position, content, notes, is_completed, completed_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        [
            (
                card_id,
                position,
                item.content,
                item.notes,
                int(item.is_completed),
                item.completed_at.isoformat() if item.completed_at else None,
            )
            for position, item in items.items()
        ],
    )


def _conflict(error: sqlite3.IntegrityError, card: Card) -> GoalGridError:
    if "cards.title" in str(error):
        return ConflictError(
            f"You already have a card titled {card.title!r} for {card.year}", "title_taken"
        )
    if "cards.owner_id" in str(error):
        return ConflictError(f"A card already exists for {card.year}", "card_exists")
    return ValidationError(f"Card violates a store constraint: {error}", "invalid_card")
