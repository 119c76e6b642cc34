"""LocalDraftCache: the one card a user edits before having an account.

The cached card has no owner and never becomes permanent on its own. It
goes through exactly the same lifecycle rules as a stored Draft card, and
finalizing it only marks it ready; it becomes a real card when
``MergeResolver`` imports it.
"""

from __future__ import annotations

import json
import logging
import random
import secrets
from collections.abc import Callable
from typing import Any

from ..grid import lifecycle
from ..grid.codec import card_from_dict, card_to_dict
from ..grid.errors import ConflictError, NotFoundError, ValidationError
from ..grid.models import Card
from .storage import DraftStorage

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


def encode_snapshot(card: Card) -> dict[str, Any]:
    data = card_to_dict(card)
    data["owner"] = None
    return {"version": SNAPSHOT_VERSION, "card": data}


def decode_snapshot(data: dict[str, Any]) -> Card:
    """Rebuild an unsynced card.

    Besides checking the layout, rejects titles and categories that no
    stored card could have.
    """
    version = data.get("version")
    if version != SNAPSHOT_VERSION:
        raise ValidationError(f"Unsupported draft version {version!r}", "invalid_snapshot")
    try:
        card_data = dict(data["card"])
    except (KeyError, TypeError) as e:
        raise ValidationError("Draft has no card", "invalid_snapshot") from e
    card_data["owner"] = None
    try:
        card_data["title"] = lifecycle.clean_title(card_data.get("title"))
        card_data["category"] = lifecycle.clean_category(card_data.get("category"))
        return card_from_dict(card_data)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Malformed draft: {e}", "invalid_snapshot") from e


class LocalDraftCache:
    """Holds at most one unsynced card on top of a DraftStorage."""

    def __init__(self, storage: DraftStorage, rng: random.Random | None = None):
        self.storage = storage
        self.rng = rng or random.Random()

    # --- Presence ---

    def exists(self) -> bool:
        return self.storage.load() is not None

    def get(self) -> Card:
        raw = self.storage.load()
        if raw is None:
            raise NotFoundError("No local draft", "draft_not_found")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Local draft is not valid JSON: {e}", "invalid_snapshot") from e
        return decode_snapshot(data)

    def create(
        self,
        year: int,
        *,
        title: str | None = None,
        category: str | None = None,
        grid_size: int = 5,
        header_text: str | None = None,
        has_free_space: bool = True,
    ) -> Card:
        if self.exists():
            raise ConflictError("A local draft already exists", "draft_exists")
        lifecycle.validate_year(year)
        card = lifecycle.new_card(
            f"local-{secrets.token_hex(8)}",
            None,
            year,
            title=title,
            category=category,
            grid_size=grid_size,
            header_text=header_text,
            has_free_space=has_free_space,
            rng=self.rng,
        )
        self._write(card)
        logger.info("Started local draft for %d", year)
        return card

    def delete(self) -> None:
        self.storage.clear()

    def snapshot(self) -> dict[str, Any]:
        return encode_snapshot(self.get())

    def load_snapshot(self, data: dict[str, Any], *, replace: bool = False) -> Card:
        """Adopt a card that was serialized elsewhere."""
        if self.exists() and not replace:
            raise ConflictError("A local draft already exists", "draft_exists")
        card = decode_snapshot(data)
        self._write(card)
        return card

    # --- Editing ---

    def add_item(self, content: str, position: int | None = None) -> tuple[Card, int]:
        card, placed = lifecycle.add_item(self.get(), content, position, self.rng)
        self._write(card)
        return card, placed

    def remove_item(self, position: int) -> Card:
        return self._apply(lambda c: lifecycle.remove_item(c, position))

    def update_item(self, position: int, content: str) -> Card:
        return self._apply(lambda c: lifecycle.update_item_content(c, position, content))

    def update_item_notes(self, position: int, notes: str | None) -> Card:
        return self._apply(lambda c: lifecycle.update_item_notes(c, position, notes))

    def swap_items(self, pos_a: int, pos_b: int) -> Card:
        return self._apply(lambda c: lifecycle.swap(c, pos_a, pos_b))

    def shuffle(self) -> Card:
        return self._apply(lambda c: lifecycle.shuffle(c, self.rng))

    def update_config(
        self, header_text: str | None = None, has_free_space: bool | None = None
    ) -> Card:
        return self._apply(
            lambda c: lifecycle.update_config(c, header_text, has_free_space, self.rng)
        )

    def set_meta(self, **changes: str | None) -> Card:
        return self._apply(lambda c: lifecycle.set_meta(c, **changes))

    def finalize(self, visible_to_friends: bool = True) -> Card:
        """Mark the draft ready to import as a finalized card."""
        return self._apply(lambda c: lifecycle.finalize(c, visible_to_friends))

    def complete_item(self, position: int, notes: str | None = None) -> Card:
        return self._apply(lambda c: lifecycle.complete_item(c, position, notes))

    def uncomplete_item(self, position: int) -> Card:
        return self._apply(lambda c: lifecycle.uncomplete_item(c, position))

    def _apply(self, transition: Callable[[Card], Card]) -> Card:
        card = transition(self.get())
        self._write(card)
        return card

    def _write(self, card: Card) -> None:
        self.storage.save(json.dumps(encode_snapshot(card)))
