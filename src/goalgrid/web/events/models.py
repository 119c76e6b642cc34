"""Card event models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class EventType(StrEnum):
    # Card events
    CARD_CREATED = "card_created"
    CARD_UPDATED = "card_updated"
    CARD_DELETED = "card_deleted"
    CARD_FINALIZED = "card_finalized"
    CARD_IMPORTED = "card_imported"
    # Item events
    ITEM_COMPLETED = "item_completed"
    ITEM_UNCOMPLETED = "item_uncompleted"
    # A line newly completed by the latest change
    BINGO = "bingo"


@dataclass
class Event:
    event_type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    channel: str = ""
