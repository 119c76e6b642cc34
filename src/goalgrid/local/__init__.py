"""Anonymous local draft."""

from .cache import LocalDraftCache, decode_snapshot, encode_snapshot
from .storage import DraftStorage, FileDraftStorage, MemoryDraftStorage

__all__ = [
    "DraftStorage",
    "FileDraftStorage",
    "LocalDraftCache",
    "MemoryDraftStorage",
    "decode_snapshot",
    "encode_snapshot",
]
