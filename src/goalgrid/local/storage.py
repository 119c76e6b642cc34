"""Draft storage backends.

The local draft is a single JSON document; storage only has to load, save
and clear that text.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class DraftStorage(Protocol):
    """Where the unsynced card's JSON lives between edits."""

    def load(self) -> str | None: ...

    def save(self, data: str) -> None: ...

    def clear(self) -> None: ...


class MemoryDraftStorage:
    """Keeps the draft in process memory. Used for one-shot merges and tests."""

    def __init__(self, data: str | None = None):
        self._data = data

    def load(self) -> str | None:
        return self._data

    def save(self, data: str) -> None:
        self._data = data

    def clear(self) -> None:
        self._data = None


class FileDraftStorage:
    """Keeps the draft in a JSON file, replaced atomically on every save."""

    DEFAULT_PATH = Path.home() / ".goalgrid" / "draft.json"

    def __init__(self, path: Path | None = None):
        self.path = path or self.DEFAULT_PATH

    def load(self) -> str | None:
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def save(self, data: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(data, encoding="utf-8")
        os.replace(tmp_path, self.path)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.debug("Removed local draft %s", self.path)
