"""Card errors.

Grid and lifecycle checks raise these synchronously; they are always
correctable by fixing the input and are never retried automatically.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..merge.models import ExistingCardSummary


class GoalGridError(Exception):
    """Base class for all card errors."""

    def __init__(self, message: str, code: str = ""):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(GoalGridError):
    """Bad position, content, header, title, category or year."""


class StateError(GoalGridError):
    """Operation is not legal in the card's current lifecycle state."""


class CapacityError(GoalGridError):
    """Card is full, or there is no room to enable the FREE cell."""


class ConflictError(GoalGridError):
    """Uniqueness violation on the (owner, year) key or on a same-year title."""

    def __init__(
        self,
        message: str,
        code: str = "card_exists",
        existing: ExistingCardSummary | None = None,
    ):
        super().__init__(message, code)
        self.existing = existing


class NotFoundError(GoalGridError):
    """Card or item does not exist."""


class TransientStoreError(GoalGridError):
    """Store failed in a way the caller may retry. Held state is untouched."""

    def __init__(self, message: str, code: str = "store_unavailable"):
        super().__init__(message, code)


class ImportFailedError(GoalGridError):
    """Importing a local card failed.

    ``cause`` is the original failure. ``rollback_error`` is set only when
    undoing the partial import failed as well.
    """

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        rollback_error: BaseException | None = None,
    ):
        super().__init__(message, "import_failed")
        self.cause = cause
        self.rollback_error = rollback_error

    @property
    def rolled_back(self) -> bool:
        return self.rollback_error is None
