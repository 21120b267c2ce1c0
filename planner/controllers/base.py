"""Shared list-state handling for the page controllers."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, Optional, TypeVar

from ..api.errors import ApiError, AuthenticationRequired

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Notice:
    """A transient message for the user (toast / inline alert)."""
    level: str  # "success", "info", "error"
    text: str
    created_at: datetime = field(default_factory=datetime.utcnow)


class ListController(Generic[T]):
    """
    Owns one fetched list and applies mutation results to it.

    Mutations are merged only after the server confirms them, so a failed
    call leaves the list as it was. Every load takes a generation number;
    a response that comes back after a newer load started is dropped.
    """

    def __init__(self):
        self.items: list[T] = []
        self.is_loading = False
        self.notices: list[Notice] = []
        self.last_error: Optional[ApiError] = None
        self._generation = 0

    def notify(self, level: str, text: str):
        self.notices.append(Notice(level=level, text=text))

    def drain_notices(self) -> list[Notice]:
        """Hand pending notices to the view and forget them."""
        notices, self.notices = self.notices, []
        return notices

    def find(self, item_id: str) -> Optional[T]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _is_current(self, generation: int) -> bool:
        if generation != self._generation:
            logger.debug(f"Dropping stale response (generation {generation} < {self._generation})")
            return False
        return True

    def _fail(self, error: ApiError, text: str):
        """Record a failed call as an error notice. Lost sessions propagate."""
        if isinstance(error, AuthenticationRequired):
            raise error
        self.last_error = error
        logger.error(f"{text}: {error}")
        self.notify("error", text)

    def _prepend(self, item: T):
        self.items = [item, *self.items]

    def _replace(self, item: T):
        self.items = [item if existing.id == item.id else existing for existing in self.items]

    def _remove(self, item_id: str):
        self.items = [existing for existing in self.items if existing.id != item_id]
