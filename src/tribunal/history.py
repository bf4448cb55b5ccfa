from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from .errors import NotFoundError

log = logging.getLogger("tribunal.history")

T = TypeVar("T")

PREVIOUS = -1
NEXT = 1


class ReviewHistory:
    """Bounded navigation log of recently presented entity ids.

    ``index`` is -1 when the history is empty and a valid position otherwise.
    """

    def __init__(self, max_size: int) -> None:
        self.max_size = max(1, int(max_size))
        self.ids: list[int] = []
        self.index = -1

    def __len__(self) -> int:
        return len(self.ids)

    @property
    def current(self) -> Optional[int]:
        if self.index < 0:
            return None
        return self.ids[self.index]

    def at_end(self) -> bool:
        return self.index >= len(self.ids) - 1

    def push(self, entity_id: int) -> None:
        if entity_id in self.ids:
            self.ids.remove(entity_id)
        self.ids.append(entity_id)
        overflow = len(self.ids) - self.max_size
        if overflow > 0:
            del self.ids[:overflow]
        self.index = len(self.ids) - 1

    def remove(self, entity_id: int) -> bool:
        try:
            pos = self.ids.index(entity_id)
        except ValueError:
            return False
        del self.ids[pos]
        if pos < self.index:
            self.index -= 1
        self.index = min(self.index, len(self.ids) - 1)
        return True

    def prev(self) -> tuple[Optional[int], bool]:
        return self._step(PREVIOUS)

    def next(self) -> tuple[Optional[int], bool]:
        return self._step(NEXT)

    def _step(self, direction: int) -> tuple[Optional[int], bool]:
        pos = self.index + direction
        if self.index < 0 or pos < 0 or pos >= len(self.ids):
            return None, False
        self.index = pos
        return self.ids[pos], True

    async def navigate(self, direction: int, fetch: Callable[[int], Awaitable[T]]) -> Optional[T]:
        """Move one step and return the re-fetched snapshot.

        Ids that no longer resolve are dropped and the step is retried until
        a live entry is found. The cursor only moves on success; None means
        there is nothing left in that direction.
        """
        while True:
            pos = self.index + direction
            if self.index < 0 or pos < 0 or pos >= len(self.ids):
                return None
            entity_id = self.ids[pos]
            try:
                entity = await fetch(entity_id)
            except NotFoundError:
                log.info("Dropping missing entity %s from review history", entity_id)
                self.remove(entity_id)
                continue
            self.index = pos
            return entity
