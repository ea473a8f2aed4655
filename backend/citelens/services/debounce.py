from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HoverDebouncer:
    """Lets only the latest request per key through after a quiet period.

    Every call takes a ticket and sleeps for ``delay``. If a newer call for the
    same key arrived meanwhile, the older one returns ``None`` without running
    its action.
    """

    def __init__(self, delay: float = 0.3) -> None:
        self.delay = delay
        self._latest: dict[Hashable, int] = {}
        self._tickets = itertools.count(1)

    async def run(self, key: Hashable, action: Callable[[], Awaitable[T]]) -> T | None:
        ticket = next(self._tickets)
        self._latest[key] = ticket
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        if self._latest.get(key) != ticket:
            logger.debug("hover request %s for %s superseded", ticket, key)
            return None
        try:
            return await action()
        finally:
            if self._latest.get(key) == ticket:
                del self._latest[key]
