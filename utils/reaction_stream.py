"""
Async stream of reaction add/remove events for one message.

Events are delivered in the order they were pushed. Iteration ends once
stop() is called; events pushed after that are dropped.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable

_STOP = object()


@dataclass(frozen=True)
class ReactionEvent:
    symbol: str
    user_id: int
    added: bool
    display_name: str | None = None


class ReactionStream:
    def __init__(self, message_id: int, on_close: Callable[["ReactionStream"], None] | None = None):
        self.message_id = message_id
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._on_close = on_close

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, event: ReactionEvent) -> bool:
        if self._closed:
            return False
        self._queue.put_nowait(event)
        return True

    def stop(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_STOP)
        if self._on_close is not None:
            self._on_close(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ReactionEvent:
        item = await self._queue.get()
        if item is _STOP:
            self._queue.put_nowait(_STOP)
            raise StopAsyncIteration
        return item
