import asyncio
import logging
from typing import Generic, TypeVar

from .errors import ChannelClosedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


class Subscription(Generic[T]):
    """One subscriber's bounded view of a BroadcastHub, consumed with ``async for``."""

    def __init__(self, name: str, maxsize: int):
        self.name = name
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.received = 0
        self._done = False
        self.detached = False

    def __aiter__(self):
        return self

    async def __anext__(self) -> T:
        if self._done:
            raise StopAsyncIteration
        item = await self.queue.get()
        if item is _CLOSED:
            self._done = True
            raise StopAsyncIteration
        self.received += 1
        return item

    @property
    def closed(self) -> bool:
        return self._done


class BroadcastHub(Generic[T]):
    """
    Fans every published item out to all subscribers.

    Delivery is strict: publish() waits until every subscriber queue has
    room, so one full buffer holds back the publisher (and with it the
    executor) for everybody. Publishing is serialized, which keeps the
    relative order identical across subscribers.
    """

    def __init__(self, default_maxsize: int = 16):
        self.default_maxsize = default_maxsize
        self._subscribers: list[Subscription[T]] = []
        self._lock = asyncio.Lock()
        self._closed = False
        self.published = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, name: str = "", maxsize: int | None = None) -> Subscription[T]:
        sub: Subscription[T] = Subscription(
            name or f"sub-{len(self._subscribers)}", maxsize or self.default_maxsize
        )
        if self._closed:
            # Nothing more will arrive; hand back an exhausted subscription.
            sub._done = True
            logger.debug(f"Subscription '{sub.name}' created after close")
            return sub
        if self.published:
            logger.debug(
                f"Late subscription '{sub.name}' will miss {self.published} results"
            )
        self._subscribers.append(sub)
        return sub

    def detach(self, sub: Subscription[T]) -> None:
        """
        Drop a subscriber whose consumer is gone. Its buffer is emptied so a
        publisher waiting on it wakes up, and nothing is queued for it again.
        """
        if sub.detached:
            return
        sub.detached = True
        if sub in self._subscribers:
            self._subscribers.remove(sub)
        dropped = 0
        while not sub.queue.empty():
            sub.queue.get_nowait()
            dropped += 1
        logger.debug(f"Subscription '{sub.name}' detached, {dropped} buffered results dropped")

    async def publish(self, item: T) -> None:
        async with self._lock:
            if self._closed:
                raise ChannelClosedError("publish on a closed broadcast hub")
            for sub in list(self._subscribers):
                if not sub.detached:
                    await sub.queue.put(item)
            self.published += 1

    async def close(self) -> None:
        async with self._lock:
            if self._closed:
                return
            self._closed = True
            for sub in list(self._subscribers):
                if not sub.detached:
                    await sub.queue.put(_CLOSED)
        logger.debug(
            f"Broadcast closed after {self.published} results to {len(self._subscribers)} subscribers"
        )
