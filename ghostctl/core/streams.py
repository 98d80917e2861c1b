"""Fan-out streams shared by the transport, the state worker, and correlation waits."""

from __future__ import annotations

import asyncio
from typing import Generic, TypeVar

from ghostctl.core.errors import StreamClosedError

T = TypeVar("T")

_CLOSED = object()


class Subscription(Generic[T]):
    """One consumer's view of a :class:`Broadcast`.

    Every item published after the subscription was created is delivered, in
    publish order. Items published before it are never seen.
    """

    def __init__(self, owner: Broadcast[T]) -> None:
        self._owner = owner
        self._queue: asyncio.Queue[object] = asyncio.Queue()

    def _push(self, item: object) -> None:
        self._queue.put_nowait(item)

    async def get(self) -> T:
        item = await self._queue.get()
        if item is _CLOSED:
            # keep the marker so later gets also terminate
            self._queue.put_nowait(_CLOSED)
            raise StreamClosedError("stream closed")
        return item  # type: ignore[return-value]

    def close(self) -> None:
        self._owner._discard(self)

    def __enter__(self) -> Subscription[T]:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __aiter__(self) -> Subscription[T]:
        return self

    async def __anext__(self) -> T:
        try:
            return await self.get()
        except StreamClosedError:
            raise StopAsyncIteration from None


class Broadcast(Generic[T]):
    """Publish/subscribe hub: each subscriber gets its own copy of every item."""

    def __init__(self) -> None:
        self._subscribers: list[Subscription[T]] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self) -> Subscription[T]:
        subscription: Subscription[T] = Subscription(self)
        if self._closed:
            subscription._push(_CLOSED)
        else:
            self._subscribers.append(subscription)
        return subscription

    def publish(self, item: T) -> None:
        for subscription in tuple(self._subscribers):
            subscription._push(item)

    def close(self) -> None:
        self._closed = True
        for subscription in self._subscribers:
            subscription._push(_CLOSED)
        self._subscribers.clear()

    def _discard(self, subscription: Subscription[T]) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)


class StateSignal(Generic[T]):
    """Current value plus change notifications; new subscribers see the current value first."""

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._changes: Broadcast[T] = Broadcast()

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        if value == self._value:
            return
        self._value = value
        self._changes.publish(value)

    def subscribe(self) -> Subscription[T]:
        subscription = self._changes.subscribe()
        if not self._changes.closed:
            subscription._push(self._value)
        return subscription

    def close(self) -> None:
        self._changes.close()
