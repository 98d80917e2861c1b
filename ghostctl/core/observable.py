"""Read-only value holders exposed to presentation layers."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class Observable(Generic[T]):
    """Holds the latest immutable value and notifies watchers when it changes.

    Values are replaced wholesale, never mutated, so a reader always sees either
    the previous or the next complete value.
    """

    def __init__(self, initial: T) -> None:
        self._initial = initial
        self._value = initial
        self._watchers: list[Callable[[T], None]] = []
        self._lock = threading.Lock()

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        with self._lock:
            if value == self._value:
                return
            self._value = value
            watchers = tuple(self._watchers)
        for watcher in watchers:
            watcher(value)

    def update(self, fn: Callable[[T], T]) -> None:
        self.set(fn(self._value))

    def reset(self) -> None:
        self.set(self._initial)

    def watch(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register *callback* for future changes; returns an unsubscribe function."""
        with self._lock:
            self._watchers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._watchers:
                    self._watchers.remove(callback)

        return unsubscribe
