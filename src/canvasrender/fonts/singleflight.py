"""Coalesce concurrent calls for the same key into a single execution."""

from __future__ import annotations

from collections.abc import Callable, Hashable
from concurrent.futures import Future
from threading import Lock
from typing import Generic, TypeVar


T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Run at most one ``fn`` per key at a time and share its result.

    The first caller for a key becomes the leader and executes ``fn`` in its
    own thread; callers arriving while it runs block on the same future and
    receive the same value, or the same exception. The handle is dropped as
    soon as the leader finishes, so a later call starts a fresh execution.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._calls: dict[Hashable, Future[T]] = {}

    def do(self, key: Hashable, fn: Callable[[], T]) -> T:
        with self._lock:
            future = self._calls.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._calls[key] = future
        if not leader:
            return future.result()

        try:
            result = fn()
        except BaseException as exc:
            with self._lock:
                self._calls.pop(key, None)
            future.set_exception(exc)
            raise
        with self._lock:
            self._calls.pop(key, None)
        future.set_result(result)
        return result

    def in_flight(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._calls

    def __len__(self) -> int:
        with self._lock:
            return len(self._calls)


__all__ = ["SingleFlight"]
