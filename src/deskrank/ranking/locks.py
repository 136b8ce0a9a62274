"""Per-item locks serializing rating updates within one process."""

from __future__ import annotations

import contextlib
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class ItemLockRegistry:
    """Hands out one lock per item id, dropping locks nobody holds or waits on.

    ``hold`` acquires in sorted id order, so two votes touching the same items
    from opposite sides cannot deadlock.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._users: dict[str, int] = {}

    def _checkout(self, item_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.setdefault(item_id, threading.Lock())
            self._users[item_id] = self._users.get(item_id, 0) + 1
            return lock

    def _release(self, item_id: str) -> None:
        with self._guard:
            self._users[item_id] -= 1
            if self._users[item_id] == 0:
                del self._users[item_id]
                del self._locks[item_id]

    @contextlib.contextmanager
    def hold(self, *item_ids: str) -> Iterator[None]:
        """Hold the locks of every given item for the duration of the block."""
        acquired: list[tuple[str, threading.Lock]] = []
        try:
            for item_id in sorted(set(item_ids)):
                lock = self._checkout(item_id)
                try:
                    lock.acquire()
                except BaseException:
                    self._release(item_id)
                    raise
                acquired.append((item_id, lock))
            yield
        finally:
            for item_id, lock in reversed(acquired):
                lock.release()
                self._release(item_id)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
