"""Tests for ItemLockRegistry."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from deskrank.ranking.locks import ItemLockRegistry


class TestItemLockRegistry:
    def test_locks_are_dropped_after_release(self):
        locks = ItemLockRegistry()

        with locks.hold("a", "b"):
            assert len(locks) == 2

        assert len(locks) == 0

    def test_duplicate_ids_are_held_once(self):
        locks = ItemLockRegistry()

        with locks.hold("a", "a"):
            assert len(locks) == 1

        assert len(locks) == 0

    def test_released_when_body_raises(self):
        locks = ItemLockRegistry()

        with pytest.raises(RuntimeError), locks.hold("a"):
            raise RuntimeError

        assert len(locks) == 0
        with locks.hold("a"):
            pass

    def test_shared_item_serializes_holders(self):
        locks = ItemLockRegistry()
        inside = 0
        peak = 0
        guard = threading.Lock()

        def work(other: str) -> None:
            nonlocal inside, peak
            with locks.hold("shared", other):
                with guard:
                    inside += 1
                    peak = max(peak, inside)
                time.sleep(0.002)
                with guard:
                    inside -= 1

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(work, [f"other-{index}" for index in range(32)]))

        assert peak == 1
        assert len(locks) == 0

    def test_opposite_order_does_not_deadlock(self):
        locks = ItemLockRegistry()

        def work(order: tuple[str, str]) -> None:
            for _ in range(50):
                with locks.hold(*order):
                    pass

        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [pool.submit(work, ("a", "b")), pool.submit(work, ("b", "a"))]
            for future in futures:
                future.result(timeout=10)

        assert len(locks) == 0
