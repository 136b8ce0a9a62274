"""Wiring of storage, pair selector and rating engine from configuration."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Self

from deskrank.database.duckdb_manager import DuckDBStorageManager
from deskrank.database.item_store import ItemStore
from deskrank.ranking.engine import RatingEngine
from deskrank.ranking.locks import ItemLockRegistry
from deskrank.ranking.pairing import PairSelector

if TYPE_CHECKING:
    from pathlib import Path

    from deskrank.config import DeskrankConfig
    from deskrank.database.records import Item

logger = logging.getLogger(__name__)


@dataclass
class RankingContext:
    """Everything a request handler or CLI command needs to pair and vote."""

    config: DeskrankConfig
    storage: DuckDBStorageManager
    store: ItemStore
    selector: PairSelector
    engine: RatingEngine
    locks: ItemLockRegistry = field(default_factory=ItemLockRegistry)

    @classmethod
    def open(cls, config: DeskrankConfig, site_root: Path, *, rng: random.Random | None = None) -> Self:
        """Open the configured database and build the ranking components."""
        db_path = config.database.resolve(site_root)
        storage = DuckDBStorageManager(db_path=db_path)
        return cls.from_storage(config, storage, rng=rng)

    @classmethod
    def from_storage(
        cls,
        config: DeskrankConfig,
        storage: DuckDBStorageManager,
        *,
        rng: random.Random | None = None,
    ) -> Self:
        """Build the components on top of an existing storage manager."""
        store = ItemStore(storage, baseline_rating=config.ranking.baseline_rating)
        locks = ItemLockRegistry()
        selector = PairSelector(
            store,
            exclude_own_items=config.pairing.exclude_own_items,
            exhaustive_threshold=config.pairing.exhaustive_threshold,
            sample_retry_cap=config.pairing.sample_retry_cap,
            rng=rng,
        )
        engine = RatingEngine(
            store,
            k_factor=config.ranking.k_factor,
            locks=locks,
            retry_attempts=config.retry.attempts,
            retry_wait_min=config.retry.wait_min,
            retry_wait_max=config.retry.wait_max,
        )
        return cls(config=config, storage=storage, store=store, selector=selector, engine=engine, locks=locks)

    def delete_item(self, item_id: str) -> int:
        """Delete an item under its lock, applying the configured history policy."""
        with self.locks.hold(item_id):
            return self.store.delete_item(item_id, purge_history=self.config.pairing.purge_history_on_delete)

    def leaderboard(self, limit: int | None = None) -> list[Item]:
        return self.store.get_leaderboard(limit or self.config.api.leaderboard_limit)

    def close(self) -> None:
        self.storage.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, _exc_type: object, _exc_val: object, _exc_tb: object) -> None:
        self.close()
