from __future__ import annotations

import os
import random
import tempfile
from pathlib import Path

import pytest

from deskrank.config import DeskrankConfig
from deskrank.context import RankingContext
from deskrank.database.duckdb_manager import DuckDBStorageManager
from deskrank.database.item_store import ItemStore


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Ensure DESKRANK_* overrides from the developer shell never leak into tests."""
    for key in list(os.environ):
        if key.startswith("DESKRANK_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def temp_db():
    """Create temporary database path for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.duckdb"


@pytest.fixture
def storage(temp_db):
    """Create a DuckDBStorageManager instance with a temporary database."""
    manager = DuckDBStorageManager(db_path=temp_db)
    yield manager
    manager.close()


@pytest.fixture
def store(storage):
    """Create ItemStore instance with a storage manager."""
    return ItemStore(storage)


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source so pair draws are reproducible."""
    return random.Random(1234)


@pytest.fixture
def config() -> DeskrankConfig:
    """Default config with retries that don't sleep."""
    config = DeskrankConfig()
    config.retry.wait_min = 0.0
    config.retry.wait_max = 0.0
    return config


@pytest.fixture
def context(config, storage, rng):
    """Ranking components wired on the temporary database."""
    return RankingContext.from_storage(config, storage, rng=rng)


@pytest.fixture
def seeded_items(store):
    """Four showcase items and two items owned by alice."""
    showcase = [store.create_item(f"Showcase {index}", item_id=f"show-{index}") for index in range(4)]
    owned = [store.create_item(f"Alice {index}", "alice", item_id=f"alice-{index}") for index in range(2)]
    return showcase + owned
