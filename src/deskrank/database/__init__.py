"""Database utilities, schemas and the item store.

- Schemas: table definitions and DDL helpers
- Storage: DuckDB connection management
- ItemStore: items, ratings and votes
"""

from deskrank.database.duckdb_manager import DuckDBStorageManager, temp_storage
from deskrank.database.item_store import ItemStore
from deskrank.database.records import Item, Vote

__all__ = [
    "DuckDBStorageManager",
    "Item",
    "ItemStore",
    "Vote",
    "temp_storage",
]
