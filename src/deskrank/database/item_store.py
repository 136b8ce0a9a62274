"""Persistence layer for items, ratings and votes using DuckDB.

Stores:
- Items with their current rating and vote count
- The append-only vote log, which doubles as every voter's pair history
- Per-owner settings such as the voting opt-out applied to future uploads

Write paths use parameterized SQL on the storage manager's thread cursor so
they can share one transaction; read paths that feed tables to the CLI are
built as Ibis expressions.
"""

from __future__ import annotations

import contextlib
import logging
import uuid
from typing import TYPE_CHECKING

import duckdb
from ibis import _

from deskrank.database.records import Item, Vote, pair_key, utcnow
from deskrank.database.schemas import ITEMS_TABLE, OWNER_SETTINGS_TABLE, VOTES_TABLE, initialize_tables
from deskrank.exceptions import DuplicateVoteError, ItemNotFoundError, PersistenceFailureError
from deskrank.ranking.elo import DEFAULT_RATING

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from ibis.expr.types import Table

    from deskrank.database.duckdb_manager import DuckDBStorageManager

logger = logging.getLogger(__name__)

_ITEM_COLUMNS = (
    "item_id, title, owner_id, rating, vote_count, active, voting_opt_out, created_at, updated_at"
)
_VOTE_COLUMNS = (
    "vote_id, voter_id, winner_id, loser_id, winner_rating_before, loser_rating_before, "
    "winner_rating_after, loser_rating_after, created_at"
)


def _row_to_item(row: tuple) -> Item:
    return Item(
        item_id=row[0],
        title=row[1],
        owner_id=row[2],
        rating=float(row[3]),
        vote_count=int(row[4]),
        active=bool(row[5]),
        voting_opt_out=bool(row[6]),
        created_at=row[7],
        updated_at=row[8],
    )


def _row_to_vote(row: tuple) -> Vote:
    return Vote(
        vote_id=row[0],
        voter_id=row[1],
        winner_id=row[2],
        loser_id=row[3],
        winner_rating_before=float(row[4]),
        loser_rating_before=float(row[5]),
        winner_rating_after=float(row[6]),
        loser_rating_after=float(row[7]),
        created_at=row[8],
    )


class ItemStore:
    """Persistent storage for items and votes using DuckDB."""

    def __init__(self, storage: DuckDBStorageManager, *, baseline_rating: float = DEFAULT_RATING) -> None:
        """Initialize item store.

        Args:
            storage: The central DuckDB storage manager.
            baseline_rating: Rating assigned to newly created items.

        """
        self.storage = storage
        self.baseline_rating = baseline_rating
        self._ensure_tables()

    def _ensure_tables(self) -> None:
        """Create items, votes and owner settings tables if they don't exist."""
        existing = set(self.storage.list_tables())
        initialize_tables(self.storage._conn)
        for table in (ITEMS_TABLE, VOTES_TABLE, OWNER_SETTINGS_TABLE):
            if table not in existing:
                logger.info("Created %s table", table)

    def _execute(self, sql: str, params: Sequence | None = None) -> duckdb.DuckDBPyConnection:
        """Run a statement, translating store outages into ``PersistenceFailureError``.

        Constraint violations are re-raised untouched so callers can map them
        to a domain error.
        """
        try:
            return self.storage.execute(sql, params)
        except duckdb.ConstraintException:
            raise
        except duckdb.Error as exc:
            msg = f"Database error: {exc}"
            raise PersistenceFailureError(msg) from exc

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        """Group store calls into one atomic unit of work.

        Any DuckDB error raised by the body or by the commit (including a
        write-write conflict) surfaces as ``PersistenceFailureError``.
        """
        try:
            with self.storage.transaction():
                yield
        except duckdb.Error as exc:
            logger.warning("Transaction rolled back: %s", exc)
            msg = f"Transaction failed: {exc}"
            raise PersistenceFailureError(msg) from exc

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def create_item(
        self,
        title: str | None = None,
        owner_id: str | None = None,
        *,
        item_id: str | None = None,
        voting_opt_out: bool | None = None,
    ) -> Item:
        """Insert a new item at the baseline rating.

        Args:
            title: Optional display title
            owner_id: Uploading user, or None for seed/showcase items
            item_id: Explicit identifier (a UUID4 is generated when omitted)
            voting_opt_out: Initial opt-out flag. When None, owned items inherit the
                owner's saved opt-out and showcase items are never opted out.

        """
        if voting_opt_out is None:
            voting_opt_out = self.get_owner_opt_out(owner_id) if owner_id else False
        now = utcnow()
        item = Item(
            item_id=item_id or str(uuid.uuid4()),
            title=title,
            owner_id=owner_id,
            rating=self.baseline_rating,
            vote_count=0,
            active=True,
            voting_opt_out=voting_opt_out,
            created_at=now,
            updated_at=now,
        )
        try:
            self._execute(
                f"INSERT INTO {ITEMS_TABLE} ({_ITEM_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    item.item_id,
                    item.title,
                    item.owner_id,
                    item.rating,
                    item.vote_count,
                    item.active,
                    item.voting_opt_out,
                    item.created_at,
                    item.updated_at,
                ],
            )
        except duckdb.ConstraintException as exc:
            msg = f"Item '{item.item_id}' already exists"
            raise PersistenceFailureError(msg) from exc

        logger.info("Created item %s (owner=%s)", item.item_id, owner_id or "showcase")
        return item

    def get_item(self, item_id: str) -> Item:
        """Get an item by id.

        Raises:
            ItemNotFoundError: If no item has this id

        """
        row = self._execute(
            f"SELECT {_ITEM_COLUMNS} FROM {ITEMS_TABLE} WHERE item_id = ?",
            [item_id],
        ).fetchone()
        if row is None:
            raise ItemNotFoundError(item_id)
        return _row_to_item(row)

    def list_active_items(self) -> list[Item]:
        """Items eligible for pairing: active and not opted out."""
        rows = self._execute(
            f"SELECT {_ITEM_COLUMNS} FROM {ITEMS_TABLE} "
            "WHERE active AND NOT voting_opt_out "
            "ORDER BY created_at, item_id"
        ).fetchall()
        return [_row_to_item(row) for row in rows]

    def list_owner_items(self, owner_id: str) -> list[Item]:
        """All items of one owner, newest first, whatever their flags."""
        rows = self._execute(
            f"SELECT {_ITEM_COLUMNS} FROM {ITEMS_TABLE} WHERE owner_id = ? ORDER BY created_at DESC, item_id",
            [owner_id],
        ).fetchall()
        return [_row_to_item(row) for row in rows]

    def set_item_flags(
        self,
        item_id: str,
        *,
        active: bool | None = None,
        voting_opt_out: bool | None = None,
    ) -> Item:
        """Update the owner-controlled flags of an item. ``None`` leaves a flag unchanged."""
        item = self.get_item(item_id)
        new_active = item.active if active is None else active
        new_opt_out = item.voting_opt_out if voting_opt_out is None else voting_opt_out
        self._execute(
            f"UPDATE {ITEMS_TABLE} SET active = ?, voting_opt_out = ?, updated_at = ? WHERE item_id = ?",
            [new_active, new_opt_out, utcnow(), item_id],
        )
        logger.info("Item %s flags: active=%s voting_opt_out=%s", item_id, new_active, new_opt_out)
        return self.get_item(item_id)

    def get_owner_opt_out(self, owner_id: str) -> bool:
        """Saved opt-out of an owner; owners who never set one are opted in."""
        row = self._execute(
            f"SELECT voting_opt_out FROM {OWNER_SETTINGS_TABLE} WHERE owner_id = ?",
            [owner_id],
        ).fetchone()
        return bool(row[0]) if row else False

    def set_owner_opt_out(self, owner_id: str, *, opt_out: bool) -> int:
        """Save an owner's voting opt-out and apply it to every item they own.

        The saved value becomes the default for items the owner creates later.

        Returns:
            Number of existing items updated

        """
        now = utcnow()
        with self.transaction():
            self._execute(
                f"INSERT INTO {OWNER_SETTINGS_TABLE} (owner_id, voting_opt_out, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT (owner_id) DO UPDATE SET "
                "voting_opt_out = excluded.voting_opt_out, updated_at = excluded.updated_at",
                [owner_id, opt_out, now],
            )
            rows = self._execute(
                f"UPDATE {ITEMS_TABLE} SET voting_opt_out = ?, updated_at = ? "
                "WHERE owner_id = ? RETURNING item_id",
                [opt_out, now, owner_id],
            ).fetchall()
        logger.info("Owner %s opt_out=%s applied to %d item(s)", owner_id, opt_out, len(rows))
        return len(rows)

    def delete_item(self, item_id: str, *, purge_history: bool = False) -> int:
        """Delete an item.

        Args:
            item_id: Item to remove
            purge_history: Also delete every vote that references the item.
                When False the votes stay as an audit trail; they can no
                longer match any live pair.

        Returns:
            Number of vote rows purged

        """
        self.get_item(item_id)
        purged = 0
        with self.transaction():
            if purge_history:
                purged = len(
                    self._execute(
                        f"DELETE FROM {VOTES_TABLE} WHERE winner_id = ? OR loser_id = ? RETURNING vote_id",
                        [item_id, item_id],
                    ).fetchall()
                )
            self._execute(f"DELETE FROM {ITEMS_TABLE} WHERE item_id = ?", [item_id])

        logger.info("Deleted item %s (purged %d vote(s))", item_id, purged)
        return purged

    def update_item_rating(self, item_id: str, new_rating: float, new_vote_count: int) -> None:
        """Write a rating and vote count computed by the rating engine."""
        row = self._execute(
            f"UPDATE {ITEMS_TABLE} SET rating = ?, vote_count = ?, updated_at = ? WHERE item_id = ? RETURNING item_id",
            [new_rating, new_vote_count, utcnow(), item_id],
        ).fetchone()
        if row is None:
            raise ItemNotFoundError(item_id)

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------

    def list_vote_history(self, voter_id: str) -> set[frozenset[str]]:
        """Unordered pairs already judged by ``voter_id``."""
        rows = self._execute(
            f"SELECT pair_low, pair_high FROM {VOTES_TABLE} WHERE voter_id = ?",
            [voter_id],
        ).fetchall()
        return {pair_key(low, high) for low, high in rows}

    def has_voted(self, voter_id: str, item_a: str, item_b: str) -> bool:
        """Whether the voter already judged this pair, in either order."""
        low, high = sorted((item_a, item_b))
        row = self._execute(
            f"SELECT 1 FROM {VOTES_TABLE} WHERE voter_id = ? AND pair_low = ? AND pair_high = ? LIMIT 1",
            [voter_id, low, high],
        ).fetchone()
        return row is not None

    def insert_vote(  # noqa: PLR0913
        self,
        voter_id: str,
        winner_id: str,
        loser_id: str,
        *,
        winner_rating_before: float,
        loser_rating_before: float,
        winner_rating_after: float,
        loser_rating_after: float,
    ) -> Vote:
        """Append a vote record.

        Raises:
            DuplicateVoteError: If the voter already judged this pair

        """
        low, high = sorted((winner_id, loser_id))
        vote = Vote(
            vote_id=str(uuid.uuid4()),
            voter_id=voter_id,
            winner_id=winner_id,
            loser_id=loser_id,
            winner_rating_before=winner_rating_before,
            loser_rating_before=loser_rating_before,
            winner_rating_after=winner_rating_after,
            loser_rating_after=loser_rating_after,
            created_at=utcnow(),
        )
        try:
            self._execute(
                f"INSERT INTO {VOTES_TABLE} ({_VOTE_COLUMNS}, pair_low, pair_high) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    vote.vote_id,
                    vote.voter_id,
                    vote.winner_id,
                    vote.loser_id,
                    vote.winner_rating_before,
                    vote.loser_rating_before,
                    vote.winner_rating_after,
                    vote.loser_rating_after,
                    vote.created_at,
                    low,
                    high,
                ],
            )
        except duckdb.ConstraintException as exc:
            raise DuplicateVoteError(voter_id, winner_id, loser_id) from exc
        return vote

    def list_votes(self, voter_id: str) -> list[Vote]:
        """Every vote cast by ``voter_id``, oldest first."""
        rows = self._execute(
            f"SELECT {_VOTE_COLUMNS} FROM {VOTES_TABLE} WHERE voter_id = ? ORDER BY created_at, vote_id",
            [voter_id],
        ).fetchall()
        return [_row_to_vote(row) for row in rows]

    # ------------------------------------------------------------------
    # Read paths
    # ------------------------------------------------------------------

    def leaderboard_table(self, limit: int | None = None, *, include_unrated: bool = True) -> Table:
        """Active items ordered by rating.

        Ties (common while items are young) are broken by creation time and then
        by id, so the order is deterministic.

        Args:
            limit: Maximum number of items to return
            include_unrated: Keep items that have not been voted on yet

        Returns:
            Ibis table with the leaderboard rows

        """
        items = self.storage.read_table(ITEMS_TABLE).filter(_.active)
        if not include_unrated:
            items = items.filter(_.vote_count > 0)
        items = items.order_by([_.rating.desc(), _.created_at.asc(), _.item_id.asc()])
        if limit:
            items = items.limit(limit)
        return items

    def get_leaderboard(self, limit: int | None = None, *, include_unrated: bool = True) -> list[Item]:
        """Leaderboard as records."""
        try:
            rows = self.leaderboard_table(limit, include_unrated=include_unrated).to_pyarrow().to_pylist()
        except duckdb.Error as exc:
            msg = f"Database error: {exc}"
            raise PersistenceFailureError(msg) from exc
        return [_row_to_item(tuple(row[column] for column in _ITEM_COLUMNS.split(", "))) for row in rows]

    def vote_history_table(
        self,
        voter_id: str | None = None,
        item_id: str | None = None,
        limit: int | None = None,
    ) -> Table:
        """Get vote history, newest first.

        Args:
            voter_id: Optional filter for one voter
            item_id: Optional filter for votes involving one item
            limit: Maximum number of votes to return

        Returns:
            Ibis table with vote rows

        """
        votes = self.storage.read_table(VOTES_TABLE)

        if voter_id:
            votes = votes.filter(_.voter_id == voter_id)
        if item_id:
            votes = votes.filter((_.winner_id == item_id) | (_.loser_id == item_id))

        votes = votes.order_by([_.created_at.desc(), _.vote_id.desc()])

        if limit:
            votes = votes.limit(limit)

        return votes

    def count_items(self) -> int:
        return self.storage.row_count(ITEMS_TABLE)

    def count_votes(self) -> int:
        return self.storage.row_count(VOTES_TABLE)
