"""Data models for item and vote records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime


def utcnow() -> datetime:
    """Current UTC time as a naive timestamp, the form stored in DuckDB."""
    return datetime.now(UTC).replace(tzinfo=None)


def pair_key(item_a: str, item_b: str) -> frozenset[str]:
    """Unordered identity of a pair, equal for both orderings."""
    return frozenset((item_a, item_b))


@dataclass(frozen=True, slots=True)
class Item:
    """A ranked entity (one workstation submission)."""

    item_id: str
    title: str | None
    owner_id: str | None
    rating: float
    vote_count: int
    active: bool
    voting_opt_out: bool
    created_at: datetime
    updated_at: datetime

    @property
    def is_pairable(self) -> bool:
        """Whether the item may appear in a pair at all."""
        return self.active and not self.voting_opt_out

    @property
    def is_showcase(self) -> bool:
        """Seed items have no owner."""
        return self.owner_id is None


@dataclass(frozen=True, slots=True)
class Vote:
    """Record of one pairwise judgement. Immutable once written."""

    vote_id: str
    voter_id: str
    winner_id: str
    loser_id: str
    winner_rating_before: float
    loser_rating_before: float
    winner_rating_after: float
    loser_rating_after: float
    created_at: datetime

    @property
    def pair(self) -> frozenset[str]:
        return pair_key(self.winner_id, self.loser_id)
