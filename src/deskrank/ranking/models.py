"""Result types returned by the pairing and voting flow."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from deskrank.database.records import Item, Vote


@dataclass(frozen=True, slots=True)
class Pair:
    """Two distinct pairable items offered to a voter."""

    voter_id: str
    item_a: Item
    item_b: Item

    @property
    def key(self) -> frozenset[str]:
        return frozenset((self.item_a.item_id, self.item_b.item_id))


@dataclass(frozen=True, slots=True)
class PairExhausted:
    """Terminal state: the voter has judged every available pair.

    This is a normal outcome, not an error.
    """

    voter_id: str
    pairable_items: int


PairResult = Pair | PairExhausted


@dataclass(frozen=True, slots=True)
class VoteOutcome:
    """Ratings after a committed vote."""

    vote: Vote
    winner_rating: float
    loser_rating: float
    winner_vote_count: int
    loser_vote_count: int

    @property
    def winner_delta(self) -> float:
        return self.winner_rating - self.vote.winner_rating_before

    @property
    def loser_delta(self) -> float:
        return self.loser_rating - self.vote.loser_rating_before
