"""Rating engine: turns one vote into two committed rating updates.

Each vote is a single unit of work. Inside one store transaction the engine
validates the pair, checks the voter's history, appends the vote, and writes
both new ratings. Per-item locks serialize concurrent votes on a shared item
so the read-compute-write never interleaves; votes on disjoint items proceed
in parallel.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tenacity import Retrying

from deskrank.exceptions import DuplicateVoteError, InvalidVoteError
from deskrank.infra.retry import (
    DEFAULT_ATTEMPTS,
    DEFAULT_WAIT_MAX,
    DEFAULT_WAIT_MIN,
    RETRY_IF,
    log_before_retry,
    retry_stop,
    retry_wait,
)
from deskrank.ranking.elo import DEFAULT_K_FACTOR, calculate_elo_update
from deskrank.ranking.locks import ItemLockRegistry
from deskrank.ranking.models import VoteOutcome

if TYPE_CHECKING:
    from deskrank.database.protocols import RatingStore

logger = logging.getLogger(__name__)


class RatingEngine:
    """Records votes and applies Elo updates atomically."""

    def __init__(  # noqa: PLR0913
        self,
        store: RatingStore,
        *,
        k_factor: float = DEFAULT_K_FACTOR,
        locks: ItemLockRegistry | None = None,
        retry_attempts: int = DEFAULT_ATTEMPTS,
        retry_wait_min: float = DEFAULT_WAIT_MIN,
        retry_wait_max: float = DEFAULT_WAIT_MAX,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Transactional item/vote store
            k_factor: Elo sensitivity constant
            locks: Lock registry shared by every engine writing to the same store
            retry_attempts: Total tries for a vote whose transaction fails
            retry_wait_min: Lower bound of the randomized exponential backoff (seconds)
            retry_wait_max: Upper bound of the backoff (seconds)

        """
        self.store = store
        self.k_factor = k_factor
        self.locks = locks if locks is not None else ItemLockRegistry()
        self.retry_attempts = retry_attempts
        self.retry_wait_min = retry_wait_min
        self.retry_wait_max = retry_wait_max

    def record_vote(self, voter_id: str, winner_id: str, loser_id: str) -> VoteOutcome:
        """Record that ``voter_id`` preferred ``winner_id`` over ``loser_id``.

        Returns:
            The committed vote and both new ratings

        Raises:
            InvalidVoteError: Self-vote or an inactive item
            ItemNotFoundError: An item does not exist
            DuplicateVoteError: The voter already judged this pair
            PersistenceFailureError: The store kept failing after all retries

        """
        if winner_id == loser_id:
            msg = f"Cannot vote an item against itself ('{winner_id}')"
            raise InvalidVoteError(msg)

        retrying = Retrying(
            stop=retry_stop(self.retry_attempts),
            wait=retry_wait(self.retry_wait_min, self.retry_wait_max),
            retry=RETRY_IF,
            before_sleep=log_before_retry,
            reraise=True,
        )
        for attempt in retrying:
            with attempt, self.locks.hold(winner_id, loser_id):
                outcome = self._commit_vote(voter_id, winner_id, loser_id)

        logger.info(
            "Updated ratings: %s (%.1f → %.1f), %s (%.1f → %.1f)",
            winner_id,
            outcome.vote.winner_rating_before,
            outcome.winner_rating,
            loser_id,
            outcome.vote.loser_rating_before,
            outcome.loser_rating,
        )
        return outcome

    def _commit_vote(self, voter_id: str, winner_id: str, loser_id: str) -> VoteOutcome:
        with self.store.transaction():
            winner = self.store.get_item(winner_id)
            loser = self.store.get_item(loser_id)
            for item in (winner, loser):
                if not item.active:
                    msg = f"Item '{item.item_id}' is not active"
                    raise InvalidVoteError(msg)

            if self.store.has_voted(voter_id, winner_id, loser_id):
                logger.info("Rejected duplicate vote by %s on (%s, %s)", voter_id, winner_id, loser_id)
                raise DuplicateVoteError(voter_id, winner_id, loser_id)

            new_winner, new_loser = calculate_elo_update(winner.rating, loser.rating, self.k_factor)

            vote = self.store.insert_vote(
                voter_id,
                winner_id,
                loser_id,
                winner_rating_before=winner.rating,
                loser_rating_before=loser.rating,
                winner_rating_after=new_winner,
                loser_rating_after=new_loser,
            )
            self.store.update_item_rating(winner_id, new_winner, winner.vote_count + 1)
            self.store.update_item_rating(loser_id, new_loser, loser.vote_count + 1)

        return VoteOutcome(
            vote=vote,
            winner_rating=new_winner,
            loser_rating=new_loser,
            winner_vote_count=winner.vote_count + 1,
            loser_vote_count=loser.vote_count + 1,
        )
